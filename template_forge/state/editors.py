from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import InvalidFormatError, NotFoundError
from ..templates.models import EditorCatalog

logger = logging.getLogger(__name__)

EXECUTABLE_CANDIDATES = (
    Path("Editor") / "Unity.exe",
    Path("Editor") / "Unity",
    Path("Unity.app") / "Contents" / "MacOS" / "Unity",
)
PACKAGE_MANAGER_DIR = Path("Data") / "Resources" / "PackageManager"


class EditorInstall(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exe_path: Path = Field(alias="exePath")
    version: str
    modules: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def package_manager_dir(self) -> Path:
        return self.exe_path.parent / PACKAGE_MANAGER_DIR

    @property
    def catalog_path(self) -> Path:
        return self.package_manager_dir / "Editor" / "manifest.json"

    @property
    def templates_dir(self) -> Path:
        return self.package_manager_dir / "ProjectTemplates"


def version_sort_key(version: str) -> Tuple[int, ...]:
    """``2022.3.10f1`` -> ``(2022, 3, 10, 1)``."""

    return tuple(int(part) for part in re.findall(r"\d+", version))


def _read_modules(path: Path) -> List[Dict[str, Any]]:
    if not path.is_file():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable modules.json at %s: %s", path, e)
        return []
    return [m for m in data if isinstance(m, dict)] if isinstance(data, list) else []


def discover_editors(editors_dir: str | Path) -> List[EditorInstall]:
    """Scan ``<editors_dir>/<version>/`` for editor executables, newest first."""

    root = Path(editors_dir)
    if not root.is_dir():
        logger.info("Editors directory %s does not exist", root)
        return []

    installs: List[EditorInstall] = []
    for entry in root.iterdir():
        if not entry.is_dir():
            continue
        exe = next((entry / c for c in EXECUTABLE_CANDIDATES if (entry / c).is_file()), None)
        if exe is None:
            continue
        installs.append(
            EditorInstall(
                exe_path=exe,
                version=entry.name,
                modules=_read_modules(entry / "modules.json"),
            )
        )
    installs.sort(key=lambda e: version_sort_key(e.version), reverse=True)
    return installs


def read_editor_catalog(editor: EditorInstall) -> EditorCatalog:
    """Read the editor's built-in package catalog."""

    path = editor.catalog_path
    if not path.is_file():
        raise NotFoundError("Editor package catalog not found", path=path)
    try:
        return EditorCatalog.model_validate(json.loads(path.read_text(encoding="utf-8-sig")))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise InvalidFormatError(f"Invalid editor package catalog: {e}", path=path) from e
