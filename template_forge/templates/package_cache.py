from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping, Optional

from pydantic import ValidationError

from ..errors import InvalidFormatError, NotFoundError
from .models import EditorCatalogEntry, EditorVersionPackageList, LockedDependency

logger = logging.getLogger(__name__)


def editor_version_key(editor_version: str) -> str:
    return editor_version.replace(".", "_")


class EditorVersionPackageCache:
    """JSON side table of package knowledge, one file per editor version.

    Files live in ``<cache_dir>/templates/<version key>.json`` and only ever
    grow; nothing here prunes entries.
    """

    def __init__(self, cache_dir: str | Path):
        self.root = Path(cache_dir) / "templates"

    def path_for(self, editor_version: str) -> Path:
        if not editor_version:
            raise NotFoundError("Editor version is required for the package cache")
        return self.root / f"{editor_version_key(editor_version)}.json"

    def read(self, editor_version: str) -> EditorVersionPackageList:
        path = self.path_for(editor_version)
        if not path.exists():
            return EditorVersionPackageList()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return EditorVersionPackageList.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise InvalidFormatError(f"Invalid editor version package cache: {e}", path=path) from e

    def write(self, editor_version: str, package_list: EditorVersionPackageList) -> Path:
        path = self.path_for(editor_version)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(package_list.dump(), indent=2), encoding="utf-8")
        return path

    def merge(
        self,
        editor_version: str,
        packages: Optional[Mapping[str, LockedDependency]] = None,
        manifest_packages: Optional[Mapping[str, EditorCatalogEntry]] = None,
    ) -> EditorVersionPackageList:
        """Read, overwrite the given entries, write back. Last writer wins."""

        current = self.read(editor_version)
        for name, locked in (packages or {}).items():
            current.packages[name] = locked
        for name, entry in (manifest_packages or {}).items():
            current.manifest_packages[name] = entry
        self.write(editor_version, current)
        logger.debug(
            "Package cache %s now holds %d locked / %d catalog entries",
            editor_version,
            len(current.packages),
            len(current.manifest_packages),
        )
        return current
