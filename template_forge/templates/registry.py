from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from ..errors import InvalidFormatError

logger = logging.getLogger(__name__)

REGISTRY_FILE = "manifest.json"
CUSTOM_REGISTRY_FILE = "custom_manifest.json"


class TemplateRegistry:
    """User template index kept next to the archives in ``<appdata>/Templates``.

    ``manifest.json`` maps each editor version to the template names usable
    with it (``{version: {dependencies: {name: version}}}``).
    ``custom_manifest.json`` lists the ``<name>-<version>`` keys created here.
    """

    def __init__(self, templates_dir: str | Path):
        self.root = Path(templates_dir)
        self.index = self.root / REGISTRY_FILE
        self.custom_index = self.root / CUSTOM_REGISTRY_FILE

    def templates_for(self, editor_version: str) -> Dict[str, str]:
        entry = self._load(self.index).get(editor_version)
        if entry is None:
            return {}
        deps = entry.get("dependencies") if isinstance(entry, dict) else None
        if not isinstance(deps, dict):
            raise InvalidFormatError(f"Invalid registry entry for {editor_version}", path=self.index)
        return {str(k): str(v) for k, v in deps.items()}

    def register(self, editor_version: str, name: str, version: str) -> None:
        data = self._load(self.index)
        entry = data.setdefault(editor_version, {})
        if not isinstance(entry, dict):
            raise InvalidFormatError(f"Invalid registry entry for {editor_version}", path=self.index)
        entry.setdefault("dependencies", {})[name] = version
        self._save(self.index, data)

        custom = self._load(self.custom_index)
        keys: List[str] = list(custom.get("templates") or [])
        key = f"{name}-{version}"
        if key not in keys:
            keys.append(key)
        custom["templates"] = keys
        self._save(self.custom_index, custom)
        logger.info("Registered template %s for editor %s", key, editor_version)

    def unregister(self, editor_version: str, name: str, version: str | None = None) -> None:
        if self.index.exists():
            data = self._load(self.index)
            entry = data.get(editor_version)
            if isinstance(entry, dict) and isinstance(entry.get("dependencies"), dict):
                entry["dependencies"].pop(name, None)
                self._save(self.index, data)

        if version is not None and self.custom_index.exists():
            custom = self._load(self.custom_index)
            key = f"{name}-{version}"
            custom["templates"] = [k for k in custom.get("templates") or [] if k != key]
            self._save(self.custom_index, custom)

    def is_custom(self, name: str, version: str) -> bool:
        return f"{name}-{version}" in (self._load(self.custom_index).get("templates") or [])

    def _load(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8-sig") or "{}")
        except json.JSONDecodeError as e:
            raise InvalidFormatError(f"Invalid template registry: {e}", path=path) from e
        if not isinstance(data, dict):
            raise InvalidFormatError("Template registry root must be an object", path=path)
        return data

    def _save(self, path: Path, data: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
