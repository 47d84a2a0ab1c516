"""Dependency resolution for generated manifests.

Three sources are reconciled into one ``name -> version`` mapping:

* the template's declared dependencies (``package.json``), priority 0,
* the template's lock file, direct (depth 0) non-preview entries only,
* the editor's built-in catalog, consulted only when there is no lock file.

Every confirmation from the lock file or catalog raises a name's priority by
one. Names ending above priority 1 are left out of the result, and when the
result feeds a manifest, embedded packages are left out as well.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from ..errors import ForgeError, InvalidFormatError
from .models import (
    EditorCatalog,
    EditorCatalogEntry,
    EditorVersionPackageList,
    LockedDependency,
    MinimalPackage,
    PackageDescriptor,
    PackageSource,
    PackageType,
)
from .package_cache import EditorVersionPackageCache

logger = logging.getLogger(__name__)

CatalogProvider = Callable[[str], EditorCatalog]

PREVIEW_MARKER = "preview"
MAX_PRIORITY = 1


class _Pairs(list):
    """JSON object kept as an ordered list of pairs so duplicate keys survive."""


def _materialize(value: Any) -> Any:
    if isinstance(value, _Pairs):
        return {k: _materialize(v) for k, v in value}
    if isinstance(value, list):
        return [_materialize(v) for v in value]
    return value


def parse_lock_entries(text: str) -> List[Tuple[str, LockedDependency]]:
    """Parse ``packages-lock.json`` into ``(name, entry)`` pairs.

    A name listed twice under ``dependencies`` yields two pairs.
    """

    try:
        raw = json.loads(text, object_pairs_hook=_Pairs)
    except json.JSONDecodeError as e:
        raise InvalidFormatError(f"Invalid packages-lock.json: {e}") from e
    if not isinstance(raw, _Pairs):
        raise InvalidFormatError("Invalid packages-lock.json: root must be an object")

    deps: Any = _Pairs()
    for key, value in raw:
        if key == "dependencies":
            deps = value
    if not isinstance(deps, _Pairs):
        raise InvalidFormatError("Invalid packages-lock.json: dependencies must be an object")

    entries: List[Tuple[str, LockedDependency]] = []
    for name, value in deps:
        try:
            entries.append((name, LockedDependency.model_validate(_materialize(value))))
        except ValidationError as e:
            raise InvalidFormatError(f"Invalid packages-lock.json entry '{name}': {e}") from e
    return entries


@dataclass
class ResolvedDependencies:
    dependencies: Dict[str, str]
    priorities: Dict[str, int] = field(default_factory=dict)
    excluded: List[str] = field(default_factory=list)
    cache: EditorVersionPackageList = field(default_factory=EditorVersionPackageList)

    def to_minimal_packages(self) -> List[MinimalPackage]:
        packages: List[MinimalPackage] = []
        for name, version in sorted(self.dependencies.items()):
            entry = self.cache.manifest_packages.get(name)
            if _is_git_dependency(version) or self.cache.source_of(name) == PackageSource.GIT.value:
                ptype = PackageType.GIT
            elif entry is not None and entry.is_default:
                ptype = PackageType.DEFAULT
            else:
                ptype = PackageType.INTERNAL
            packages.append(
                MinimalPackage(
                    name=name,
                    version=version,
                    is_discoverable=bool(entry is not None and entry.is_discoverable),
                    type=ptype,
                )
            )
        return packages


def _is_git_dependency(version: str) -> bool:
    v = version.lower()
    return v.startswith("git") or v.endswith(".git") or ".git#" in v or ".git?" in v


class DependencyResolver:
    def __init__(self, cache: EditorVersionPackageCache, catalog_provider: Optional[CatalogProvider] = None):
        self.cache = cache
        self.catalog_provider = catalog_provider

    def resolve(
        self,
        declared: Optional[Mapping[str, str]],
        lock_text: Optional[str],
        editor_version: str,
        *,
        for_manifest: bool = False,
    ) -> ResolvedDependencies:
        candidates: Dict[str, Tuple[str, int]] = {
            name: (version, 0) for name, version in (declared or {}).items()
        }
        seen_locked: Dict[str, LockedDependency] = {}
        seen_catalog: Dict[str, EditorCatalogEntry] = {}

        def confirm(name: str, version: str) -> None:
            if name in candidates:
                candidates[name] = (version, candidates[name][1] + 1)
            else:
                candidates[name] = (version, 1)

        if lock_text and lock_text.strip():
            for name, locked in parse_lock_entries(lock_text):
                seen_locked[name] = locked
                if locked.depth != 0 or not locked.version or PREVIEW_MARKER in locked.version:
                    continue
                confirm(name, locked.version)
        else:
            catalog = self._read_catalog(editor_version)
            for name, entry in catalog.packages.items():
                seen_catalog[name] = entry
                if entry.is_default_candidate():
                    confirm(name, entry.version or "")

        cache_state = self.cache.merge(editor_version, packages=seen_locked, manifest_packages=seen_catalog)

        final: Dict[str, str] = {}
        excluded: List[str] = []
        for name, (version, priority) in candidates.items():
            if priority > MAX_PRIORITY:
                logger.debug("Dropping %s: confirmed %d times", name, priority)
                excluded.append(name)
                continue
            if for_manifest and cache_state.is_embedded(name):
                logger.debug("Dropping %s: embedded package", name)
                excluded.append(name)
                continue
            final[name] = version

        return ResolvedDependencies(
            dependencies=final,
            priorities={name: priority for name, (_, priority) in candidates.items()},
            excluded=excluded,
            cache=cache_state,
        )

    def resolve_descriptor(
        self,
        descriptor: PackageDescriptor,
        lock_text: Optional[str],
        editor_version: str,
        *,
        for_manifest: bool = False,
    ) -> Tuple[PackageDescriptor, ResolvedDependencies]:
        """Resolve and return a corrected copy of ``descriptor``."""

        resolved = self.resolve(descriptor.dependencies, lock_text, editor_version, for_manifest=for_manifest)
        corrected = descriptor.model_copy(update={"dependencies": dict(resolved.dependencies)})
        return corrected, resolved

    def _read_catalog(self, editor_version: str) -> EditorCatalog:
        if self.catalog_provider is None:
            return EditorCatalog()
        try:
            return self.catalog_provider(editor_version)
        except ForgeError as e:
            logger.warning("Editor catalog unavailable for %s: %s", editor_version, e)
            return EditorCatalog()
