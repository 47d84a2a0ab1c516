from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Optional

from pydantic import ValidationError

from ..errors import InvalidFormatError, NotFoundError
from .models import (
    EditorVersionPackageList,
    MinimalPackage,
    PackageDescriptor,
    PackageType,
    ProjectManifest,
)

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"
LOCK_FILE = "packages-lock.json"
DEFAULT_TEMPLATE_PREFIX = "com.unity.template"


def load_manifest(path: Path) -> ProjectManifest:
    """Load ``manifest.json``; an absent file reads as an empty manifest."""

    if not path.exists():
        return ProjectManifest()
    try:
        data = json.loads(path.read_text(encoding="utf-8-sig") or "{}")
        return ProjectManifest.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise InvalidFormatError(f"Invalid package manifest: {e}", path=path) from e


def save_manifest(path: Path, manifest: ProjectManifest) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(manifest.dump(), indent=2), encoding="utf-8")


def read_descriptor(path: Path) -> PackageDescriptor:
    if not path.is_file():
        raise NotFoundError("Package descriptor not found", path=path)
    try:
        return PackageDescriptor.model_validate(json.loads(path.read_text(encoding="utf-8-sig")))
    except (json.JSONDecodeError, ValidationError) as e:
        raise InvalidFormatError(f"Invalid package descriptor: {e}", path=path) from e


def local_dependency_value(package_json: Path, project_root: Path) -> str:
    """``file:`` reference from ``<project_root>/Packages`` to the package directory."""

    package_dir = Path(package_json).resolve().parent
    packages_dir = (Path(project_root) / "Packages").resolve()
    try:
        rel = os.path.relpath(package_dir, packages_dir)
    except ValueError:
        # Different drives on Windows
        rel = str(package_dir)
    return "file:" + rel.replace("\\", "/")


def write_manifest(
    packages_dir: str | Path,
    packages: Iterable[MinimalPackage],
    project_root: str | Path,
    cache: Optional[EditorVersionPackageList] = None,
    template_prefix: str = DEFAULT_TEMPLATE_PREFIX,
) -> ProjectManifest:
    """Rewrite ``<packages_dir>/manifest.json`` with ``packages`` as its dependencies.

    Args:
        packages_dir: The ``Packages`` directory being written. It may be a
            scratch copy rather than the final project.
        packages: Resolved packages. ``Local`` ones carry the path to their
            ``package.json`` in ``name``.
        project_root: Root of the project the manifest will finally live in;
            local ``file:`` paths are made relative to its ``Packages`` folder.
        cache: Package knowledge for the editor version, used to skip
            embedded packages.
        template_prefix: Local packages whose name starts with this are
            templates and are never written.

    Returns:
        The manifest as written.
    """

    packages_dir = Path(packages_dir)
    project_root = Path(project_root)
    packages_dir.mkdir(parents=True, exist_ok=True)

    lock_path = packages_dir / LOCK_FILE
    if lock_path.exists():
        lock_path.unlink()
        logger.debug("Removed stale %s", lock_path)

    manifest_path = packages_dir / MANIFEST_FILE
    manifest = load_manifest(manifest_path)

    dependencies: Dict[str, str] = {}
    for package in packages:
        if package.type != PackageType.LOCAL:
            if cache is not None and cache.is_embedded(package.name):
                logger.debug("Skipping embedded package %s", package.name)
                continue
            dependencies[package.name] = package.version
            continue

        descriptor_path = Path(package.name)
        descriptor = read_descriptor(descriptor_path)
        if not descriptor.name:
            raise InvalidFormatError("Package descriptor has no name", path=descriptor_path)
        if descriptor.name.startswith(template_prefix):
            logger.debug("Skipping local template package %s", descriptor.name)
            continue
        dependencies[descriptor.name] = local_dependency_value(descriptor_path, project_root)

    manifest = manifest.model_copy(update={"dependencies": dependencies})
    save_manifest(manifest_path, manifest)
    logger.info("Wrote %s with %d dependencies", manifest_path, len(dependencies))
    return manifest
