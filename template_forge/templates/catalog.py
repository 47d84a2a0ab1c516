"""Listing, inspection and housekeeping of template archives."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from ..errors import InvalidFormatError, NotFoundError
from ..packaging.archive import PACKAGE_JSON, PACKAGE_ROOT, TEMPLATE_LOCK, TemplateArchive
from .models import (
    TEMPLATE_ARCHIVE_SUFFIX,
    FileNode,
    MinimalPackage,
    PackageDescriptor,
    PackageType,
    RenderPipeline,
    Template,
    TemplateRecord,
)
from .registry import TemplateRegistry

if TYPE_CHECKING:
    from ..state.app_context import AppContext

logger = logging.getLogger(__name__)

URP_PACKAGE = "com.unity.render-pipelines.universal"
HDRP_PACKAGE = "com.unity.render-pipelines.high-definition"
SRP_CORE_PACKAGE = "com.unity.render-pipelines.core"


def detect_pipelines(dependencies: Mapping[str, str]) -> List[RenderPipeline]:
    pipelines: List[RenderPipeline] = []
    if URP_PACKAGE in dependencies:
        pipelines.append(RenderPipeline.URP)
    if HDRP_PACKAGE in dependencies:
        pipelines.append(RenderPipeline.HDRP)
    if SRP_CORE_PACKAGE in dependencies:
        pipelines.append(RenderPipeline.CUSTOM)
    if not pipelines:
        pipelines.append(RenderPipeline.BUILT_IN)
    return pipelines


def _is_library_path(parts: List[str]) -> bool:
    for i, part in enumerate(parts[:-1]):
        if part == "ProjectData~" and parts[i + 1] == "Library":
            return True
    return False


def build_file_tree(entries: Iterable[Tuple[str, bool]]) -> FileNode:
    """Nest archive paths under a ``package`` root; ids are assigned depth first."""

    root = FileNode(name=PACKAGE_ROOT, path=PACKAGE_ROOT, is_dir=True)
    index: Dict[str, FileNode] = {PACKAGE_ROOT: root}
    for path, is_dir in entries:
        parts = [p for p in path.split("/") if p]
        if not parts or parts[0] != PACKAGE_ROOT or _is_library_path(parts):
            continue
        node = root
        for i in range(1, len(parts)):
            sub = "/".join(parts[: i + 1])
            last = i == len(parts) - 1
            child = index.get(sub)
            if child is None:
                child = FileNode(name=parts[i], path=sub, is_dir=is_dir or not last)
                node.children.append(child)
                index[sub] = child
            elif not last or is_dir:
                child.is_dir = True
            node = child

    counter = 0

    def visit(node: FileNode) -> None:
        nonlocal counter
        node.id = counter
        counter += 1
        node.children.sort(key=lambda n: (not n.is_dir, n.name.lower()))
        for child in node.children:
            visit(child)

    visit(root)
    return root


class TemplateCatalog:
    def __init__(self, context: "AppContext"):
        self.context = context

    @property
    def descriptor_cache_root(self) -> Path:
        return self.context.cache_dir / "templates"

    def _registry(self) -> Optional[TemplateRegistry]:
        try:
            return TemplateRegistry(self.context.templates_dir)
        except NotFoundError:
            return None

    def core_templates(self, editor_version: str) -> List[Template]:
        """Templates shipped inside the editor's package manager folder."""

        editor = self.context.find_editor(editor_version)
        return self._scan(editor.templates_dir, editor_version)

    def user_templates(self, editor_version: str) -> List[Template]:
        """Archives in ``<appdata>/Templates`` registered for ``editor_version``."""

        registry = self._registry()
        if registry is None:
            return []
        registered = registry.templates_for(editor_version)
        return [t for t in self._scan(registry.root, editor_version) if t.name in registered]

    def list_templates(self, editor_version: str) -> List[Template]:
        return self.core_templates(editor_version) + self.user_templates(editor_version)

    def _scan(self, directory: Path, editor_version: str) -> List[Template]:
        if not directory.is_dir():
            return []
        templates: List[Template] = []
        for path in sorted(directory.glob(f"*{TEMPLATE_ARCHIVE_SUFFIX}")):
            try:
                templates.append(Template.from_archive(path, editor_version))
            except InvalidFormatError as e:
                logger.warning("Skipping %s", e)
        return templates

    def inspect(self, template: Template) -> TemplateRecord:
        """Resolved descriptor plus derived facts for one template.

        The resolved descriptor is cached per archive file name and reused on
        later calls, so the archive is only streamed once.
        """

        cached = self.descriptor_cache_root / template.file_name / "package.json"
        if cached.is_file():
            try:
                descriptor = PackageDescriptor.model_validate(json.loads(cached.read_text(encoding="utf-8")))
            except (json.JSONDecodeError, ValidationError) as e:
                raise InvalidFormatError(f"Invalid cached descriptor: {e}", path=cached) from e
        else:
            archive = TemplateArchive(template.archive_path)
            texts = archive.read_texts([PACKAGE_JSON, TEMPLATE_LOCK])
            if PACKAGE_JSON not in texts:
                raise InvalidFormatError("Template archive has no package.json", path=template.archive_path)
            try:
                descriptor = PackageDescriptor.model_validate(json.loads(texts[PACKAGE_JSON]))
            except (json.JSONDecodeError, ValidationError) as e:
                raise InvalidFormatError(f"Invalid package.json: {e}", path=template.archive_path) from e
            descriptor, resolved = self.context.resolver().resolve_descriptor(
                descriptor, texts.get(TEMPLATE_LOCK), template.editor_version
            )
            logger.debug("Resolved %s, excluded %s", template.key, resolved.excluded)
            cached.parent.mkdir(parents=True, exist_ok=True)
            cached.write_text(json.dumps(descriptor.dump(), indent=2), encoding="utf-8")

        registry = self._registry()
        return TemplateRecord(
            descriptor=descriptor,
            template=template,
            pipelines=detect_pipelines(descriptor.dependencies),
            disk_size_bytes=template.archive_path.stat().st_size if template.archive_path.exists() else 0,
            is_custom=bool(registry and registry.is_custom(template.name, template.version)),
        )

    def file_tree(self, template: Template) -> FileNode:
        archive = TemplateArchive(template.archive_path)
        return build_file_tree((e.path, e.is_dir) for e in archive.iter_entries())

    def delete(self, template: Template) -> None:
        path = template.archive_path
        if not path.is_file():
            raise NotFoundError("Template archive not found", path=path)
        path.unlink()
        registry = self._registry()
        if registry is not None:
            registry.unregister(template.editor_version, template.name, template.version)
        cached = self.descriptor_cache_root / template.file_name
        if cached.is_dir():
            shutil.rmtree(cached)
        logger.info("Deleted template %s", path)

    def clear_cache(self) -> None:
        root = self.descriptor_cache_root
        if root.exists():
            shutil.rmtree(root)
            logger.info("Cleared template cache %s", root)

    def default_editor_packages(self, editor_version: str) -> List[MinimalPackage]:
        """The editor's catalog as UI-facing packages, sorted by name."""

        catalog = self.context.read_editor_catalog(editor_version)
        return [
            MinimalPackage(
                name=name,
                version=entry.version or "",
                is_discoverable=bool(entry.is_discoverable),
                type=PackageType.DEFAULT if entry.is_default else PackageType.INTERNAL,
            )
            for name, entry in sorted(catalog.packages.items())
        ]
