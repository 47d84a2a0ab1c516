"""Templates system: models, package cache, resolver, manifest writer, catalog."""

from .models import (
    EditorCatalog,
    EditorCatalogEntry,
    EditorVersionPackageList,
    FileNode,
    LockedDependency,
    MinimalPackage,
    PackageDescriptor,
    PackageType,
    ProjectManifest,
    RenderPipeline,
    Template,
    TemplateRecord,
)
from .package_cache import EditorVersionPackageCache
from .resolver import DependencyResolver, ResolvedDependencies
from .manifest_writer import write_manifest

__all__ = [
    "EditorCatalog",
    "EditorCatalogEntry",
    "EditorVersionPackageList",
    "FileNode",
    "LockedDependency",
    "MinimalPackage",
    "PackageDescriptor",
    "PackageType",
    "ProjectManifest",
    "RenderPipeline",
    "Template",
    "TemplateRecord",
    "EditorVersionPackageCache",
    "DependencyResolver",
    "ResolvedDependencies",
    "write_manifest",
]
