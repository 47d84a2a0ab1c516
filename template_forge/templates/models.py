from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer

from ..errors import InvalidFormatError


TEMPLATE_ARCHIVE_SUFFIX = ".tgz"


class PackageSource(str, Enum):
    BUILTIN = "builtin"
    REGISTRY = "registry"
    GIT = "git"
    LOCAL = "local"
    EMBEDDED = "embedded"


class PackageType(str, Enum):
    INTERNAL = "Internal"
    DEFAULT = "Default"
    GIT = "Git"
    LOCAL = "Local"


class RenderPipeline(str, Enum):
    UNKNOWN = "Unknown"
    BUILT_IN = "BuiltIn"
    URP = "URP"
    HDRP = "HDRP"
    CUSTOM = "Custom"


class VendorRecord(BaseModel):
    """Record read from a vendor JSON file. Keys the model does not know are
    kept in ``model_extra`` and written back untouched."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @model_serializer(mode="wrap")
    def _omit_absent_fields(self, handler: SerializerFunctionWrapHandler) -> Dict[str, Any]:
        # Declared keys the file never had stay out; extras and explicit nulls are kept.
        data = handler(self)
        for name, field in type(self).model_fields.items():
            if name not in self.model_fields_set and getattr(self, name) is None:
                data.pop(field.alias or name, None)
                data.pop(name, None)
        return data

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PackageDescriptor(VendorRecord):
    """``package/package.json`` of a template archive."""

    name: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    version: Optional[str] = None
    type: Optional[str] = None
    host: Optional[str] = None
    unity_version: Optional[str] = Field(default=None, alias="unity")
    description: Optional[str] = None
    dependencies: Dict[str, str] = Field(default_factory=dict)
    from_project: Optional[bool] = Field(default=None, alias="fromProject")


class LockedDependency(VendorRecord):
    """One entry of ``packages-lock.json``. ``depth == 0`` means direct."""

    version: Optional[str] = None
    depth: int = Field(ge=0)
    source: Optional[str] = None
    dependencies: Dict[str, str] = Field(default_factory=dict)
    url: Optional[str] = None


class LockFile(VendorRecord):
    dependencies: Dict[str, LockedDependency] = Field(default_factory=dict)


class EditorCatalogEntry(VendorRecord):
    """One package of the editor's built-in package manager catalog."""

    version: Optional[str] = None
    is_discoverable: Optional[bool] = Field(default=None, alias="isDiscoverable")
    is_default: Optional[bool] = Field(default=None, alias="isDefault")
    deprecated: Optional[Union[bool, str]] = None
    must_be_bundled: Optional[bool] = Field(default=None, alias="mustBeBundled")
    minimum_version: Optional[str] = Field(default=None, alias="minimumVersion")
    remove_on_project_upgrade: Optional[bool] = Field(default=None, alias="removeOnProjectUpgrade")
    source: Optional[str] = None

    @property
    def is_deprecated(self) -> bool:
        return self.deprecated not in (None, False, "")

    def is_default_candidate(self) -> bool:
        return (
            not self.is_deprecated
            and self.is_discoverable is True
            and self.is_default is True
            and bool(self.version)
        )


class EditorCatalog(VendorRecord):
    packages: Dict[str, EditorCatalogEntry] = Field(default_factory=dict)


class EditorVersionPackageList(BaseModel):
    """Per-editor-version package knowledge persisted between runs."""

    model_config = ConfigDict(populate_by_name=True)

    packages: Dict[str, LockedDependency] = Field(default_factory=dict)
    manifest_packages: Dict[str, EditorCatalogEntry] = Field(default_factory=dict, alias="manifestPackages")

    def source_of(self, name: str) -> Optional[str]:
        locked = self.packages.get(name)
        if locked is not None and locked.source:
            return locked.source
        entry = self.manifest_packages.get(name)
        if entry is not None and entry.source:
            return entry.source
        return None

    def is_embedded(self, name: str) -> bool:
        return self.source_of(name) == PackageSource.EMBEDDED.value

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ProjectManifest(VendorRecord):
    """``Packages/manifest.json``. Only ``dependencies`` is ever rewritten."""

    dependencies: Dict[str, str] = Field(default_factory=dict)

    @property
    def is_template_derived(self) -> bool:
        return bool((self.model_extra or {}).get("fromTemplate"))


class MinimalPackage(BaseModel):
    """Resolved, UI-facing package. For ``Local`` packages ``name`` is the path
    of the package's ``package.json``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    version: str = ""
    is_discoverable: bool = Field(default=False, alias="isDiscoverable")
    type: PackageType = PackageType.INTERNAL


class Template(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    version: str
    archive_path: Path = Field(alias="archivePath")
    editor_version: str = Field(alias="editorVersion")

    @property
    def file_name(self) -> str:
        return self.archive_path.name

    @property
    def key(self) -> str:
        return f"{self.name}-{self.version}"

    @classmethod
    def from_archive(cls, path: Path, editor_version: str) -> "Template":
        name, version = parse_archive_name(path)
        return cls(name=name, version=version, archive_path=Path(path), editor_version=editor_version)


class TemplateRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    descriptor: PackageDescriptor
    template: Template
    pipelines: List[RenderPipeline] = Field(default_factory=list)
    disk_size_bytes: int = Field(default=0, alias="diskSizeBytes")
    is_custom: bool = Field(default=False, alias="isCustom")


class FileNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    path: str
    is_dir: bool = Field(default=False, alias="isDir")
    children: List["FileNode"] = Field(default_factory=list)
    id: int = 0


FileNode.model_rebuild()


def parse_archive_name(path: Path) -> tuple[str, str]:
    """Split ``<name>-<version>.tgz`` on the last dash."""

    file_name = Path(path).name
    if not file_name.endswith(TEMPLATE_ARCHIVE_SUFFIX):
        raise InvalidFormatError("Invalid template file name", path=path)
    stem = file_name[: -len(TEMPLATE_ARCHIVE_SUFFIX)]
    name, sep, version = stem.rpartition("-")
    if not sep or not name or not version:
        raise InvalidFormatError("Invalid template file name", path=path)
    return name, version
