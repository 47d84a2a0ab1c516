from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..templates.models import MinimalPackage, PackageDescriptor, Template


@dataclass
class CopyFailure:
    source: str
    destination: str
    error: str


@dataclass
class CopyReport:
    """Per-file outcome of populating an output tree."""

    copied: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failures: List[CopyFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class ProjectGenerationRequest(BaseModel):
    """A new project at ``path/name``.

    Without ``template`` the editor creates an empty project. ``selected_files``
    are archive paths (``package/ProjectData~/...``) as returned by the file
    tree; a directory selects everything below it.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    path: Path
    editor_version: str = Field(alias="editorVersion", min_length=1)
    template: Optional[Template] = None
    packages: Optional[List[MinimalPackage]] = None
    selected_files: Optional[List[str]] = Field(default=None, alias="selectedFiles")


class ProjectGenerationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_path: Path = Field(alias="projectPath")
    dependencies: Dict[str, str] = Field(default_factory=dict)
    copy_report: CopyReport = Field(default_factory=CopyReport, alias="copyReport")


class TemplateGenerationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    display_name: Optional[str] = Field(default=None, alias="displayName")
    description: Optional[str] = None
    editor_version: str = Field(alias="editorVersion", min_length=1)
    template: Optional[Template] = None
    packages: Optional[List[MinimalPackage]] = None
    selected_files: Optional[List[str]] = Field(default=None, alias="selectedFiles")


class TemplateGenerationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    archive_path: Path = Field(alias="archivePath")
    descriptor: PackageDescriptor
    copy_report: CopyReport = Field(default_factory=CopyReport, alias="copyReport")


class ProgressTracker:
    """Simple callback-based progress tracker interface with safe no-ops."""

    def on_start(self, total_steps: int) -> None:  # pragma: no cover - interface
        pass

    def on_step_complete(self, step_name: str, progress: float) -> None:  # pragma: no cover - interface
        pass

    def on_error(self, error: Exception, recoverable: bool) -> None:  # pragma: no cover - interface
        pass

    def on_complete(self, output_path: str) -> None:  # pragma: no cover - interface
        pass
