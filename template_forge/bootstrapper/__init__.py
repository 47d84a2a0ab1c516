"""Bootstrapper package: generates projects and templates from template archives."""

from .models import (
    CopyFailure,
    CopyReport,
    ProgressTracker,
    ProjectGenerationRequest,
    ProjectGenerationResult,
    TemplateGenerationRequest,
    TemplateGenerationResult,
)
from .project_generator import ProjectGenerator
from .template_generator import TemplateGenerator
from .unity_cli import UnityEditorCLI
from .project_structure import ProjectStructureGenerator

__all__ = [
    "CopyFailure",
    "CopyReport",
    "ProgressTracker",
    "ProjectGenerationRequest",
    "ProjectGenerationResult",
    "TemplateGenerationRequest",
    "TemplateGenerationResult",
    "ProjectGenerator",
    "TemplateGenerator",
    "UnityEditorCLI",
    "ProjectStructureGenerator",
]
