from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..errors import ConflictError, NotFoundError
from ..packaging.archive import PACKAGE_ROOT, TemplateArchive, create_archive
from ..state.app_context import AppContext
from ..templates.manifest_writer import MANIFEST_FILE, load_manifest, read_descriptor, write_manifest
from ..templates.models import TEMPLATE_ARCHIVE_SUFFIX, MinimalPackage, PackageDescriptor
from ..templates.registry import TemplateRegistry
from .models import CopyReport, ProgressTracker, TemplateGenerationRequest, TemplateGenerationResult
from .project_generator import read_lock_text
from .project_structure import MANIFEST_REL, ProjectStructureGenerator

logger = logging.getLogger(__name__)

SCRATCH_DIR = "new_template_package"
OUTPUT_SCRATCH_DIR = "new_template_package_out"
TEMPLATE_TYPE = "template"
TEMPLATE_HOST = "hub"
# Build artefacts of a live project that never go into a template
LIVE_PROJECT_SKIP = ("Library", "Temp", "Logs")


def major_minor(editor_version: str) -> str:
    """``2022.3.10f1`` -> ``2022.3``."""

    parts = editor_version.split(".")
    return ".".join(parts[:2])


class TemplateGenerator:
    """Builds a redistributable template archive and registers it for an editor version."""

    def __init__(self, context: AppContext, progress: Optional[ProgressTracker] = None):
        self.context = context
        self.structure = ProjectStructureGenerator()
        self.progress = progress or ProgressTracker()

    @property
    def scratch_dir(self) -> Path:
        return self.context.cache_dir / SCRATCH_DIR

    @property
    def output_scratch_dir(self) -> Path:
        return self.context.cache_dir / OUTPUT_SCRATCH_DIR

    async def generate(self, request: TemplateGenerationRequest) -> TemplateGenerationResult:
        """Create a template from another template archive, or from an empty scaffold."""

        def materialize() -> Path:
            package_root = self.scratch_dir / PACKAGE_ROOT
            if request.template is not None:
                TemplateArchive(request.template.archive_path).extract_all(self.scratch_dir)
            else:
                self._reset(self.scratch_dir)
                self.structure.create_template_scaffold(package_root)
            return package_root

        def capture(package_root: Path) -> tuple[Dict[str, str], Optional[str]]:
            descriptor_path = package_root / "package.json"
            declared = read_descriptor(descriptor_path).dependencies if descriptor_path.is_file() else {}
            return declared, read_lock_text(package_root / "ProjectData~" / "Packages")

        return await self._run(request, materialize, capture, selection_applied=False, from_project=False)

    async def generate_from_project(
        self, project_path: str | Path, request: TemplateGenerationRequest
    ) -> TemplateGenerationResult:
        """Create a template from a live project on disk.

        ``request.selected_files`` are relative to the project root here.
        """

        project = Path(project_path)
        if not (project / "Packages" / MANIFEST_FILE).is_file():
            raise NotFoundError("Project has no Packages/manifest.json", path=project)
        fill_report = CopyReport()

        def materialize() -> Path:
            package_root = self.scratch_dir / PACKAGE_ROOT
            self._reset(self.scratch_dir)
            data_root = self.structure.create_template_scaffold(package_root)
            self.structure.copy_tree(
                project,
                data_root,
                selected=request.selected_files,
                skip=LIVE_PROJECT_SKIP,
                report=fill_report,
            )
            return package_root

        def capture(_: Path) -> tuple[Dict[str, str], Optional[str]]:
            declared = load_manifest(project / "Packages" / MANIFEST_FILE).dependencies
            return declared, read_lock_text(project / "Packages")

        result = await self._run(request, materialize, capture, selection_applied=True, from_project=True)
        result.copy_report.copied[:0] = fill_report.copied
        result.copy_report.skipped[:0] = fill_report.skipped
        result.copy_report.failures[:0] = fill_report.failures
        return result

    async def _run(self, request, materialize, capture, selection_applied: bool, from_project: bool):
        steps = ["validate", "materialize", "resolve", "describe", "populate", "compress", "register"]
        self.progress.on_start(len(steps))
        completed = 0

        def bump(step_name: str):
            nonlocal completed
            completed += 1
            self.progress.on_step_complete(step_name, completed / len(steps))
            logger.info("[%s-%s] %s done", request.name, request.version, step_name)

        try:
            templates_dir = self.context.templates_dir
            archive_path = templates_dir / f"{request.name}-{request.version}{TEMPLATE_ARCHIVE_SUFFIX}"
            if archive_path.exists():
                raise ConflictError("Template already exists", path=archive_path)
            bump("validate")

            package_root = materialize()
            data_root = package_root / "ProjectData~"
            bump("materialize")

            manifest_deps = self._resolve_and_write(request, data_root, capture(package_root))
            bump("resolve")

            descriptor = self._descriptor(request, manifest_deps, from_project)
            bump("describe")

            out_package = self.output_scratch_dir / PACKAGE_ROOT
            self._reset(self.output_scratch_dir)
            for p in [out_package / "ProjectData~" / "Assets", out_package / "ProjectData~" / "Packages"]:
                p.mkdir(parents=True, exist_ok=True)
            (out_package / "package.json").write_text(json.dumps(descriptor.dump(), indent=2), encoding="utf-8")
            report = self.structure.copy_tree(
                package_root,
                out_package,
                selected=None if selection_applied else request.selected_files,
                key_prefix=PACKAGE_ROOT + "/",
                always=(f"ProjectData~/{MANIFEST_REL}",),
                skip=("package.json", "ProjectData~/Library"),
            )
            bump("populate")

            create_archive(out_package, archive_path)
            shutil.rmtree(self.scratch_dir, ignore_errors=True)
            shutil.rmtree(self.output_scratch_dir, ignore_errors=True)
            bump("compress")

            TemplateRegistry(templates_dir).register(request.editor_version, request.name, request.version)
            bump("register")

            self.progress.on_complete(str(archive_path))
            return TemplateGenerationResult(archive_path=archive_path, descriptor=descriptor, copy_report=report)
        except Exception as e:
            logger.exception("Template generation failed: %s", e)
            self.progress.on_error(e, recoverable=False)
            raise

    def _resolve_and_write(
        self,
        request: TemplateGenerationRequest,
        data_root: Path,
        captured: tuple[Mapping[str, str], Optional[str]],
    ) -> Dict[str, str]:
        packages_dir = data_root / "Packages"
        packages: List[MinimalPackage]
        if request.packages is not None:
            packages = list(request.packages)
            cache = self.context.package_cache().read(request.editor_version)
        else:
            declared, lock_text = captured
            resolved = self.context.resolver().resolve(
                declared, lock_text, request.editor_version, for_manifest=True
            )
            packages = resolved.to_minimal_packages()
            cache = resolved.cache
        manifest = write_manifest(
            packages_dir,
            packages,
            data_root,
            cache=cache,
            template_prefix=self.context.settings.defaults.template_package_prefix,
        )
        return dict(manifest.dependencies)

    def _descriptor(
        self, request: TemplateGenerationRequest, dependencies: Dict[str, str], from_project: bool
    ) -> PackageDescriptor:
        descriptor = PackageDescriptor(
            name=request.name,
            display_name=request.display_name or request.name,
            version=request.version,
            type=TEMPLATE_TYPE,
            host=TEMPLATE_HOST,
            unity_version=major_minor(request.editor_version),
            description=request.description or "",
            dependencies=dependencies,
        )
        if from_project:
            descriptor.from_project = True
        return descriptor

    @staticmethod
    def _reset(directory: Path) -> None:
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True)
