from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import ConflictError
from ..packaging.archive import PROJECT_DATA_ROOT, TemplateArchive
from ..state.app_context import AppContext
from ..templates.manifest_writer import LOCK_FILE, MANIFEST_FILE, load_manifest, read_descriptor, write_manifest
from ..templates.models import EditorVersionPackageList, MinimalPackage, ProjectManifest
from .models import CopyReport, ProgressTracker, ProjectGenerationRequest, ProjectGenerationResult
from .project_structure import ProjectStructureGenerator
from .unity_cli import UnityEditorCLI

logger = logging.getLogger(__name__)

SCRATCH_DIR = "new_project_package"


def read_lock_text(packages_dir: Path) -> Optional[str]:
    lock = packages_dir / LOCK_FILE
    return lock.read_text(encoding="utf-8-sig") if lock.is_file() else None


class ProjectGenerator:
    """Creates a project from a template archive, or an empty one via the editor.

    Nothing is registered in the app context; callers do that with
    ``AppContext.add_project`` once generation succeeded.
    """

    def __init__(
        self,
        context: AppContext,
        cli: Optional[UnityEditorCLI] = None,
        progress: Optional[ProgressTracker] = None,
    ):
        self.context = context
        self.cli = cli or UnityEditorCLI(context.settings.timeouts.editor_create_project)
        self.structure = ProjectStructureGenerator()
        self.progress = progress or ProgressTracker()

    @property
    def scratch_dir(self) -> Path:
        return self.context.cache_dir / SCRATCH_DIR

    async def generate(self, request: ProjectGenerationRequest) -> ProjectGenerationResult:
        steps = ["validate", "materialize", "resolve", "populate", "finalize", "post-process"]
        self.progress.on_start(len(steps))
        completed = 0

        def bump(step_name: str):
            nonlocal completed
            completed += 1
            self.progress.on_step_complete(step_name, completed / len(steps))
            logger.info("[%s] %s done", request.name, step_name)

        try:
            output = Path(request.path).expanduser() / request.name
            if output.exists():
                raise ConflictError("Project already exists", path=output)
            bump("validate")

            report = CopyReport()
            if request.template is not None:
                data_root = self._extract(request)
                bump("materialize")
                manifest, cache = self._resolve_and_write(request, data_root / "Packages", output, data_root.parent)
                bump("resolve")
                output.mkdir(parents=True)
                self.structure.copy_tree(
                    data_root,
                    output,
                    selected=request.selected_files,
                    key_prefix=PROJECT_DATA_ROOT + "/",
                    report=report,
                )
                bump("populate")
                shutil.rmtree(self.scratch_dir, ignore_errors=True)
            else:
                editor = self.context.find_editor(request.editor_version)
                output.parent.mkdir(parents=True, exist_ok=True)
                await self.cli.create_project(editor.exe_path, output)
                bump("materialize")
                manifest, cache = self._resolve_and_write(request, output / "Packages", output, None)
                bump("resolve")
                bump("populate")

            self.structure.write_project_version(output, request.editor_version)
            self.structure.write_gitignore(output)
            final_manifest = load_manifest(output / "Packages" / MANIFEST_FILE)
            if not final_manifest.is_template_derived:
                self.structure.synthesize_lock(output / "Packages", manifest.dependencies, cache)
            bump("finalize")

            self.structure.apply_project_settings(
                output, self.context.settings.defaults.company_name, request.name
            )
            bump("post-process")

            if report.failures:
                logger.warning("%d files failed to copy into %s", len(report.failures), output)
            self.progress.on_complete(str(output))
            return ProjectGenerationResult(
                project_path=output,
                dependencies=dict(manifest.dependencies),
                copy_report=report,
            )
        except Exception as e:
            logger.exception("Project generation failed: %s", e)
            self.progress.on_error(e, recoverable=False)
            raise

    def _extract(self, request: ProjectGenerationRequest) -> Path:
        archive = TemplateArchive(request.template.archive_path)
        archive.extract_all(self.scratch_dir)
        return self.scratch_dir / PROJECT_DATA_ROOT

    def _resolve_and_write(
        self,
        request: ProjectGenerationRequest,
        packages_dir: Path,
        output: Path,
        package_root: Optional[Path],
    ) -> Tuple[ProjectManifest, EditorVersionPackageList]:
        """Resolve dependencies unless given, then rewrite the manifest.

        ``package_root`` is the extracted ``package/`` folder of a template, or
        ``None`` for an editor-created project.
        """

        packages: List[MinimalPackage]
        if request.packages is not None:
            packages = list(request.packages)
            cache = self.context.package_cache().read(request.editor_version)
        else:
            if package_root is not None:
                descriptor_path = package_root / "package.json"
                declared = read_descriptor(descriptor_path).dependencies if descriptor_path.is_file() else {}
            else:
                declared = load_manifest(packages_dir / MANIFEST_FILE).dependencies
            resolved = self.context.resolver().resolve(
                declared,
                read_lock_text(packages_dir),
                request.editor_version,
                for_manifest=True,
            )
            logger.debug("Excluded from manifest: %s", resolved.excluded)
            packages = resolved.to_minimal_packages()
            cache = resolved.cache

        manifest = write_manifest(
            packages_dir,
            packages,
            output,
            cache=cache,
            template_prefix=self.context.settings.defaults.template_package_prefix,
        )
        return manifest, cache
