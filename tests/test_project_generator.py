import asyncio
import json
import shutil
from pathlib import Path

import pytest

from template_forge.bootstrapper import ProgressTracker, ProjectGenerationRequest, ProjectGenerator
from template_forge.errors import ConflictError, InvalidArchiveError
from template_forge.templates.models import MinimalPackage, Template

from conftest import EDITOR_VERSION, MANIFEST


class RecordingTracker(ProgressTracker):
    def __init__(self):
        self.steps = []
        self.completed = None
        self.errors = []

    def on_step_complete(self, step_name, progress):
        self.steps.append(step_name)

    def on_error(self, error, recoverable):
        self.errors.append(error)

    def on_complete(self, output_path):
        self.completed = output_path


def request_for(archive: Path, out: Path, **kwargs) -> ProjectGenerationRequest:
    return ProjectGenerationRequest(
        name="MyGame",
        path=out,
        editor_version=EDITOR_VERSION,
        template=Template.from_archive(archive, EDITOR_VERSION),
        **kwargs,
    )


def snapshot(root: Path):
    return {p.relative_to(root).as_posix(): p.read_bytes() for p in root.rglob("*") if p.is_file()}


def test_generates_project_from_template(context, make_template, tmp_path: Path):
    tracker = RecordingTracker()
    result = asyncio.run(ProjectGenerator(context, progress=tracker).generate(request_for(make_template(), tmp_path / "out")))

    project = tmp_path / "out" / "MyGame"
    assert result.project_path == project
    assert result.dependencies == {"com.unity.ugui": "1.0.2", "com.unity.render-pipelines.universal": "14.0.8"}

    manifest = json.loads((project / "Packages" / "manifest.json").read_text(encoding="utf-8"))
    assert manifest["dependencies"] == result.dependencies
    assert manifest["scopedRegistries"] == MANIFEST["scopedRegistries"]

    assert (project / "Assets" / "Scenes" / "Main.unity").read_text() == "scene"
    assert not (project / "Library").exists()
    assert (project / "ProjectSettings" / "ProjectVersion.txt").read_text() == f"m_EditorVersion: {EDITOR_VERSION}"
    assert "Library/" in (project / ".gitignore").read_text()

    settings_asset = (project / "ProjectSettings" / "ProjectSettings.asset").read_text()
    assert "companyName: DefaultCompany" in settings_asset
    assert "productName: MyGame" in settings_asset

    lock = json.loads((project / "Packages" / "packages-lock.json").read_text(encoding="utf-8"))
    assert set(lock["dependencies"]) == set(result.dependencies)

    assert result.copy_report.ok
    assert "Packages/manifest.json" in result.copy_report.copied
    assert not (context.cache_dir / "new_project_package").exists()
    assert tracker.steps == ["validate", "materialize", "resolve", "populate", "finalize", "post-process"]
    assert tracker.completed == str(project)


def test_second_generation_conflicts_and_leaves_first_tree(context, make_template, tmp_path: Path):
    generator = ProjectGenerator(context)
    request = request_for(make_template(), tmp_path / "out")
    asyncio.run(generator.generate(request))
    before = snapshot(tmp_path / "out" / "MyGame")

    with pytest.raises(ConflictError):
        asyncio.run(generator.generate(request))
    assert snapshot(tmp_path / "out" / "MyGame") == before


def test_selected_files_limit_the_copy(context, make_template, tmp_path: Path):
    request = request_for(
        make_template(), tmp_path / "out", selected_files=["package/ProjectData~/Assets/Scenes"]
    )
    result = asyncio.run(ProjectGenerator(context).generate(request))
    project = result.project_path

    assert (project / "Assets" / "Scenes" / "Main.unity").exists()
    assert not (project / "Assets" / "Scripts" / "Player.cs").exists()
    assert (project / "Packages" / "manifest.json").exists()
    assert not (project / "ProjectSettings" / "ProjectSettings.asset").exists()
    assert "Assets/Scripts/Player.cs" in result.copy_report.skipped


def test_template_derived_manifest_gets_no_lock(context, make_template, tmp_path: Path):
    archive = make_template(manifest={"dependencies": {}, "fromTemplate": True})
    result = asyncio.run(ProjectGenerator(context).generate(request_for(archive, tmp_path / "out")))
    assert not (result.project_path / "Packages" / "packages-lock.json").exists()


def test_explicit_packages_skip_resolution(context, make_template, tmp_path: Path):
    request = request_for(
        make_template(),
        tmp_path / "out",
        packages=[MinimalPackage(name="com.unity.ugui", version="2.0.0")],
    )
    result = asyncio.run(ProjectGenerator(context).generate(request))
    assert result.dependencies == {"com.unity.ugui": "2.0.0"}


def test_corrupt_template_aborts(context, tmp_path: Path):
    bad = tmp_path / "archives" / "broken-1.0.0.tgz"
    bad.parent.mkdir(parents=True)
    bad.write_bytes(b"\x1f\x8b garbage")
    tracker = RecordingTracker()
    with pytest.raises(InvalidArchiveError):
        asyncio.run(ProjectGenerator(context, progress=tracker).generate(request_for(bad, tmp_path / "out")))
    assert not (tmp_path / "out" / "MyGame").exists()
    assert len(tracker.errors) == 1


def test_copy_failure_is_reported_and_generation_continues(context, make_template, tmp_path: Path, monkeypatch):
    real_copy2 = shutil.copy2

    def flaky_copy2(src, dst, *args, **kwargs):
        if Path(src).name == "Main.unity":
            raise PermissionError(13, "Permission denied", str(src))
        return real_copy2(src, dst, *args, **kwargs)

    monkeypatch.setattr(shutil, "copy2", flaky_copy2)
    result = asyncio.run(ProjectGenerator(context).generate(request_for(make_template(), tmp_path / "out")))

    project = tmp_path / "out" / "MyGame"
    assert not result.copy_report.ok
    [failure] = result.copy_report.failures
    assert failure.source.endswith("Main.unity")
    assert failure.destination == str(project / "Assets" / "Scenes" / "Main.unity")
    assert "Permission denied" in failure.error
    assert not (project / "Assets" / "Scenes" / "Main.unity").exists()
    assert (project / "ProjectSettings" / "ProjectSettings.asset").exists()
    assert json.loads((project / "Packages" / "manifest.json").read_text(encoding="utf-8"))["dependencies"] == result.dependencies
