import json
from pathlib import Path

import pytest

from template_forge.errors import InvalidFormatError, NotFoundError
from template_forge.state.app_context import AppContext, Prefs, Project, load_prefs, load_user_cache
from template_forge.state.editors import discover_editors, read_editor_catalog, version_sort_key
from template_forge.templates.models import MinimalPackage, PackageType


def make_editor(root: Path, version: str, modules=None) -> Path:
    exe = root / version / "Editor" / "Unity"
    exe.parent.mkdir(parents=True)
    exe.write_text("", encoding="utf-8")
    if modules is not None:
        (root / version / "modules.json").write_text(json.dumps(modules), encoding="utf-8")
    return exe


def test_version_sort_key():
    assert version_sort_key("2022.3.10f1") == (2022, 3, 10, 1)
    assert version_sort_key("2022.3.9f1") < version_sort_key("2022.3.10f1")


def test_discover_editors_newest_first(tmp_path: Path):
    make_editor(tmp_path, "2021.3.5f1")
    make_editor(tmp_path, "2022.3.10f1", modules=[{"id": "android", "selected": True}])
    make_editor(tmp_path, "2022.3.9f1")
    (tmp_path / "not-an-editor").mkdir()

    editors = discover_editors(tmp_path)
    assert [e.version for e in editors] == ["2022.3.10f1", "2022.3.9f1", "2021.3.5f1"]
    assert editors[0].modules == [{"id": "android", "selected": True}]
    assert editors[0].catalog_path == tmp_path / "2022.3.10f1" / "Editor" / "Data" / "Resources" / "PackageManager" / "Editor" / "manifest.json"


def test_discover_missing_directory(tmp_path: Path):
    assert discover_editors(tmp_path / "missing") == []


def test_read_editor_catalog_errors(tmp_path: Path):
    make_editor(tmp_path, "2022.3.10f1")
    editor = discover_editors(tmp_path)[0]
    with pytest.raises(NotFoundError):
        read_editor_catalog(editor)
    editor.catalog_path.parent.mkdir(parents=True)
    editor.catalog_path.write_text("{oops", encoding="utf-8")
    with pytest.raises(InvalidFormatError):
        read_editor_catalog(editor)


def test_invalid_prefs_are_replaced_with_defaults(tmp_path: Path):
    path = tmp_path / "prefs.json"
    path.write_text("not json", encoding="utf-8")
    prefs = load_prefs(path)
    assert prefs == Prefs()
    assert json.loads(path.read_text(encoding="utf-8"))["hubEditorsPath"]


def test_find_editor(context):
    with pytest.raises(NotFoundError):
        context.find_editor("1.0.0f1")


def test_add_project_persists(settings, tmp_path: Path):
    context = AppContext.load(settings)
    context.add_project(Project(path=tmp_path / "a", editor_version="2022.3.10f1"))
    context.add_project(Project(path=tmp_path / "a", editor_version="2022.3.11f1"))

    reloaded = AppContext.load(settings)
    assert [(p.path, p.editor_version) for p in reloaded.projects()] == [(tmp_path / "a", "2022.3.11f1")]


def test_templates_dir_requires_appdata(settings):
    context = AppContext(settings, prefs=Prefs(hub_appdata_path=None))
    with pytest.raises(NotFoundError):
        context.templates_dir


def local_descriptor(root: Path, name: str) -> Path:
    path = root / name / "package.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"name": name, "version": "1.0.0"}), encoding="utf-8")
    return path


def test_user_cache_add_remove_persists(settings, tmp_path: Path):
    context = AppContext.load(settings)
    tool = local_descriptor(tmp_path / "pkgs", "com.me.tool")
    context.add_git_package(MinimalPackage(name="com.me.git", version="https://example.com/git.git#v1"))
    context.add_git_package(MinimalPackage(name="com.me.git", version="https://example.com/git.git#v2"))
    context.add_local_package(MinimalPackage(name=str(tool)))
    context.set_last_editor_version("2022.3.10f1")

    reloaded = AppContext.load(settings).user_cache()
    assert reloaded.last_editor_version == "2022.3.10f1"
    assert [(p.version, p.type) for p in reloaded.git_packages] == [("https://example.com/git.git#v2", PackageType.GIT)]
    assert [(p.name, p.type) for p in reloaded.local_packages] == [(str(tool), PackageType.LOCAL)]

    context.remove_git_package(MinimalPackage(name="com.me.git", version="https://example.com/git.git#v1"))
    assert len(context.user_cache().git_packages) == 1
    context.remove_git_package(MinimalPackage(name="com.me.git", version="https://example.com/git.git#v2"))
    context.remove_local_package(MinimalPackage(name=str(tool)))
    final = AppContext.load(settings).user_cache()
    assert (final.last_editor_version, final.git_packages, final.local_packages) == ("2022.3.10f1", [], [])


def test_user_cache_prunes_missing_local_packages(settings, tmp_path: Path):
    context = AppContext.load(settings)
    kept = local_descriptor(tmp_path / "pkgs", "com.me.kept")
    gone = local_descriptor(tmp_path / "pkgs", "com.me.gone")
    context.add_local_package(MinimalPackage(name=str(kept)))
    context.add_local_package(MinimalPackage(name=str(gone)))
    gone.unlink()

    assert [p.name for p in context.user_cache().local_packages] == [str(kept)]
    on_disk = load_user_cache(Path(settings.paths.config_dir) / "user_cache.json")
    assert [p.name for p in on_disk.local_packages] == [str(kept)]


def test_user_cache_snapshot_is_a_copy(context):
    snapshot = context.user_cache()
    snapshot.git_packages.append(MinimalPackage(name="x"))
    assert context.user_cache().git_packages == []


def test_corrupt_user_cache_starts_empty(tmp_path: Path):
    path = tmp_path / "user_cache.json"
    path.write_text('{"gitPackages": 3}', encoding="utf-8")
    cache = load_user_cache(path)
    assert cache.git_packages == [] and cache.local_packages == [] and cache.last_editor_version is None
