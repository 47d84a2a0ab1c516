import json
from pathlib import Path

import pytest

from template_forge.errors import InvalidFormatError, NotFoundError
from template_forge.templates.catalog import TemplateCatalog, build_file_tree, detect_pipelines
from template_forge.templates.models import PackageType, RenderPipeline, Template
from template_forge.templates.registry import TemplateRegistry

from conftest import EDITOR_VERSION


@pytest.fixture
def catalog(context) -> TemplateCatalog:
    return TemplateCatalog(context)


def test_detect_pipelines():
    assert detect_pipelines({}) == [RenderPipeline.BUILT_IN]
    assert detect_pipelines({"com.unity.render-pipelines.universal": "14"}) == [RenderPipeline.URP]
    assert detect_pipelines(
        {"com.unity.render-pipelines.high-definition": "14", "com.unity.render-pipelines.core": "14"}
    ) == [RenderPipeline.HDRP, RenderPipeline.CUSTOM]


def test_core_and_user_templates(catalog, context, editor, make_template):
    make_template("com.unity.template.3d-8.1.0.tgz", directory=editor.templates_dir)
    make_template("not-a-template.txt", directory=editor.templates_dir)
    make_template("com.me.registered-1.0.0.tgz", directory=context.templates_dir)
    make_template("com.me.stray-1.0.0.tgz", directory=context.templates_dir)
    TemplateRegistry(context.templates_dir).register(EDITOR_VERSION, "com.me.registered", "1.0.0")

    core = catalog.core_templates(EDITOR_VERSION)
    assert [(t.name, t.version) for t in core] == [("com.unity.template.3d", "8.1.0")]
    user = catalog.user_templates(EDITOR_VERSION)
    assert [t.name for t in user] == ["com.me.registered"]
    assert [t.name for t in catalog.list_templates(EDITOR_VERSION)] == ["com.unity.template.3d", "com.me.registered"]


def test_core_templates_for_unknown_editor(catalog):
    with pytest.raises(NotFoundError):
        catalog.core_templates("1.0.0f1")


def test_inspect_resolves_and_caches_descriptor(catalog, context, make_template):
    template = Template.from_archive(make_template(), EDITOR_VERSION)
    record = catalog.inspect(template)

    assert record.descriptor.dependencies == {
        "com.unity.ugui": "1.0.2",
        "com.unity.render-pipelines.universal": "14.0.8",
    }
    assert record.pipelines == [RenderPipeline.URP]
    assert record.disk_size_bytes == template.archive_path.stat().st_size
    assert record.is_custom is False

    cached = context.cache_dir / "templates" / template.file_name / "package.json"
    assert json.loads(cached.read_text(encoding="utf-8"))["dependencies"] == record.descriptor.dependencies

    # the cached descriptor is reused even once the archive changes
    cached.write_text(json.dumps({"name": "cached", "dependencies": {}}), encoding="utf-8")
    assert catalog.inspect(template).descriptor.name == "cached"


def test_inspect_archive_without_descriptor(catalog, tmp_path: Path):
    from conftest import build_archive

    path = build_archive(tmp_path / "empty-1.0.0.tgz", {"package/ProjectData~/Assets/a.txt": "a"})
    with pytest.raises(InvalidFormatError):
        catalog.inspect(Template.from_archive(path, EDITOR_VERSION))


def test_file_tree(catalog, make_template):
    tree = catalog.file_tree(Template.from_archive(make_template(), EDITOR_VERSION))
    assert tree.name == "package" and tree.id == 0
    top = [c.name for c in tree.children]
    assert top == ["ProjectData~", "package.json"]
    project_data = tree.children[0]
    assert [c.name for c in project_data.children] == ["Assets", "Packages", "ProjectSettings"]

    ids = []

    def walk(node):
        ids.append(node.id)
        for child in node.children:
            walk(child)

    walk(tree)
    assert ids == list(range(len(ids)))


def test_file_tree_builds_missing_directories():
    tree = build_file_tree([("package/a/b/c.txt", False)])
    a = tree.children[0]
    assert a.is_dir and a.path == "package/a"
    assert a.children[0].children[0].path == "package/a/b/c.txt"


def test_delete_removes_archive_and_registry_entry(catalog, context, make_template):
    path = make_template("com.me.gone-1.0.0.tgz", directory=context.templates_dir)
    registry = TemplateRegistry(context.templates_dir)
    registry.register(EDITOR_VERSION, "com.me.gone", "1.0.0")
    template = Template.from_archive(path, EDITOR_VERSION)
    catalog.inspect(template)

    catalog.delete(template)
    assert not path.exists()
    assert registry.templates_for(EDITOR_VERSION) == {}
    assert not registry.is_custom("com.me.gone", "1.0.0")
    assert not (context.cache_dir / "templates" / template.file_name).exists()

    with pytest.raises(NotFoundError):
        catalog.delete(template)


def test_clear_cache(catalog, context, make_template):
    catalog.inspect(Template.from_archive(make_template(), EDITOR_VERSION))
    assert (context.cache_dir / "templates").exists()
    catalog.clear_cache()
    assert not (context.cache_dir / "templates").exists()


def test_default_editor_packages(catalog):
    packages = catalog.default_editor_packages(EDITOR_VERSION)
    names = [p.name for p in packages]
    assert names == sorted(names)
    by_name = {p.name: p for p in packages}
    assert by_name["com.unity.ugui"].type == PackageType.DEFAULT
    assert by_name["com.unity.inbox"].type == PackageType.INTERNAL
    assert by_name["com.unity.modules.ai"].is_discoverable is False
