import io
import json
import tarfile
from pathlib import Path
from typing import Dict, Optional, Union

import pytest

from template_forge.config import Settings
from template_forge.state.app_context import AppContext, Prefs
from template_forge.state.editors import discover_editors


EDITOR_VERSION = "2022.3.10f1"

CATALOG = {
    "packages": {
        "com.unity.ugui": {"version": "1.0.0", "isDiscoverable": True, "isDefault": True},
        "com.unity.timeline": {"version": "1.7.5", "isDiscoverable": True, "isDefault": True},
        "com.unity.modules.ai": {"version": "1.0.0", "isDiscoverable": False, "isDefault": True},
        "com.unity.old": {"version": "0.1.0", "isDiscoverable": True, "isDefault": True, "deprecated": True},
        "com.unity.inbox": {"version": "1.0.0", "source": "embedded", "isDiscoverable": True},
    }
}

PACKAGE_JSON = {
    "name": "com.unity.template.sample",
    "displayName": "Sample",
    "version": "1.0.0",
    "type": "template",
    "host": "hub",
    "unity": "2022.3",
    "description": "Sample template",
    "dependencies": {
        "com.unity.ugui": "1.0.0",
        "com.unity.render-pipelines.universal": "14.0.8",
    },
}

MANIFEST = {
    "dependencies": {"com.unity.ugui": "1.0.0"},
    "scopedRegistries": [{"name": "example", "url": "https://example.invalid"}],
}

LOCK = {
    "dependencies": {
        "com.unity.ugui": {"version": "1.0.2", "depth": 0, "source": "builtin", "dependencies": {}},
        "com.unity.render-pipelines.universal": {
            "version": "14.0.8",
            "depth": 0,
            "source": "builtin",
            "dependencies": {"com.unity.render-pipelines.core": "14.0.8"},
        },
        "com.unity.render-pipelines.core": {"version": "14.0.8", "depth": 1, "source": "builtin"},
    }
}

PROJECT_SETTINGS_ASSET = """%YAML 1.1
PlayerSettings:
  companyName: Unity Technologies
  productName: SampleTemplate
  defaultScreenWidth: 1024
"""


def build_archive(path: Path, files: Dict[str, Optional[Union[str, bytes]]]) -> Path:
    """Write a .tgz; a ``None`` value makes a directory entry."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            if content is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
                continue
            data = content.encode("utf-8") if isinstance(content, str) else content
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return path


def template_files(package_json=None, manifest=None, lock=None, extra=None) -> Dict[str, Optional[Union[str, bytes]]]:
    files: Dict[str, Optional[Union[str, bytes]]] = {
        "package": None,
        "package/package.json": json.dumps(package_json if package_json is not None else PACKAGE_JSON),
        "package/ProjectData~": None,
        "package/ProjectData~/Assets": None,
        "package/ProjectData~/Assets/Scenes/Main.unity": "scene",
        "package/ProjectData~/Assets/Scripts/Player.cs": "class Player {}",
        "package/ProjectData~/Packages/manifest.json": json.dumps(manifest if manifest is not None else MANIFEST),
        "package/ProjectData~/ProjectSettings/ProjectSettings.asset": PROJECT_SETTINGS_ASSET,
        "package/ProjectData~/Library/ArtifactDB": "cache",
    }
    if lock is not False:
        files["package/ProjectData~/Packages/packages-lock.json"] = json.dumps(lock if lock is not None else LOCK)
    files.update(extra or {})
    return files


@pytest.fixture
def make_template(tmp_path: Path):
    def _make(file_name: str = "com.unity.template.sample-1.0.0.tgz", directory: Optional[Path] = None, **kwargs) -> Path:
        directory = directory or tmp_path / "archives"
        return build_archive(directory / file_name, template_files(**kwargs))

    return _make


@pytest.fixture
def editors_dir(tmp_path: Path) -> Path:
    root = tmp_path / "editors"
    editor = root / EDITOR_VERSION / "Editor"
    editor.mkdir(parents=True)
    exe = editor / "Unity"
    exe.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    exe.chmod(0o755)
    catalog = editor / "Data" / "Resources" / "PackageManager" / "Editor" / "manifest.json"
    catalog.parent.mkdir(parents=True)
    catalog.write_text(json.dumps(CATALOG), encoding="utf-8")
    return root


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        paths={"cache_dir": str(tmp_path / "cache"), "config_dir": str(tmp_path / "config")},
        timeouts={"editor_create_project": 10},
    )


@pytest.fixture
def context(tmp_path: Path, settings: Settings, editors_dir: Path) -> AppContext:
    prefs = Prefs(
        new_project_path=tmp_path / "projects",
        hub_editors_path=editors_dir,
        hub_appdata_path=tmp_path / "appdata",
    )
    return AppContext(settings, prefs=prefs, editors=discover_editors(editors_dir))


@pytest.fixture
def editor(context: AppContext):
    return context.find_editor(EDITOR_VERSION)
