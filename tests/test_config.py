from pathlib import Path

import pytest

from template_forge.config import load_settings
from template_forge.errors import InvalidFormatError


def test_defaults_when_missing_file(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("FORGE_CONFIG_FILE", str(tmp_path / "missing.yaml"))
    settings = load_settings()
    assert settings.server.port == 8010
    assert settings.timeouts.editor_create_project == 900.0
    assert settings.defaults.company_name == "DefaultCompany"


def test_yaml_values_and_user_expansion(tmp_path: Path):
    cfg = tmp_path / "settings.yaml"
    cfg.write_text(
        "paths:\n  cache_dir: ~/forge-cache\ntimeouts:\n  editor_create_project: null\n"
        "defaults:\n  company_name: Acme\n",
        encoding="utf-8",
    )
    settings = load_settings(cfg)
    assert settings.paths.cache_dir == Path.home() / "forge-cache"
    assert settings.timeouts.editor_create_project is None
    assert settings.defaults.company_name == "Acme"


def test_env_overrides_yaml(monkeypatch, tmp_path: Path):
    cfg = tmp_path / "settings.yaml"
    cfg.write_text("server:\n  port: 9000\n  host: 0.0.0.0\n", encoding="utf-8")
    monkeypatch.setenv("FORGE_SERVER__PORT", "9100")
    settings = load_settings(cfg)
    assert settings.server.port == 9100
    assert settings.server.host == "0.0.0.0"


def test_corrupt_yaml(tmp_path: Path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("server: [this is: not valid", encoding="utf-8")
    with pytest.raises(InvalidFormatError):
        load_settings(bad)


def test_schema_violation(tmp_path: Path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("logging:\n  level: LOUD\n", encoding="utf-8")
    with pytest.raises(InvalidFormatError):
        load_settings(bad)
