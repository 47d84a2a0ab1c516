"""Configuration management for template-forge."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import InvalidFormatError

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV = "FORGE_CONFIG_FILE"


class ServerConfig(BaseModel):
    """Command layer bind address."""

    model_config = ConfigDict(extra="forbid")

    host: str = "127.0.0.1"
    port: int = 8010


class PathsConfig(BaseModel):
    """Filesystem locations owned by template-forge.

    Attributes:
        cache_dir: Scratch directories, the package cache and inspected
            template descriptors live here.
        config_dir: Where prefs.json is stored.
    """

    model_config = ConfigDict(extra="forbid")

    cache_dir: Path = Field(default_factory=lambda: Path.home() / ".cache" / "template-forge")
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config" / "template-forge")

    @field_validator("cache_dir", "config_dir")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return Path(value).expanduser()


class LoggingConfig(BaseModel):
    """Logging configuration for the app."""

    model_config = ConfigDict(extra="forbid")

    level: str = Field(default="INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    file: Optional[Path] = None


class TimeoutsConfig(BaseModel):
    """Timeouts in seconds. ``None`` waits forever."""

    model_config = ConfigDict(extra="forbid")

    editor_create_project: Optional[float] = 900.0


class DefaultsConfig(BaseModel):
    """Values stamped into generated projects."""

    model_config = ConfigDict(extra="forbid")

    company_name: str = "DefaultCompany"
    template_package_prefix: str = "com.unity.template"


class Settings(BaseSettings):
    """Main settings class with YAML and environment variable support.

    Environment variables (``FORGE_`` prefix, ``__`` between nested keys) win
    over values read from YAML.
    """

    model_config = SettingsConfigDict(
        env_prefix="FORGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML values arrive as init kwargs; environment overrides them
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def default_config_path() -> Path:
    env = os.getenv(CONFIG_FILE_ENV)
    if env:
        return Path(env)
    return Path.cwd() / "config" / "settings.yaml"


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from a YAML file and environment variables.

    Args:
        config_path: Explicit YAML file. Defaults to ``$FORGE_CONFIG_FILE`` or
            ``./config/settings.yaml``.

    Returns:
        Settings: Validated configuration.

    Raises:
        InvalidFormatError: The file exists but is not valid YAML or does not
            match the schema.
    """

    path = Path(config_path) if config_path else default_config_path()
    yaml_config: Dict[str, Any] = {}

    if path.exists():
        logger.info("Loading configuration from %s", path)
        try:
            with path.open("r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise InvalidFormatError(f"Invalid YAML in configuration: {e}", path=path) from e
        if not isinstance(loaded, dict):
            raise InvalidFormatError("Configuration root must be a mapping", path=path)
        yaml_config = loaded
    else:
        logger.warning("Config file not found: %s. Using default configuration.", path)

    try:
        settings = Settings(**yaml_config)
    except ValidationError as e:
        raise InvalidFormatError(f"Invalid configuration schema: {e}", path=path) from e

    logger.debug(
        "Active config -> cache_dir: %s, editor timeout: %s",
        settings.paths.cache_dir,
        settings.timeouts.editor_create_project,
    )
    return settings
