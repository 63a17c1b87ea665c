"""
Unified configuration state for the export engine.

This module provides a single source of truth for runtime configuration,
combining an optional YAML file with environment overrides, type validation,
and sensible defaults. Command-line flags are applied last by the entry point.
"""

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

KeyType = Literal["objectid", "int", "str"]


# =============================================================================
# PYDANTIC MODELS - Type-Safe Configuration
# =============================================================================


class SourceConfig(BaseModel):
    """Remote store connection and collection identity."""

    uri: str = Field(default="mongodb://localhost:27017")
    database: str = Field(default="")
    collection: str = Field(default="")
    key_field: str = Field(default="_id")
    key_type: KeyType = Field(default="objectid")
    server_selection_timeout_ms: int = Field(default=5000, ge=100)

    @field_validator("uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        """Only MongoDB connection strings are accepted."""
        if v.startswith(("mongodb://", "mongodb+srv://")):
            return v
        raise ValueError("Source URI must start with mongodb:// or mongodb+srv://")

    model_config = ConfigDict(extra="allow")


class ExportConfig(BaseModel):
    """Batching, parallelism and output locations."""

    batch_size: int = Field(default=100_000, ge=1)
    lane_count: int = Field(default=1, ge=1, le=64)
    export_dir: str = Field(default="exports")
    checkpoint_path: str = Field(default="last_id.txt")
    indent: int | None = Field(default=2, ge=0)

    model_config = ConfigDict(extra="allow")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)
    log_file: str | None = Field(default="export.log")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    model_config = ConfigDict(extra="allow")


class ConfigState(BaseModel):
    """
    Root configuration state - single source of truth for the export run.
    """

    source: SourceConfig = Field(default_factory=SourceConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Environment metadata
    env: str = Field(default="dev")
    config_dir: str = Field(default="./config")

    model_config = ConfigDict(extra="allow")

    def missing_source_fields(self) -> list[str]:
        """Names of connection inputs that still have to be supplied."""
        return [
            name
            for name in ("database", "collection")
            if not getattr(self.source, name)
        ]


# =============================================================================
# CONFIG LOADER - Clean, Validated Loading
# =============================================================================


class ConfigLoader:
    """
    Load and validate configuration from YAML files.

    Merges:
      1. Global defaults (hardcoded)
      2. export.yaml from config_dir
      3. env/<BATCH_EXPORT_ENV>.yaml
      4. Environment variable overrides
      5. Explicit overrides (command-line flags)
    """

    ENV_OVERRIDES: dict[str, tuple[str, str]] = {
        "MONGO_URI": ("source", "uri"),
        "MONGO_DATABASE": ("source", "database"),
        "MONGO_COLLECTION": ("source", "collection"),
        "EXPORT_BATCH_SIZE": ("export", "batch_size"),
        "EXPORT_LANES": ("export", "lane_count"),
        "EXPORT_DIR": ("export", "export_dir"),
        "EXPORT_CHECKPOINT_PATH": ("export", "checkpoint_path"),
        "LOG_LEVEL": ("logging", "level"),
    }

    def __init__(self, config_dir: str = "./config"):
        self.config_dir = Path(config_dir)
        self._yaml_cache: dict[Path, Any] = {}
        self.env = os.getenv("BATCH_EXPORT_ENV", "dev")

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        """Load YAML file with caching."""
        if path in self._yaml_cache:
            return self._yaml_cache[path]

        if not path.exists():
            logger.debug(f"Config file not found (using defaults): {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load {path}: {e}")
            return {}

        self._yaml_cache[path] = data
        logger.debug(f"Loaded config: {path}")
        return data

    def _apply_env_overrides(self, config: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variable overrides to config."""
        for env_name, (section, key) in self.ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                config.setdefault(section, {})[key] = value
        return config

    def _merge_dicts(self, base: dict, override: dict) -> dict:
        """Deep merge override into base dict."""
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    def load(self, overrides: dict[str, Any] | None = None) -> ConfigState:
        """
        Load complete configuration state.

        Args:
            overrides: Nested dict applied last (e.g. {"export": {"lane_count": 4}})

        Returns:
            ConfigState: Validated configuration object

        Raises:
            pydantic.ValidationError: If configuration is invalid
        """
        logger.info(f"Loading configuration from {self.config_dir} (env: {self.env})")

        config: dict[str, Any] = {}
        config = self._merge_dicts(config, self._load_yaml(self.config_dir / "export.yaml"))
        config = self._merge_dicts(
            config, self._load_yaml(self.config_dir / "env" / f"{self.env}.yaml")
        )
        config = self._apply_env_overrides(config)
        if overrides:
            config = self._merge_dicts(config, overrides)

        try:
            state = ConfigState(env=self.env, config_dir=str(self.config_dir), **config)
        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

        logger.info(
            f"Configuration loaded: batch_size={state.export.batch_size}, "
            f"lanes={state.export.lane_count}, export_dir={state.export.export_dir}"
        )
        return state


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================


def get_config(
    config_dir: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> ConfigState:
    """
    Load and return the configuration state.

    Args:
        config_dir: Override config directory. Defaults to $BATCH_EXPORT_CONFIG_DIR or ./config
        overrides: Nested overrides applied after environment variables

    Returns:
        ConfigState: Validated configuration object
    """
    if config_dir is None:
        config_dir = os.getenv("BATCH_EXPORT_CONFIG_DIR", "./config")
        if not Path(config_dir).exists():
            logger.debug(f"Config directory not found at {config_dir}, using defaults")

    loader = ConfigLoader(config_dir=config_dir)
    return loader.load(overrides=overrides)


__all__ = [
    "ConfigLoader",
    "ConfigState",
    "ExportConfig",
    "KeyType",
    "LoggingConfig",
    "SourceConfig",
    "get_config",
]
