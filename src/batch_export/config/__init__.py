"""Configuration package for batch_export."""

from .state import (
    ConfigLoader,
    ConfigState,
    ExportConfig,
    LoggingConfig,
    SourceConfig,
    get_config,
)

__all__ = [
    "ConfigLoader",
    "ConfigState",
    "ExportConfig",
    "LoggingConfig",
    "SourceConfig",
    "get_config",
]
