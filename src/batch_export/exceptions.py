"""
Exception hierarchy for the export engine.

Startup errors (connection, partition plan, configuration) abort before any
lane starts. Fetch and write errors are fatal to the owning lane only.
Checkpoint errors are reported by the lane as warnings.
"""

from typing import Any


class ExportError(Exception):
    """Base exception for export errors."""

    pass


class ConfigurationError(ExportError):
    """Invalid or inconsistent runtime configuration."""

    pass


class SourceConnectionError(ExportError):
    """Remote store unreachable or rejected the credentials."""

    pass


class FetchError(ExportError):
    """A page could not be retrieved or failed validation."""

    def __init__(self, message: str, cursor: Any = None):
        super().__init__(message)
        self.cursor = cursor


class BatchWriteError(ExportError):
    """A batch file could not be created or serialized."""

    def __init__(self, message: str, destination: str | None = None):
        super().__init__(message)
        self.destination = destination


class CheckpointError(ExportError):
    """Checkpoint or partition manifest could not be persisted."""

    pass


class PartitionPlanError(ExportError):
    """Stored partition plan does not match the requested run."""

    pass


__all__ = [
    "ExportError",
    "ConfigurationError",
    "SourceConnectionError",
    "FetchError",
    "BatchWriteError",
    "CheckpointError",
    "PartitionPlanError",
]
