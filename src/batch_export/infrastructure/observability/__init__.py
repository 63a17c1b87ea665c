"""
Observability for the export engine: structured, machine-readable logs with
lane, operation and cursor context on every event, so an interrupted run can
be diagnosed and resumed from the log alone.
"""

from .logging import (
    # Layer-specific logger factories
    get_infrastructure_logger,
    get_ingestion_logger,
    # Base logger factory
    get_logger,
    get_orchestration_logger,
    get_storage_logger,
    # Setup
    setup_logging,
)

__all__ = [
    # Setup
    "setup_logging",
    # Base
    "get_logger",
    # Layer-specific
    "get_infrastructure_logger",
    "get_ingestion_logger",
    "get_orchestration_logger",
    "get_storage_logger",
]
