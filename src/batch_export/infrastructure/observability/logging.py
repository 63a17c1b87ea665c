"""
Structured logging infrastructure for batch-export.
Provides consistent, machine-readable logs across all components.

Log Structure:
    {
        "app": "batch-export",         # Application identifier
        "layer": "orchestration",      # Architectural layer
        "component": "export-lane",    # Specific component
        "lane_id": 0,                  # Domain context
        "event": "batch_exported",     # What happened
        ...
    }

Architectural Layers:
    - infrastructure: Cross-cutting (checkpoints, config)
    - ingestion: Record source access and page fetching
    - storage: Batch file writing
    - orchestration: Lanes, partitioning, coordination
    - cli: Operator entry point
"""

import logging
import sys
from typing import Any, Literal

import structlog
from structlog.types import EventDict

Layer = Literal["infrastructure", "ingestion", "storage", "orchestration", "cli"]


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add the application identifier to every log entry."""
    event_dict["app"] = "batch-export"
    return event_dict


def add_severity_level(
    logger: Any, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Add severity level for cloud logging compatibility.
    Maps Python log levels to standard severity levels.
    """
    level = event_dict.get("level")
    if level:
        severity_map = {
            "debug": "DEBUG",
            "info": "INFO",
            "warning": "WARNING",
            "error": "ERROR",
            "critical": "CRITICAL",
        }
        event_dict["severity"] = severity_map.get(level, "INFO")
    return event_dict


def setup_logging(
    level: str = "INFO",
    json_logs: bool = True,
    include_timestamp: bool = True,
    log_file: str | None = None,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output JSON. If False, use human-readable format.
        include_timestamp: Whether to include ISO timestamps in logs
        log_file: Optional path; log lines are appended there as well as stdout

    Usage:
        >>> from batch_export.infrastructure.observability import setup_logging
        >>> setup_logging(level="DEBUG", json_logs=True, log_file="export.log")
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
        except OSError as e:
            print(
                f"Warning: failed to open log file {log_file} ({e}), using stdout only",
                file=sys.stderr,
            )

    logging.basicConfig(
        format="%(message)s",
        handlers=handlers,
        level=log_level,
        force=True,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_log_level,
        add_severity_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(
    name: str | None = None,
    layer: Layer | None = None,
    component: str | None = None,
    **initial_context: Any,
) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance with architectural context.

    Args:
        name: Logger name (typically __name__ of the calling module)
        layer: Architectural layer (infrastructure, ingestion, storage, ...)
        component: Specific component within the layer
        **initial_context: Additional context key-value pairs to bind to logger

    Usage:
        >>> log = get_logger(__name__, layer="orchestration", component="export-lane", lane_id=0)
        >>> log.info("batch_exported", records=100000)
    """
    logger = structlog.get_logger(name)

    context = {}

    if layer:
        context["layer"] = layer

    if component:
        context["component"] = component

    if name:
        context["module"] = name

    context.update(initial_context)

    if context:
        logger = logger.bind(**context)

    return logger


# ============================================================================
# Layer-Specific Logger Factories
# ============================================================================


def get_infrastructure_logger(
    component: str,
    **context: Any,
) -> structlog.stdlib.BoundLogger:
    """
    Get a logger for infrastructure layer (checkpoints, config).

    Usage:
        >>> log = get_infrastructure_logger("checkpoint-store", path="last_id.txt")
        >>> log.info("checkpoint_saved", cursor="65f0c0ffee...")
    """
    return get_logger(
        "infrastructure",
        layer="infrastructure",
        component=component,
        **context,
    )


def get_ingestion_logger(
    component: str,
    collection: str | None = None,
    **context: Any,
) -> structlog.stdlib.BoundLogger:
    """
    Get a logger for ingestion layer (record source, page fetcher).

    Args:
        component: Component name (e.g., "mongo-source", "page-fetcher")
        collection: Collection identifier - optional
        **context: Additional context
    """
    ctx = {}
    if collection:
        ctx["collection"] = collection
    ctx.update(context)

    return get_logger(
        "ingestion",
        layer="ingestion",
        component=component,
        **ctx,
    )


def get_storage_logger(
    component: str,
    **context: Any,
) -> structlog.stdlib.BoundLogger:
    """Get a logger for storage layer (batch writer)."""
    return get_logger(
        "storage",
        layer="storage",
        component=component,
        **context,
    )


def get_orchestration_logger(
    component: str,
    lane_id: int | None = None,
    **context: Any,
) -> structlog.stdlib.BoundLogger:
    """
    Get a logger for orchestration layer (lanes, partitioner, coordinator).

    Usage:
        >>> log = get_orchestration_logger("export-lane", lane_id=1)
        >>> log.warning("checkpoint_save_failed", cursor="...", error="disk full")
    """
    ctx: dict[str, Any] = {}
    if lane_id is not None:
        ctx["lane_id"] = lane_id
    ctx.update(context)

    return get_logger(
        "orchestration",
        layer="orchestration",
        component=component,
        **ctx,
    )
