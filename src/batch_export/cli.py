"""
Command-line entry point.

Usage:
    batch-export --uri mongodb://localhost:27017 --database shop --collection orders
    batch-export --lanes 4 --batch-size 50000 --export-dir /data/exports
    python -m batch_export          # prompts for connection target, database, collection

SIGINT/SIGTERM request a clean stop: each lane finishes its current batch,
checkpoints it and stops before its next fetch.
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from batch_export.config import ConfigState, get_config
from batch_export.exceptions import (
    CheckpointError,
    ConfigurationError,
    PartitionPlanError,
    SourceConnectionError,
)
from batch_export.infrastructure.observability import get_logger, setup_logging
from batch_export.ingestion.adapters import MongoRecordSource, mongo_json_encoder
from batch_export.orchestration import ExportCoordinator
from batch_export.storage import JsonBatchWriter

EXIT_STARTUP_FAILED = 2


def cli_logger():
    # Call after setup_logging: binding captures the active structlog configuration
    return get_logger(__name__, layer="cli", component="batch-export")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batch-export",
        description="Resumable export of a MongoDB collection into JSON batch files",
    )
    parser.add_argument("--uri", help="MongoDB connection string")
    parser.add_argument("--database", help="Database name")
    parser.add_argument("--collection", help="Collection name")
    parser.add_argument("--batch-size", type=int, help="Records per batch file")
    parser.add_argument("--lanes", type=int, help="Parallel lanes over disjoint key ranges")
    parser.add_argument("--export-dir", help="Output directory for batch files")
    parser.add_argument("--checkpoint-path", help="Checkpoint file location")
    parser.add_argument("--key-field", help="Unique, indexed ordering key (default _id)")
    parser.add_argument(
        "--key-type", choices=["objectid", "int", "str"], help="Type of the ordering key"
    )
    parser.add_argument("--config-dir", help="Directory containing export.yaml")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--log-file", help="Append logs to this file as well as stdout")
    parser.add_argument(
        "--json-logs", action="store_true", default=None, help="Emit JSON log lines"
    )
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict[str, Any]:
    """Map parsed flags onto the nested configuration layout."""
    mapping = {
        "uri": ("source", "uri"),
        "database": ("source", "database"),
        "collection": ("source", "collection"),
        "key_field": ("source", "key_field"),
        "key_type": ("source", "key_type"),
        "batch_size": ("export", "batch_size"),
        "lanes": ("export", "lane_count"),
        "export_dir": ("export", "export_dir"),
        "checkpoint_path": ("export", "checkpoint_path"),
        "log_level": ("logging", "level"),
        "log_file": ("logging", "log_file"),
        "json_logs": ("logging", "json_logs"),
    }
    overrides: dict[str, Any] = {}
    for attr, (section, key) in mapping.items():
        value = getattr(args, attr, None)
        if value is not None:
            overrides.setdefault(section, {})[key] = value
    return overrides


def prompt_missing(overrides: dict[str, Any], settings: ConfigState) -> dict[str, Any]:
    """Ask on stdin for connection inputs not supplied by config, env or flags."""
    source = overrides.setdefault("source", {})
    if "uri" not in source and settings.source.uri == "mongodb://localhost:27017":
        answer = input("Enter MongoDB connection string [mongodb://localhost:27017]: ")
        if answer.strip():
            source["uri"] = answer.strip()
    for field in settings.missing_source_fields():
        source[field] = input(f"Enter {field} name: ").strip()
    return overrides


def install_signal_handlers(cancel_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    logger = cli_logger()

    def request_stop(signum: int) -> None:
        logger.warning("stop_requested", signal=signal.Signals(signum).name)
        cancel_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, request_stop, signum)
        except (NotImplementedError, RuntimeError):
            # add_signal_handler is unavailable on Windows event loops
            signal.signal(signum, lambda s, f: loop.call_soon_threadsafe(request_stop, s))


async def run_export(settings: ConfigState) -> int:
    """Connect, run the coordinator and return the process exit code."""
    Path(settings.export.export_dir).mkdir(parents=True, exist_ok=True)

    cancel_event = asyncio.Event()
    install_signal_handlers(cancel_event)
    logger = cli_logger()

    source = MongoRecordSource.from_config(settings.source)
    try:
        await source.connect()
    except SourceConnectionError as e:
        logger.error("startup_failed", operation="connect", error=str(e))
        return EXIT_STARTUP_FAILED

    try:
        writer = JsonBatchWriter(
            settings.export.export_dir,
            encoder=mongo_json_encoder,
            indent=settings.export.indent,
        )
        try:
            coordinator = ExportCoordinator(
                source, settings, writer=writer, cancel_event=cancel_event
            )
            summary = await coordinator.run()
        except (ConfigurationError, PartitionPlanError, CheckpointError) as e:
            logger.error("startup_failed", operation="plan", error=str(e))
            return EXIT_STARTUP_FAILED
    finally:
        await source.close()

    logger.info(
        "total_time_taken",
        elapsed_seconds=round(summary.elapsed_seconds, 3),
        exit_code=summary.exit_code,
    )
    return summary.exit_code


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = overrides_from_args(args)

    try:
        settings = get_config(config_dir=args.config_dir, overrides=overrides)
        if settings.missing_source_fields() and sys.stdin.isatty():
            overrides = prompt_missing(overrides, settings)
            settings = get_config(config_dir=args.config_dir, overrides=overrides)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return EXIT_STARTUP_FAILED

    setup_logging(
        level=settings.logging.level,
        json_logs=settings.logging.json_logs,
        log_file=settings.logging.log_file,
    )

    logger = cli_logger()
    missing = settings.missing_source_fields()
    if missing:
        logger.error("startup_failed", operation="configure", missing=missing)
        return EXIT_STARTUP_FAILED

    logger.info(
        "logging_started",
        database=settings.source.database,
        collection=settings.source.collection,
    )
    return asyncio.run(run_export(settings))


if __name__ == "__main__":
    sys.exit(main())
