"""
Tests for setup_logging() and the layer logger factories.

setup_logging() configures both stdlib logging and structlog; everything the
export engine reports (lane progress, failures, the final summary) goes
through it.
"""

import json
import logging
from io import StringIO

import pytest
import structlog

from batch_export.infrastructure.observability import (
    get_infrastructure_logger,
    get_ingestion_logger,
    get_logger,
    get_orchestration_logger,
    get_storage_logger,
    setup_logging,
)


@pytest.fixture
def clean_logging():
    """
    Reset logging between tests.

    structlog and logging both keep global state.
    """
    original_handlers = logging.root.handlers[:]

    logging.root.handlers = []
    logging.root.setLevel(logging.WARNING)
    structlog.reset_defaults()

    yield

    for handler in logging.root.handlers:
        handler.close()
    logging.root.handlers = []
    logging.root.setLevel(logging.WARNING)
    structlog.reset_defaults()

    logging.root.handlers = original_handlers


@pytest.fixture
def captured(clean_logging):
    """Configure JSON logging and return a buffer receiving every line."""
    setup_logging(level="DEBUG", json_logs=True)

    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logging.root.addHandler(handler)

    yield buffer

    logging.root.removeHandler(handler)


def parse_lines(buffer):
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line.strip()]


class TestSetupLogging:
    def test_json_mode(self, captured):
        structlog.get_logger("test_json").info("json_test_event", value=123)

        parsed = parse_lines(captured)[-1]
        assert parsed["event"] == "json_test_event"
        assert parsed["value"] == 123
        assert parsed["app"] == "batch-export"
        assert parsed["severity"] == "INFO"
        assert "timestamp" in parsed

    def test_text_mode(self, clean_logging):
        setup_logging(level="INFO", json_logs=False)
        assert structlog.is_configured()

        buffer = StringIO()
        handler = logging.StreamHandler(buffer)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logging.root.addHandler(handler)
        try:
            structlog.get_logger("test_text").info("text_test_event", value=456)
            output = buffer.getvalue()
            assert "text_test_event" in output
            assert "value=456" in output
        finally:
            logging.root.removeHandler(handler)

    @pytest.mark.parametrize("level", ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    def test_root_level(self, clean_logging, level):
        setup_logging(level=level, json_logs=True)
        assert logging.root.level == getattr(logging, level)

    def test_lowercase_level(self, clean_logging):
        setup_logging(level="warning", json_logs=True)
        assert logging.root.level == logging.WARNING

    def test_invalid_level_falls_back_to_info(self, clean_logging):
        setup_logging(level="INVALID_LEVEL", json_logs=True)
        assert logging.root.level == logging.INFO

    def test_without_timestamp(self, clean_logging):
        setup_logging(level="INFO", json_logs=True, include_timestamp=False)
        buffer = StringIO()
        handler = logging.StreamHandler(buffer)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logging.root.addHandler(handler)
        try:
            structlog.get_logger("test_no_ts").info("no_timestamp_test")
            parsed = parse_lines(buffer)[-1]
            assert parsed["event"] == "no_timestamp_test"
            assert "timestamp" not in parsed
        finally:
            logging.root.removeHandler(handler)

    def test_log_file_receives_lines(self, clean_logging, tmp_path):
        log_file = tmp_path / "export.log"
        setup_logging(level="INFO", json_logs=True, log_file=str(log_file))

        structlog.get_logger("test_file").info("logging_started", collection="orders")
        for handler in logging.root.handlers:
            handler.flush()

        parsed = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert parsed["event"] == "logging_started"
        assert parsed["collection"] == "orders"

    def test_unopenable_log_file_falls_back_to_stdout(self, clean_logging, tmp_path, capsys):
        setup_logging(level="INFO", json_logs=True, log_file=str(tmp_path / "no" / "x.log"))

        assert "failed to open log file" in capsys.readouterr().err
        assert not any(isinstance(h, logging.FileHandler) for h in logging.root.handlers)

    def test_special_characters(self, captured):
        get_logger("special").info("special_char_test", city="São Paulo ☕", raw='a"b\nc')

        parsed = parse_lines(captured)[-1]
        assert parsed["city"] == "São Paulo ☕"
        assert parsed["raw"] == 'a"b\nc'


class TestLayerLoggers:
    def test_get_logger_binds_context(self, captured):
        get_logger("mod", layer="cli", component="batch-export", run="r1").info("hello")

        parsed = parse_lines(captured)[-1]
        assert parsed["layer"] == "cli"
        assert parsed["component"] == "batch-export"
        assert parsed["module"] == "mod"
        assert parsed["run"] == "r1"

    def test_orchestration_logger_carries_lane_id(self, captured):
        get_orchestration_logger("export-lane", lane_id=3).warning("checkpoint_save_failed")

        parsed = parse_lines(captured)[-1]
        assert parsed["layer"] == "orchestration"
        assert parsed["lane_id"] == 3
        assert parsed["severity"] == "WARNING"

    def test_orchestration_logger_lane_zero_is_kept(self, captured):
        get_orchestration_logger("export-lane", lane_id=0).info("lane_started")
        assert parse_lines(captured)[-1]["lane_id"] == 0

    def test_ingestion_logger_collection(self, captured):
        get_ingestion_logger("mongo-source", collection="shop.orders").info("connected")

        parsed = parse_lines(captured)[-1]
        assert parsed["layer"] == "ingestion"
        assert parsed["collection"] == "shop.orders"

    def test_storage_and_infrastructure_layers(self, captured):
        get_storage_logger("json-batch-writer").debug("batch_file_written")
        get_infrastructure_logger("checkpoint-store").error("checkpoint_save_failed")

        storage, infra = parse_lines(captured)[-2:]
        assert storage["layer"] == "storage"
        assert infra["layer"] == "infrastructure"
        assert infra["severity"] == "ERROR"
