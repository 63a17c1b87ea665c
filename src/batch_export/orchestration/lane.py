"""
Export Lane
===========

One independent worker running the FETCH -> WRITE -> CHECKPOINT loop over its
own key range with its own checkpoint.

    FETCH --(empty page)--> DONE
    FETCH --> WRITE --> CHECKPOINT --> FETCH
    FETCH | WRITE --(error)--> FAILED
    (cancel requested before FETCH) --> CANCELLED

A checkpoint failure is a warning: the batch file already exists, so the only
consequence is re-exporting that batch after a restart.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from batch_export.exceptions import BatchWriteError, CheckpointError, FetchError
from batch_export.infrastructure.checkpoint.path_builder import CheckpointPathBuilder
from batch_export.infrastructure.observability import get_orchestration_logger
from batch_export.ingestion.models import Cursor
from batch_export.ingestion.ports import IBatchWriter, ICheckpointStore, IPageFetcher
from batch_export.orchestration.reporter import ExportReporter


class LaneState(str, Enum):
    """Lane execution state."""

    FETCH = "fetch"
    WRITE = "write"
    CHECKPOINT = "checkpoint"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (LaneState.DONE, LaneState.FAILED, LaneState.CANCELLED)


@dataclass
class LaneResult:
    """Outcome of one lane run."""

    lane_id: int
    state: LaneState
    batches_written: int = 0
    records_exported: int = 0
    start_cursor: Cursor = None
    last_cursor: Cursor = None
    files: list[str] = field(default_factory=list)
    checkpoint_failures: int = 0
    failed_operation: str | None = None
    error: str | None = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for log output."""
        return {
            "lane_id": self.lane_id,
            "state": self.state.value,
            "batches_written": self.batches_written,
            "records_exported": self.records_exported,
            "start_cursor": _fmt(self.start_cursor),
            "last_cursor": _fmt(self.last_cursor),
            "checkpoint_failures": self.checkpoint_failures,
            "failed_operation": self.failed_operation,
            "error": self.error,
            "duration_seconds": round(self.duration_seconds, 3),
        }


def _fmt(cursor: Cursor) -> str | None:
    return None if cursor is None else str(cursor)


class ExportLane:
    """
    Sequential fetch/write/checkpoint loop for one key range.

    Batch k+1 is never fetched before batch k's write has completed and its
    checkpoint has been attempted. Blocking file I/O runs in a worker thread
    so other lanes keep fetching.
    """

    def __init__(
        self,
        lane_id: int,
        fetcher: IPageFetcher,
        writer: IBatchWriter,
        checkpoint_store: ICheckpointStore,
        batch_size: int,
        cancel_event: asyncio.Event | None = None,
        reporter: ExportReporter | None = None,
    ):
        self.lane_id = lane_id
        self.fetcher = fetcher
        self.writer = writer
        self.checkpoint_store = checkpoint_store
        self.batch_size = batch_size
        self.cancel_event = cancel_event or asyncio.Event()
        self.reporter = reporter or ExportReporter()
        self.state = LaneState.FETCH
        self._log = get_orchestration_logger("export-lane", lane_id=lane_id)

    async def run(self) -> LaneResult:
        """Run until DONE, FAILED or CANCELLED."""
        start = time.monotonic()
        cursor = self.checkpoint_store.load()
        result = LaneResult(
            lane_id=self.lane_id,
            state=LaneState.FETCH,
            start_cursor=cursor,
            last_cursor=cursor,
        )
        self.reporter.log_lane_start(self.lane_id, cursor)

        seq = 1
        while True:
            if self.cancel_event.is_set():
                self._transition(LaneState.CANCELLED)
                break

            self._transition(LaneState.FETCH)
            try:
                page = await self.fetcher.fetch(cursor, self.batch_size)
            except FetchError as e:
                self._fail(result, "fetch", cursor, e)
                break

            if page.is_empty:
                self._transition(LaneState.DONE)
                break

            self._transition(LaneState.WRITE)
            name = CheckpointPathBuilder.batch_file(seq, self.lane_id)
            try:
                path = await asyncio.to_thread(self.writer.write, page, name)
            except BatchWriteError as e:
                self._fail(result, "write", cursor, e)
                break

            seq += 1
            cursor = page.last_key
            result.batches_written += 1
            result.records_exported += len(page)
            result.last_cursor = cursor
            result.files.append(str(path))

            self._transition(LaneState.CHECKPOINT)
            try:
                await asyncio.to_thread(self.checkpoint_store.save, cursor)
            except CheckpointError as e:
                result.checkpoint_failures += 1
                self._log.warning(
                    "checkpoint_save_failed",
                    operation="checkpoint",
                    cursor=_fmt(cursor),
                    error=str(e),
                )

            self.reporter.log_progress(
                lane_id=self.lane_id,
                batch_number=seq - 1,
                records=len(page),
                total_records=result.records_exported,
                destination=str(path),
                cursor=cursor,
            )

        result.state = self.state
        result.duration_seconds = time.monotonic() - start
        self.reporter.log_lane_result(result)
        return result

    def _transition(self, state: LaneState) -> None:
        self._log.debug("lane_state", state=state.value)
        self.state = state

    def _fail(
        self,
        result: LaneResult,
        operation: str,
        cursor: Cursor,
        error: Exception,
    ) -> None:
        self.state = LaneState.FAILED
        result.failed_operation = operation
        result.error = str(error)
        self._log.error(
            "lane_operation_failed",
            operation=operation,
            cursor=_fmt(cursor),
            error=str(error),
            error_type=type(error).__name__,
        )
