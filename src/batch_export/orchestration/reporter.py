"""Progress and summary reporting for export runs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from batch_export.infrastructure.observability import get_orchestration_logger
from batch_export.ingestion.models import Cursor

if TYPE_CHECKING:
    from batch_export.orchestration.coordinator import ExportSummary
    from batch_export.orchestration.lane import LaneResult


class ExportReporter:
    """
    Formats and logs progress and results.

    Single Responsibility: report. Does NOT make export decisions.
    """

    def __init__(self) -> None:
        self._log = get_orchestration_logger("export-reporter")

    def log_lane_start(self, lane_id: int, cursor: Cursor) -> None:
        if cursor is None:
            self._log.info("lane_started", lane_id=lane_id, resume_from=None)
        else:
            self._log.info("lane_resuming", lane_id=lane_id, resume_from=str(cursor))

    def log_progress(
        self,
        lane_id: int,
        batch_number: int,
        records: int,
        total_records: int,
        destination: str,
        cursor: Cursor,
    ) -> None:
        """Log one exported batch."""
        self._log.info(
            "batch_exported",
            lane_id=lane_id,
            batch=batch_number,
            records=records,
            total_records=total_records,
            destination=destination,
            cursor=str(cursor),
        )

    def log_lane_result(self, result: LaneResult) -> None:
        """Every terminal lane state is logged; failures at error level."""
        details = result.to_dict()
        if result.state.value == "failed":
            self._log.error("lane_failed", **details)
        elif result.state.value == "cancelled":
            self._log.warning("lane_cancelled", **details)
        else:
            self._log.info("lane_done", **details)

    def log_summary(self, summary: ExportSummary) -> None:
        """Log the final run summary with total elapsed wall-clock time."""
        fields = dict(
            lanes=len(summary.lanes),
            failed_lanes=[r.lane_id for r in summary.failed_lanes],
            total_batches=summary.total_batches,
            total_records=summary.total_records,
            elapsed_seconds=round(summary.elapsed_seconds, 3),
        )
        if summary.success and not summary.cancelled:
            self._log.info("export_completed", **fields)
        elif summary.success:
            self._log.warning("export_cancelled", **fields)
        else:
            self._log.error("export_finished_with_failures", **fields)
