"""
Export Coordinator
Owns the lane pool: restores or plans the key-range partitioning, starts one
lane per range and waits for every lane to reach a terminal state.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from batch_export.config.state import ConfigState
from batch_export.exceptions import ConfigurationError, PartitionPlanError
from batch_export.infrastructure.checkpoint import (
    FileCheckpointStore,
    PartitionedCheckpointStore,
    PartitionPlan,
)
from batch_export.infrastructure.observability import get_orchestration_logger
from batch_export.ingestion.cursor import KeyCodec, get_codec
from batch_export.ingestion.fetcher import PageFetcher
from batch_export.ingestion.models import KeyRange
from batch_export.ingestion.ports import IBatchWriter, ICheckpointStore, IRecordSource
from batch_export.orchestration.lane import ExportLane, LaneResult, LaneState
from batch_export.orchestration.partitioner import KeyRangePartitioner
from batch_export.orchestration.reporter import ExportReporter
from batch_export.storage import JsonBatchWriter

EXIT_OK = 0
EXIT_LANE_FAILED = 1
EXIT_CANCELLED = 130


@dataclass
class ExportSummary:
    """Result of a complete export run."""

    lanes: list[LaneResult]
    elapsed_seconds: float

    @property
    def failed_lanes(self) -> list[LaneResult]:
        return [r for r in self.lanes if r.state == LaneState.FAILED]

    @property
    def success(self) -> bool:
        return not self.failed_lanes

    @property
    def cancelled(self) -> bool:
        return any(r.state == LaneState.CANCELLED for r in self.lanes)

    @property
    def total_batches(self) -> int:
        return sum(r.batches_written for r in self.lanes)

    @property
    def total_records(self) -> int:
        return sum(r.records_exported for r in self.lanes)

    @property
    def exit_code(self) -> int:
        if not self.success:
            return EXIT_LANE_FAILED
        if self.cancelled:
            return EXIT_CANCELLED
        return EXIT_OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "cancelled": self.cancelled,
            "total_batches": self.total_batches,
            "total_records": self.total_records,
            "elapsed_seconds": self.elapsed_seconds,
            "lanes": [r.to_dict() for r in self.lanes],
        }


class ExportCoordinator:
    """
    Coordinates a resumable export with dependency injection.

    Responsibilities:
    - Restore the persisted partition plan, or plan and persist a new one
    - Give each lane its own range, fetcher and checkpoint
    - Run lanes concurrently and join all of them
    - NOT responsible for: fetching, writing, checkpoint format (delegated)

    A single lane uses the plain checkpoint file (`checkpoint_path`). More
    lanes use one checkpoint per lane plus a partition manifest.
    """

    def __init__(
        self,
        source: IRecordSource,
        settings: ConfigState,
        writer: IBatchWriter | None = None,
        cancel_event: asyncio.Event | None = None,
        reporter: ExportReporter | None = None,
    ):
        missing = settings.missing_source_fields()
        if missing:
            raise ConfigurationError(f"Source not configured: missing {', '.join(missing)}")
        self.source = source
        self.settings = settings
        self.export_config = settings.export
        self.codec: KeyCodec = get_codec(settings.source.key_type)
        self.writer = writer or JsonBatchWriter(
            self.export_config.export_dir, indent=self.export_config.indent
        )
        self.cancel_event = cancel_event or asyncio.Event()
        self.reporter = reporter or ExportReporter()
        self.partitioner = KeyRangePartitioner(source)
        self._log = get_orchestration_logger("export-coordinator")

    @property
    def namespace(self) -> str:
        return f"{self.settings.source.database}.{self.settings.source.collection}"

    async def run(self) -> ExportSummary:
        """
        Execute the export.

        Returns:
            ExportSummary once every lane is DONE, FAILED or CANCELLED

        Raises:
            PartitionPlanError: If stored progress cannot be matched to this run
            CheckpointError: If a new partition manifest cannot be persisted
        """
        start = time.monotonic()
        Path(self.export_config.export_dir).mkdir(parents=True, exist_ok=True)

        lanes = await self.build_lanes()
        self._log.info(
            "export_started",
            lanes=len(lanes),
            batch_size=self.export_config.batch_size,
            export_dir=self.export_config.export_dir,
        )

        outcomes = await asyncio.gather(
            *(lane.run() for lane in lanes), return_exceptions=True
        )

        results: list[LaneResult] = []
        for lane, outcome in zip(lanes, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, (KeyboardInterrupt, SystemExit)):
                    raise outcome
                self._log.error(
                    "lane_crashed",
                    lane_id=lane.lane_id,
                    operation=lane.state.value,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
                outcome = LaneResult(
                    lane_id=lane.lane_id,
                    state=LaneState.FAILED,
                    failed_operation=lane.state.value,
                    error=str(outcome) or type(outcome).__name__,
                )
            results.append(outcome)

        summary = ExportSummary(lanes=results, elapsed_seconds=time.monotonic() - start)
        self.reporter.log_summary(summary)
        return summary

    async def build_lanes(self) -> list[ExportLane]:
        """Resolve ranges and checkpoints, then construct one lane per range."""
        assignments = await self._resolve_assignments()
        lanes = []
        for lane_id, (key_range, store) in enumerate(assignments):
            fetcher = PageFetcher(
                self.source,
                batch_size=self.export_config.batch_size,
                key_range=key_range,
            )
            lanes.append(
                ExportLane(
                    lane_id=lane_id,
                    fetcher=fetcher,
                    writer=self.writer,
                    checkpoint_store=store,
                    batch_size=self.export_config.batch_size,
                    cancel_event=self.cancel_event,
                    reporter=self.reporter,
                )
            )
        return lanes

    async def _resolve_assignments(self) -> list[tuple[KeyRange, ICheckpointStore]]:
        lane_count = self.export_config.lane_count
        single = FileCheckpointStore(self.export_config.checkpoint_path, self.codec)
        partitioned = PartitionedCheckpointStore(
            self.export_config.checkpoint_path, self.codec
        )
        stored = partitioned.load_plan()

        if lane_count == 1:
            if stored is not None:
                raise PartitionPlanError(
                    f"{partitioned.manifest_path} holds a {stored.lane_count}-lane plan; "
                    f"rerun with lane_count={stored.requested_lanes} to resume it"
                )
            return [(KeyRange(), single)]

        if stored is None:
            if single.path.exists():
                raise PartitionPlanError(
                    f"{single.path} holds single-lane progress; rerun with lane_count=1 "
                    "to resume it"
                )
            plan = await self.partitioner.plan(lane_count, namespace=self.namespace)
            partitioned.save_plan(plan)
        else:
            self._check_stored_plan(stored, lane_count)
            plan = stored
            self._log.info(
                "partition_plan_restored",
                lanes=plan.lane_count,
                created_at=plan.created_at,
            )

        return [
            (key_range, partitioned.for_lane(lane_id))
            for lane_id, key_range in enumerate(plan.ranges)
        ]

    def _check_stored_plan(self, plan: PartitionPlan, lane_count: int) -> None:
        if plan.requested_lanes != lane_count:
            raise PartitionPlanError(
                f"Stored partition plan was made for {plan.requested_lanes} lanes, "
                f"not {lane_count}"
            )
        if plan.namespace and plan.namespace != self.namespace:
            raise PartitionPlanError(
                f"Stored partition plan belongs to {plan.namespace}, not {self.namespace}"
            )
