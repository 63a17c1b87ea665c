"""
Orchestration Layer - Lanes, Partitioning and Export Coordination
=================================================================

    ┌─────────────────────────────────────────────────────────────┐
    │                  ExportCoordinator                          │
    │   restore/plan key ranges, start lanes, join, summarize     │
    └───────────────┬───────────────────────────┬─────────────────┘
                    │ one per range             │ one-off sample
                    ▼                           ▼
    ┌───────────────────────────────┐  ┌───────────────────────────┐
    │ ExportLane                    │  │ KeyRangePartitioner       │
    │ FETCH → WRITE → CHECKPOINT    │  └───────────────────────────┘
    └───────┬──────────┬────────────┘
            │          │
            ▼          ▼
      PageFetcher  JsonBatchWriter / FileCheckpointStore

Lanes never share a checkpoint: with more than one lane each range has its
own checkpoint file, so no locking is needed.
"""

from .coordinator import ExportCoordinator, ExportSummary
from .lane import ExportLane, LaneResult, LaneState
from .partitioner import KeyRangePartitioner, ranges_from_boundaries
from .reporter import ExportReporter

__all__ = [
    "ExportCoordinator",
    "ExportSummary",
    "ExportLane",
    "LaneResult",
    "LaneState",
    "KeyRangePartitioner",
    "ranges_from_boundaries",
    "ExportReporter",
]
