"""
Key Range Partitioner
Divides the key space into contiguous, disjoint lane ranges once at startup.
"""

from batch_export.infrastructure.checkpoint.store import PartitionPlan
from batch_export.infrastructure.observability import get_orchestration_logger
from batch_export.ingestion.models import Cursor, KeyRange
from batch_export.ingestion.ports import IRecordSource


def ranges_from_boundaries(boundaries: list[Cursor]) -> list[KeyRange]:
    """[None, b1), [b1, b2), ..., [bk, None) from ascending split keys."""
    edges: list[Cursor] = [None]
    for key in boundaries:
        if edges[-1] is not None and not key > edges[-1]:
            continue
        edges.append(key)
    edges.append(None)
    return [KeyRange(edges[i], edges[i + 1]) for i in range(len(edges) - 1)]


class KeyRangePartitioner:
    """
    Static range partitioning for multi-lane exports.

    The store offers no cheap way to find range boundaries, so the source is
    asked for a one-off sample of split keys. A single lane always gets the
    whole, unbounded range.
    """

    def __init__(self, source: IRecordSource):
        self.source = source
        self._log = get_orchestration_logger("key-range-partitioner")

    async def plan(self, lane_count: int, namespace: str = "") -> PartitionPlan:
        if lane_count < 1:
            raise ValueError("lane_count must be at least 1")
        if lane_count == 1:
            return PartitionPlan(
                ranges=[KeyRange()], namespace=namespace, requested_lanes=1
            )

        boundaries = await self.source.sample_boundaries(lane_count)
        ranges = ranges_from_boundaries(boundaries)

        if len(ranges) < lane_count:
            self._log.warning(
                "fewer_lanes_than_requested",
                requested=lane_count,
                planned=len(ranges),
            )

        self._log.info(
            "partition_planned",
            lanes=len(ranges),
            boundaries=[str(b) for b in boundaries],
        )
        return PartitionPlan(
            ranges=ranges, namespace=namespace, requested_lanes=lane_count
        )
