"""File-backed checkpoint storage.

A checkpoint is a single text value: the encoded form of the last exported key.
Writes go to a sibling temp file which is flushed, fsynced and renamed over the
target, so a crash leaves either the old or the new value, never a torn one.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from batch_export.exceptions import CheckpointError, PartitionPlanError
from batch_export.infrastructure.checkpoint.path_builder import CheckpointPathBuilder
from batch_export.infrastructure.observability import get_infrastructure_logger
from batch_export.ingestion.cursor import KeyCodec
from batch_export.ingestion.models import Cursor, KeyRange


def write_atomic(path: Path, payload: str) -> None:
    """Replace path with payload; raises OSError on failure."""
    tmp = CheckpointPathBuilder.temp_sibling(path)
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


class FileCheckpointStore:
    """Single-scalar checkpoint file (one lane, one advancing frontier)."""

    def __init__(self, path: str | Path, codec: KeyCodec):
        self.path = Path(path)
        self.codec = codec
        self._log = get_infrastructure_logger("checkpoint-store", path=str(self.path))

    def load(self) -> Cursor:
        """Return the saved cursor, or None when missing or unparsable."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._log.info("checkpoint_missing_starting_fresh")
            return None
        except OSError as e:
            self._log.warning("checkpoint_unreadable_starting_fresh", error=str(e))
            return None
        except UnicodeDecodeError as e:
            self._log.warning("checkpoint_invalid_starting_fresh", error=str(e))
            return None

        try:
            cursor = self.codec.decode(text)
        except ValueError as e:
            self._log.warning(
                "checkpoint_invalid_starting_fresh", content=text[:64], error=str(e)
            )
            return None

        self._log.info("checkpoint_loaded", cursor=self.codec.encode(cursor))
        return cursor

    def save(self, cursor: Cursor) -> None:
        """Persist cursor durably.

        Raises:
            CheckpointError: If the value could not be written
        """
        try:
            payload = self.codec.encode(cursor)
            write_atomic(self.path, payload)
        except (OSError, TypeError, ValueError) as e:
            raise CheckpointError(f"Failed to save checkpoint {self.path}: {e}") from e
        self._log.debug("checkpoint_saved", cursor=payload)


@dataclass
class PartitionPlan:
    """Static assignment of contiguous, disjoint key ranges to lanes."""

    ranges: list[KeyRange]
    namespace: str = ""
    requested_lanes: int = 0
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def lane_count(self) -> int:
        return len(self.ranges)

    def to_dict(self, codec: KeyCodec) -> dict[str, Any]:
        def enc(key: Cursor) -> str | None:
            return None if key is None else codec.encode(key)

        return {
            "namespace": self.namespace,
            "key_type": codec.name,
            "lane_count": self.lane_count,
            "requested_lanes": self.requested_lanes or self.lane_count,
            "created_at": self.created_at,
            "ranges": [
                {"lane": i, "lower": enc(r.lower), "upper": enc(r.upper)}
                for i, r in enumerate(self.ranges)
            ],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any], codec: KeyCodec) -> PartitionPlan:
        def dec(text: str | None) -> Cursor:
            return None if text is None else codec.decode(text)

        if raw.get("key_type", codec.name) != codec.name:
            raise ValueError(
                f"manifest key type {raw.get('key_type')!r} does not match {codec.name!r}"
            )
        entries = sorted(raw["ranges"], key=lambda r: r["lane"])
        return cls(
            ranges=[KeyRange(dec(r.get("lower")), dec(r.get("upper"))) for r in entries],
            namespace=raw.get("namespace", ""),
            requested_lanes=int(raw.get("requested_lanes", len(entries))),
            created_at=raw.get("created_at", ""),
        )


class PartitionedCheckpointStore:
    """
    One independent checkpoint per lane plus a manifest of the lane ranges.

    Each lane owns its own file, so advances never race and need no lock.
    The manifest pins the partitioning so a resumed run reuses the same
    boundaries instead of resampling a collection that may have grown.
    """

    def __init__(self, base_path: str | Path, codec: KeyCodec):
        self.base_path = Path(base_path)
        self.codec = codec
        self.manifest_path = CheckpointPathBuilder.partition_manifest(self.base_path)
        self._log = get_infrastructure_logger(
            "partitioned-checkpoint-store", manifest=str(self.manifest_path)
        )

    def for_lane(self, lane_id: int) -> FileCheckpointStore:
        return FileCheckpointStore(
            CheckpointPathBuilder.lane_checkpoint(self.base_path, lane_id), self.codec
        )

    def load_plan(self) -> PartitionPlan | None:
        """Return the stored plan, or None when no manifest exists.

        Raises:
            PartitionPlanError: If a manifest exists but cannot be used; lane
                checkpoints are only meaningful with the ranges they were taken in
        """
        try:
            raw = json.loads(self.manifest_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise PartitionPlanError(
                f"Partition manifest {self.manifest_path} is unreadable: {e}"
            ) from e

        try:
            return PartitionPlan.from_dict(raw, self.codec)
        except (KeyError, TypeError, ValueError) as e:
            raise PartitionPlanError(
                f"Partition manifest {self.manifest_path} is invalid: {e}"
            ) from e

    def save_plan(self, plan: PartitionPlan) -> None:
        """Persist the plan.

        Raises:
            CheckpointError: If the manifest could not be written
        """
        try:
            payload = json.dumps(plan.to_dict(self.codec), indent=2)
            write_atomic(self.manifest_path, payload)
        except (OSError, TypeError, ValueError) as e:
            raise CheckpointError(
                f"Failed to save partition manifest {self.manifest_path}: {e}"
            ) from e
        self._log.info("partition_manifest_saved", lanes=plan.lane_count)
