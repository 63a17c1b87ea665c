"""Utilities to build consistent checkpoint, manifest and batch file names.

Centralizes path conventions so stores, writers and the coordinator do not drift.
"""

from __future__ import annotations

from pathlib import Path


class CheckpointPathBuilder:
    """Builds consistent checkpoint and output paths across the system."""

    BATCH_FILE_TEMPLATE = "batch_{seq}_worker_{lane}.json"
    LANE_SUFFIX = ".lane-{lane}"
    MANIFEST_SUFFIX = ".partitions.json"

    @classmethod
    def batch_file(cls, seq: int, lane: int) -> str:
        """Batch file name, unique per (lane, sequence) within a run."""
        if seq < 1:
            raise ValueError("batch sequence numbers start at 1")
        return cls.BATCH_FILE_TEMPLATE.format(seq=seq, lane=lane)

    @classmethod
    def lane_checkpoint(cls, base_path: str | Path, lane: int) -> Path:
        """Per-lane checkpoint next to the base path: last_id.lane-2.txt."""
        base = Path(base_path)
        return base.with_name(f"{base.stem}{cls.LANE_SUFFIX.format(lane=lane)}{base.suffix}")

    @classmethod
    def partition_manifest(cls, base_path: str | Path) -> Path:
        """Partition plan manifest next to the base path: last_id.partitions.json."""
        base = Path(base_path)
        return base.with_name(f"{base.stem}{cls.MANIFEST_SUFFIX}")

    @classmethod
    def temp_sibling(cls, path: str | Path) -> Path:
        """Temporary name in the same directory, for write-then-rename."""
        path = Path(path)
        return path.with_name(f".{path.name}.tmp")
