"""
Shared fixtures for the export engine tests.

The in-memory record source answers the same ordered range queries as the
MongoDB adapter, so lanes, fetchers and the coordinator run unmodified.
"""

import bisect
import logging
import sys
from pathlib import Path

import pytest

# Ensure src on path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from batch_export.config import ConfigState  # noqa: E402
from batch_export.ingestion.models import KeyRange  # noqa: E402

logger = logging.getLogger(__name__)


class InMemoryRecordSource:
    """Sorted list of records with strict `key > after` range queries."""

    def __init__(self, keys=(), key_field="_id", fail_on_call=None):
        self._key_field = key_field
        self.records = [{key_field: k, "value": f"record-{k}"} for k in sorted(keys)]
        self.keys = [r[key_field] for r in self.records]
        self.calls: list[tuple[KeyRange, object, int]] = []
        self.fail_on_call = fail_on_call

    @property
    def key_field(self):
        return self._key_field

    async def find_page(self, key_range, after, limit):
        self.calls.append((key_range, after, limit))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise ConnectionError("connection reset by peer")

        if after is not None:
            start = bisect.bisect_right(self.keys, after)
        elif key_range.lower is not None:
            start = bisect.bisect_left(self.keys, key_range.lower)
        else:
            start = 0
        end = len(self.keys)
        if key_range.upper is not None:
            end = bisect.bisect_left(self.keys, key_range.upper)
        return [dict(r) for r in self.records[start:min(end, start + limit)]]

    async def sample_boundaries(self, parts):
        if parts < 2 or len(self.keys) < parts:
            return []
        return [self.keys[len(self.keys) * i // parts] for i in range(1, parts)]

    @property
    def after_values(self):
        return [after for _, after, _ in self.calls]


@pytest.fixture
def make_source():
    """Factory for in-memory record sources."""
    return InMemoryRecordSource


@pytest.fixture
def make_settings(tmp_path):
    """Factory for a ConfigState writing into tmp_path, with integer keys."""

    def _make(batch_size=100, lane_count=1, **export):
        return ConfigState(
            source={"database": "shop", "collection": "orders", "key_type": "int"},
            export={
                "batch_size": batch_size,
                "lane_count": lane_count,
                "export_dir": str(tmp_path / "exports"),
                "checkpoint_path": str(tmp_path / "last_id.txt"),
                **export,
            },
            logging={"log_file": None},
        )

    return _make
