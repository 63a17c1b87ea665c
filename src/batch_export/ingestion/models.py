"""
Core value types for paging through an ordered record set.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

Cursor = Any  # Totally ordered key; None means "start of set"
Record = Mapping[str, Any]


@dataclass(frozen=True)
class KeyRange:
    """Contiguous key interval [lower, upper); either bound may be open."""

    lower: Cursor = None
    upper: Cursor = None

    def contains(self, key: Cursor) -> bool:
        if self.lower is not None and key < self.lower:
            return False
        if self.upper is not None and key >= self.upper:
            return False
        return True


@dataclass
class Page:
    """One bounded, ascending batch of records fetched after a cursor."""

    records: Sequence[Record]
    key_field: str = "_id"
    cursor_in: Cursor = None
    keys: list[Cursor] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.keys = [record[self.key_field] for record in self.records]

    def __len__(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    @property
    def first_key(self) -> Cursor:
        return self.keys[0] if self.keys else None

    @property
    def last_key(self) -> Cursor:
        """Maximum key of the page; becomes the next cursor."""
        return self.keys[-1] if self.keys else None
