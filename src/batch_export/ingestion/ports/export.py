"""Export engine abstractions.

Separates the pagination loop from its collaborators:
- Record source: How the remote store answers ordered range queries
- Page fetching: How one bounded page after a cursor is obtained
- Batch writing: How a page becomes a file
- Checkpointing: How the last exported cursor is persisted
"""

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from batch_export.ingestion.models import Cursor, KeyRange, Page, Record


@runtime_checkable
class IRecordSource(Protocol):
    """Minimal query capability required from the remote store.

    Implementations must push the key predicate, the ascending sort and the
    limit down to the store so each call costs O(limit), not O(collection).
    """

    @property
    def key_field(self) -> str:
        """Name of the unique, indexed ordering key."""
        ...

    async def find_page(
        self,
        key_range: KeyRange,
        after: Cursor,
        limit: int,
    ) -> list[Record]:
        """Return up to `limit` records with key > after, inside key_range.

        Args:
            key_range: Lane range; lower bound applies only when after is None
            after: Exclusive lower key, or None for the start of the range
            limit: Maximum number of records

        Returns:
            Records sorted ascending by key
        """
        ...

    async def sample_boundaries(self, parts: int) -> list[Cursor]:
        """Return up to parts-1 ascending keys splitting the set evenly."""
        ...


@runtime_checkable
class IPageFetcher(Protocol):
    """Retrieves the next bounded, sorted page after a cursor."""

    async def fetch(self, cursor: Cursor, limit: int) -> Page:
        """Fetch up to `limit` records with key > cursor.

        Returns:
            Page; empty exactly when nothing is left beyond cursor

        Raises:
            FetchError: On transport, authentication or decoding failure
        """
        ...


@runtime_checkable
class IBatchWriter(Protocol):
    """Serializes a page to a named output file."""

    def write(self, page: Page, destination_name: str) -> Path:
        """Write the page, in received order, to destination_name.

        Raises:
            BatchWriteError: If the file cannot be created or serialized
        """
        ...


@runtime_checkable
class ICheckpointStore(Protocol):
    """Persists a single monotonically advancing cursor."""

    def load(self) -> Cursor:
        """Return the last saved cursor, or None. Never raises."""
        ...

    def save(self, cursor: Cursor) -> None:
        """Durably persist cursor.

        Raises:
            CheckpointError: If the value could not be persisted
        """
        ...


class IRecordEncoder(Protocol):
    """JSON `default=` hook for values the json module cannot serialize."""

    def __call__(self, value: Any) -> Any: ...
