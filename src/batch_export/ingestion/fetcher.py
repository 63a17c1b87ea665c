"""
Page Fetcher
Turns a cursor into the next bounded, ascending page from a record source.
"""

from batch_export.exceptions import FetchError
from batch_export.infrastructure.observability import get_ingestion_logger
from batch_export.ingestion.models import Cursor, KeyRange, Page
from batch_export.ingestion.ports import IRecordSource

DEFAULT_BATCH_SIZE = 100_000


class PageFetcher:
    """
    Fetches pages for one lane.

    Responsibilities:
    - Push `key > cursor`, range bounds, sort and limit down to the source
    - Validate what came back (ordering, bounds, size)
    - Translate any source failure into FetchError

    Never retries: a failed fetch is fatal to the calling lane and recovery
    happens by restarting from the last checkpoint.
    """

    def __init__(
        self,
        source: IRecordSource,
        batch_size: int = DEFAULT_BATCH_SIZE,
        key_range: KeyRange | None = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.source = source
        self.batch_size = batch_size
        self.key_range = key_range or KeyRange()
        self._log = get_ingestion_logger("page-fetcher")

    async def fetch(self, cursor: Cursor, limit: int) -> Page:
        """
        Fetch up to `limit` records with key strictly greater than cursor.

        Args:
            cursor: Last exported key, or None for the start of the range
            limit: Must equal the configured batch size

        Returns:
            Page sorted ascending by key; empty when the range is exhausted

        Raises:
            ValueError: If limit differs from the configured batch size
            FetchError: On source failure or an invalid page
        """
        if limit != self.batch_size:
            raise ValueError(
                f"limit {limit} does not match configured batch size {self.batch_size}"
            )

        try:
            records = await self.source.find_page(self.key_range, cursor, limit)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(f"source query failed: {e}", cursor=cursor) from e

        try:
            page = Page(records=records, key_field=self.source.key_field, cursor_in=cursor)
        except (KeyError, TypeError) as e:
            raise FetchError(
                f"record without key field {self.source.key_field!r}", cursor=cursor
            ) from e

        self._validate(page, cursor, limit)

        self._log.debug(
            "page_fetched",
            cursor=str(cursor) if cursor is not None else None,
            records=len(page),
            first_key=str(page.first_key) if not page.is_empty else None,
            last_key=str(page.last_key) if not page.is_empty else None,
        )
        return page

    def _validate(self, page: Page, cursor: Cursor, limit: int) -> None:
        """Reject pages that would make the lane skip, repeat or loop."""
        if len(page) > limit:
            raise FetchError(
                f"source returned {len(page)} records for limit {limit}", cursor=cursor
            )

        previous = cursor
        for key in page.keys:
            if previous is not None and not key > previous:
                raise FetchError(
                    f"keys not strictly ascending after cursor: {previous!r} then {key!r}",
                    cursor=cursor,
                )
            if not self.key_range.contains(key):
                raise FetchError(f"key {key!r} outside lane range", cursor=cursor)
            previous = key
