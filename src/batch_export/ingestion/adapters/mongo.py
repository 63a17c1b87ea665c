"""MongoDB record source.

Implements IRecordSource on top of pymongo's asyncio client. Every query is
an indexed range seek on the key field: `{key: {$gt: cursor, $lt: upper}}`
sorted ascending with a server-side limit.
"""

from __future__ import annotations

import functools
from typing import Any

from bson import json_util
from pymongo import ASCENDING, AsyncMongoClient
from pymongo.errors import PyMongoError

from batch_export.config.state import SourceConfig
from batch_export.exceptions import SourceConnectionError
from batch_export.infrastructure.observability import get_ingestion_logger
from batch_export.ingestion.models import Cursor, KeyRange, Record

# Extended JSON (relaxed): ObjectId -> {"$oid": ...}, datetime -> {"$date": ...}
mongo_json_encoder = functools.partial(
    json_util.default, json_options=json_util.RELAXED_JSON_OPTIONS
)


def build_range_filter(key_field: str, key_range: KeyRange, after: Cursor) -> dict:
    """
    Build the pushed-down predicate for one page.

    The lower range bound is inclusive and only applies before the lane has a
    cursor; once a cursor exists the predicate is strictly `> cursor`.
    """
    predicate: dict[str, Any] = {}
    if after is not None:
        predicate["$gt"] = after
    elif key_range.lower is not None:
        predicate["$gte"] = key_range.lower
    if key_range.upper is not None:
        predicate["$lt"] = key_range.upper
    return {key_field: predicate} if predicate else {}


class MongoRecordSource:
    """
    MongoDB-backed record source.

    Usage:
        >>> async with MongoRecordSource.from_config(settings.source) as source:
        ...     records = await source.find_page(KeyRange(), None, 100_000)
    """

    def __init__(
        self,
        uri: str,
        database: str,
        collection: str,
        key_field: str = "_id",
        server_selection_timeout_ms: int = 5000,
        client: AsyncMongoClient | None = None,
    ):
        self.uri = uri
        self.database_name = database
        self.collection_name = collection
        self._key_field = key_field
        self._timeout_ms = server_selection_timeout_ms
        self._client = client
        self._collection = None
        self._log = get_ingestion_logger(
            "mongo-source", collection=f"{database}.{collection}"
        )

    @classmethod
    def from_config(cls, config: SourceConfig) -> MongoRecordSource:
        return cls(
            uri=config.uri,
            database=config.database,
            collection=config.collection,
            key_field=config.key_field,
            server_selection_timeout_ms=config.server_selection_timeout_ms,
        )

    @property
    def key_field(self) -> str:
        return self._key_field

    @property
    def collection(self):
        if self._collection is None:
            raise SourceConnectionError("MongoRecordSource is not connected")
        return self._collection

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> None:
        """Open the client and verify the server answers a ping.

        Raises:
            SourceConnectionError: On invalid URI, unreachable server or auth failure
        """
        self._log.info("connecting")
        try:
            if self._client is None:
                self._client = AsyncMongoClient(
                    self.uri, serverSelectionTimeoutMS=self._timeout_ms
                )
            await self._client.admin.command("ping")
        except PyMongoError as e:
            self._log.error("connection_failed", error=str(e))
            raise SourceConnectionError(f"Failed to connect to MongoDB: {e}") from e

        self._collection = self._client[self.database_name][self.collection_name]
        self._log.info("connected")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._collection = None
            self._log.info("disconnected")

    async def __aenter__(self) -> MongoRecordSource:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # IRecordSource
    # ------------------------------------------------------------------
    async def find_page(
        self,
        key_range: KeyRange,
        after: Cursor,
        limit: int,
    ) -> list[Record]:
        query = build_range_filter(self._key_field, key_range, after)
        kwargs: dict[str, Any] = {
            "sort": [(self._key_field, ASCENDING)],
            "limit": limit,
        }
        if self._key_field == "_id":
            kwargs["hint"] = [("_id", ASCENDING)]

        cursor = self.collection.find(query, **kwargs)
        return await cursor.to_list()

    async def sample_boundaries(self, parts: int) -> list[Cursor]:
        """
        Split keys for static partitioning.

        Uses the collection's estimated count and indexed skip seeks over the
        key projection. One pass at startup; boundaries are persisted so
        resumed runs never resample.
        """
        if parts < 2:
            return []

        total = await self.collection.estimated_document_count()
        self._log.info("sampling_boundaries", parts=parts, estimated_count=total)
        if total < parts:
            return []

        boundaries: list[Cursor] = []
        for i in range(1, parts):
            offset = total * i // parts
            cursor = (
                self.collection.find({}, {self._key_field: 1})
                .sort(self._key_field, ASCENDING)
                .skip(offset)
                .limit(1)
            )
            docs = await cursor.to_list()
            if not docs:
                break
            key = docs[0][self._key_field]
            if boundaries and not key > boundaries[-1]:
                continue
            boundaries.append(key)

        return boundaries
