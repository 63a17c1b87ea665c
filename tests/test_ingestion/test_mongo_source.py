"""
Tests for the MongoDB record source and key codecs.
The pymongo client is mocked; no server is required.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from bson import ObjectId
from pymongo import ASCENDING
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from batch_export.config import SourceConfig
from batch_export.exceptions import SourceConnectionError
from batch_export.ingestion.adapters import (
    MongoRecordSource,
    build_range_filter,
    mongo_json_encoder,
)
from batch_export.ingestion.cursor import IntCodec, KeyCodec, ObjectIdCodec, get_codec
from batch_export.ingestion.models import KeyRange

OID_A = ObjectId("65f1a2b3c4d5e6f708192a3b")
OID_B = ObjectId("65f1a2b3c4d5e6f708192a3c")


# ============================================================================
# FIXTURES
# ============================================================================


def make_cursor(docs):
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=docs)
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    return cursor


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    client.close = AsyncMock()
    collection = MagicMock()
    client.__getitem__.return_value.__getitem__.return_value = collection
    return client


@pytest.fixture
def collection(mock_client):
    return mock_client.__getitem__.return_value.__getitem__.return_value


@pytest_asyncio.fixture
async def source(mock_client):
    src = MongoRecordSource("mongodb://db:27017", "shop", "orders", client=mock_client)
    await src.connect()
    return src


# ============================================================================
# GROUP 1: Filter construction
# ============================================================================


class TestBuildRangeFilter:
    def test_start_of_unbounded_set_has_no_predicate(self):
        assert build_range_filter("_id", KeyRange(), None) == {}

    def test_cursor_is_strict_greater_than(self):
        assert build_range_filter("_id", KeyRange(), OID_A) == {"_id": {"$gt": OID_A}}

    def test_lower_bound_inclusive_before_first_page(self):
        assert build_range_filter("_id", KeyRange(OID_A, None), None) == {
            "_id": {"$gte": OID_A}
        }

    def test_cursor_replaces_lower_bound(self):
        query = build_range_filter("_id", KeyRange(OID_A, None), OID_B)
        assert query == {"_id": {"$gt": OID_B}}

    def test_upper_bound_exclusive(self):
        query = build_range_filter("seq", KeyRange(10, 20), 12)
        assert query == {"seq": {"$gt": 12, "$lt": 20}}


# ============================================================================
# GROUP 2: Connection lifecycle
# ============================================================================


class TestConnection:
    @pytest.mark.asyncio
    async def test_connect_pings_server(self, mock_client):
        src = MongoRecordSource("mongodb://db:27017", "shop", "orders", client=mock_client)
        await src.connect()
        mock_client.admin.command.assert_awaited_once_with("ping")

    @pytest.mark.asyncio
    async def test_unreachable_server_is_connection_error(self, mock_client):
        mock_client.admin.command = AsyncMock(
            side_effect=ServerSelectionTimeoutError("no servers")
        )
        src = MongoRecordSource("mongodb://db:27017", "shop", "orders", client=mock_client)
        with pytest.raises(SourceConnectionError):
            await src.connect()

    @pytest.mark.asyncio
    async def test_auth_failure_is_connection_error(self, mock_client):
        mock_client.admin.command = AsyncMock(
            side_effect=OperationFailure("Authentication failed", code=18)
        )
        src = MongoRecordSource("mongodb://db:27017", "shop", "orders", client=mock_client)
        with pytest.raises(SourceConnectionError):
            await src.connect()

    @pytest.mark.asyncio
    async def test_queries_before_connect_fail(self):
        src = MongoRecordSource("mongodb://db:27017", "shop", "orders", client=MagicMock())
        with pytest.raises(SourceConnectionError):
            await src.find_page(KeyRange(), None, 10)

    @pytest.mark.asyncio
    async def test_close_releases_client(self, source, mock_client):
        await source.close()
        mock_client.close.assert_awaited_once()

    def test_from_config(self):
        config = SourceConfig(
            uri="mongodb://db:27017", database="shop", collection="orders", key_field="seq"
        )
        src = MongoRecordSource.from_config(config)
        assert src.key_field == "seq"
        assert src.database_name == "shop"
        assert src.collection_name == "orders"


# ============================================================================
# GROUP 3: Queries
# ============================================================================


class TestQueries:
    @pytest.mark.asyncio
    async def test_find_page_pushes_down_predicate_sort_and_limit(self, source, collection):
        docs = [{"_id": OID_B}]
        collection.find.return_value = make_cursor(docs)

        result = await source.find_page(KeyRange(), OID_A, 100_000)

        assert result == docs
        collection.find.assert_called_once_with(
            {"_id": {"$gt": OID_A}},
            sort=[("_id", ASCENDING)],
            limit=100_000,
            hint=[("_id", ASCENDING)],
        )

    @pytest.mark.asyncio
    async def test_custom_key_field_has_no_id_hint(self, mock_client, collection):
        src = MongoRecordSource(
            "mongodb://db:27017", "shop", "orders", key_field="seq", client=mock_client
        )
        await src.connect()
        collection.find.return_value = make_cursor([])

        await src.find_page(KeyRange(None, 50), 10, 5)

        collection.find.assert_called_once_with(
            {"seq": {"$gt": 10, "$lt": 50}}, sort=[("seq", ASCENDING)], limit=5
        )

    @pytest.mark.asyncio
    async def test_sample_boundaries_uses_indexed_seeks(self, source, collection):
        collection.estimated_document_count = AsyncMock(return_value=1000)
        collection.find.side_effect = [
            make_cursor([{"_id": 250}]),
            make_cursor([{"_id": 500}]),
            make_cursor([{"_id": 750}]),
        ]

        boundaries = await source.sample_boundaries(4)

        assert boundaries == [250, 500, 750]
        assert collection.find.call_count == 3

    @pytest.mark.asyncio
    async def test_sample_boundaries_collapses_duplicates(self, source, collection):
        collection.estimated_document_count = AsyncMock(return_value=10)
        collection.find.side_effect = [
            make_cursor([{"_id": 5}]),
            make_cursor([{"_id": 5}]),
        ]
        assert await source.sample_boundaries(3) == [5]

    @pytest.mark.asyncio
    async def test_single_lane_needs_no_sampling(self, source, collection):
        assert await source.sample_boundaries(1) == []
        collection.find.assert_not_called()

    @pytest.mark.asyncio
    async def test_tiny_collection_is_not_split(self, source, collection):
        collection.estimated_document_count = AsyncMock(return_value=2)
        assert await source.sample_boundaries(4) == []


# ============================================================================
# GROUP 4: Key codecs and record encoding
# ============================================================================


class TestKeyCodecs:
    def test_objectid_hex_round_trip(self):
        codec = ObjectIdCodec()
        assert codec.encode(OID_A) == "65f1a2b3c4d5e6f708192a3b"
        assert codec.decode(" 65f1a2b3c4d5e6f708192a3b\n") == OID_A

    def test_objectid_rejects_garbage(self):
        with pytest.raises(ValueError):
            ObjectIdCodec().decode("last-id")

    def test_objectid_encode_requires_objectid(self):
        with pytest.raises(TypeError):
            ObjectIdCodec().encode("65f1a2b3c4d5e6f708192a3b")

    def test_int_codec(self):
        assert IntCodec().decode("250000") == 250_000
        with pytest.raises(ValueError):
            IntCodec().decode("abc")

    def test_str_codec_rejects_empty(self):
        with pytest.raises(ValueError):
            KeyCodec().decode("  ")

    def test_str_codec_round_trips_padded_keys(self):
        codec = KeyCodec()
        for key in (" b", "b ", "\tkey\n"):
            assert codec.decode(codec.encode(key)) == key

    def test_get_codec(self):
        assert isinstance(get_codec("objectid"), ObjectIdCodec)
        assert isinstance(get_codec("int"), IntCodec)
        with pytest.raises(ValueError):
            get_codec("uuid")

    def test_mongo_encoder_is_extended_json(self):
        assert mongo_json_encoder(OID_A) == {"$oid": "65f1a2b3c4d5e6f708192a3b"}
