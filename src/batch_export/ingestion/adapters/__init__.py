"""Record source adapters."""

from .mongo import MongoRecordSource, build_range_filter, mongo_json_encoder

__all__ = ["MongoRecordSource", "build_range_filter", "mongo_json_encoder"]
