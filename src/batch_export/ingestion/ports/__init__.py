"""Record source and export collaborator ports."""

from .export import (
    IBatchWriter,
    ICheckpointStore,
    IPageFetcher,
    IRecordEncoder,
    IRecordSource,
)

__all__ = [
    "IBatchWriter",
    "ICheckpointStore",
    "IPageFetcher",
    "IRecordEncoder",
    "IRecordSource",
]
