from .path_builder import CheckpointPathBuilder
from .store import (
    FileCheckpointStore,
    PartitionedCheckpointStore,
    PartitionPlan,
    write_atomic,
)

__all__ = [
    "CheckpointPathBuilder",
    "FileCheckpointStore",
    "PartitionedCheckpointStore",
    "PartitionPlan",
    "write_atomic",
]
