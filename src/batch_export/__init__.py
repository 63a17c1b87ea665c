"""
Resumable bulk export of an ordered record set into local batch files.
Modular architecture with clean separation of concerns.

Modules:
- config: Typed configuration state (YAML + environment overrides)
- infrastructure: Checkpoint persistence, structured logging
- ingestion: Store ports, cursor codecs, page fetching
- storage: Batch file writing
- orchestration: Lanes, key-range partitioning, export coordination
"""

__version__ = "0.3.0"
