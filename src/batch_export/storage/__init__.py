"""
Storage layer: turns fetched pages into self-describing batch files on local
disk. Ordering and completeness across files are reconstructed from the
`batch_<seq>_worker_<lane>.json` naming convention; no manifest links them.
"""

from .batch_writer import JsonBatchWriter

__all__ = ["JsonBatchWriter"]
