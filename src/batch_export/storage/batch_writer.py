"""JSON batch file writer.

Each page becomes one indented JSON array of objects. The file is written under
a temporary sibling name and renamed into place only after a successful flush,
so a reader never sees a half-written batch under its final name.
"""

import json
import os
from pathlib import Path
from typing import Any

from batch_export.exceptions import BatchWriteError
from batch_export.infrastructure.checkpoint.path_builder import CheckpointPathBuilder
from batch_export.infrastructure.observability import get_storage_logger
from batch_export.ingestion.models import Page
from batch_export.ingestion.ports import IRecordEncoder


def _default_encoder(value: Any) -> Any:
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class JsonBatchWriter:
    """
    Writes pages to `export_dir/<destination_name>`.

    Existing files with the same name are replaced: a batch re-exported after
    a crash overwrites the file left by the aborted run.
    """

    def __init__(
        self,
        export_dir: str | Path,
        encoder: IRecordEncoder | None = None,
        indent: int | None = 2,
    ):
        self.export_dir = Path(export_dir)
        self.encoder = encoder or _default_encoder
        self.indent = indent
        self._log = get_storage_logger("json-batch-writer", export_dir=str(self.export_dir))

    def write(self, page: Page, destination_name: str) -> Path:
        """
        Serialize the page's records, in received order, to destination_name.

        Args:
            page: Page to write (may be empty, producing "[]")
            destination_name: File name relative to export_dir

        Returns:
            Final path of the written file

        Raises:
            BatchWriteError: If the file cannot be created, serialized or renamed
        """
        target = self.export_dir / destination_name
        tmp = CheckpointPathBuilder.temp_sibling(target)

        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(
                    list(page.records),
                    f,
                    indent=self.indent,
                    default=self.encoder,
                    ensure_ascii=False,
                )
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, target)
        except (OSError, TypeError, ValueError) as e:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                self._log.warning("temp_file_cleanup_failed", path=str(tmp))
            raise BatchWriteError(
                f"Failed to write batch {target}: {e}", destination=str(target)
            ) from e

        self._log.debug("batch_file_written", path=str(target), records=len(page))
        return target
