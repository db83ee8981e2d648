"""CSV source — Rows from ``id,label`` CSV exports, optionally bzip2-compressed."""

from __future__ import annotations

import asyncio
import bz2
import csv
import logging
from itertools import islice
from pathlib import Path
from typing import IO

from locindex.sources.base import RowCallback, Source

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000


class CSVSource(Source):
    """Reads rows from a CSV file with a header line.

    Files ending in ``.bz2`` are decompressed on the fly. Rows without an
    ``id`` value are skipped. Reading and decompression run in the default
    executor, ``chunk_size`` rows at a time, so the event loop stays free
    for the bulk workers.

    Args:
        label: Collection label, e.g. ``"lcsh"``.
        path: Path to the CSV file.
        chunk_size: Rows read per executor call.
    """

    def __init__(self, label: str, path: str | Path, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        super().__init__(label)
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.path = Path(path)
        self.chunk_size = chunk_size

    def _open(self) -> IO[str]:
        if self.path.suffix == ".bz2":
            return bz2.open(self.path, mode="rt", encoding="utf-8", newline="")
        return open(self.path, encoding="utf-8", newline="")

    async def index(self, callback: RowCallback) -> None:
        loop = asyncio.get_running_loop()
        fh = await loop.run_in_executor(None, self._open)
        try:
            reader = csv.DictReader(fh)
            line_no = 1
            while True:
                chunk = await loop.run_in_executor(None, lambda: list(islice(reader, self.chunk_size)))
                if not chunk:
                    break
                for row in chunk:
                    line_no += 1
                    if not row.get("id"):
                        logger.warning("Skipping %s line %d: missing id", self.path, line_no)
                        continue
                    await callback({k: v or "" for k, v in row.items() if k is not None})
        finally:
            fh.close()
