"""
Base record reader with deterministic resource handling.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)

Record = Dict[str, Optional[str]]


class RecordReader:
    """Single-pass iterator of raw records over one file.

    Subclasses open their handle in ``__init__`` and implement ``_read_next``,
    returning the next record or None at end of input. The handle is released
    on ``close()``, on exhaustion, and when leaving a ``with`` block.
    """

    def __init__(self, file_path: Path):
        self.file_path = Path(file_path)
        self._fh = None
        self._closed = False
        self.records_read = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __iter__(self) -> Iterator[Record]:
        return self

    def __next__(self) -> Record:
        if self._closed:
            raise StopIteration
        record = self._read_next()
        if record is None:
            self.close()
            raise StopIteration
        return record

    def _read_next(self) -> Optional[Record]:
        raise NotImplementedError

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._fh is not None:
            try:
                self._fh.close()
            except OSError as e:
                logger.warning(f"Error closing {self.file_path.name}: {e}")
            self._fh = None
