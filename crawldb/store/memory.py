"""In-memory store, used for tests and dry runs."""

import threading
from typing import Dict, Iterable, Iterator, Optional, Tuple

from ..record import FrontierRecord
from .base import FrontierStore


class MemoryStore(FrontierStore):
    """Dict-backed store. Writes are visible immediately."""

    def __init__(self):
        self._rows: Dict[str, FrontierRecord] = {}
        self._lock = threading.Lock()
        self.flush_count = 0

    def get(self, key: str, fields: Optional[Iterable[str]] = None) -> Optional[FrontierRecord]:
        record = self._rows.get(key)
        if record is None:
            return None
        return record.project(fields) if fields is not None else record

    def put(self, key: str, record: FrontierRecord) -> None:
        with self._lock:
            self._rows[key] = record

    def put_if_absent(self, key: str, record: FrontierRecord) -> bool:
        with self._lock:
            if key in self._rows:
                return False
            self._rows[key] = record
            return True

    def exists(self, key: str) -> bool:
        return key in self._rows

    def flush(self) -> None:
        self.flush_count += 1

    def scan(self) -> Iterator[Tuple[str, FrontierRecord]]:
        for key in sorted(self._rows):
            yield key, self._rows[key]

    def __len__(self) -> int:
        return len(self._rows)
