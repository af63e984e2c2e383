"""Adapter contract for the key-value store holding the CrawlDB."""

from abc import ABC, abstractmethod
from typing import Iterable, Iterator, Optional, Tuple

from ..record import FrontierRecord


class FrontierStore(ABC):
    """Row store keyed by reversed URL.

    Implementations decide how writes are buffered; flush() makes all
    previous writes durable and visible to other readers.
    """

    @abstractmethod
    def get(self, key: str, fields: Optional[Iterable[str]] = None) -> Optional[FrontierRecord]:
        """Fetch a row, optionally only the named fields.

        Returns:
            The record, or None if there is no row for key
        """

    @abstractmethod
    def put(self, key: str, record: FrontierRecord) -> None:
        """Insert or replace the row for key."""

    @abstractmethod
    def flush(self) -> None:
        """Force buffered writes to become durable."""

    @abstractmethod
    def scan(self) -> Iterator[Tuple[str, FrontierRecord]]:
        """Iterate over all rows in key order."""

    def exists(self, key: str) -> bool:
        """Check whether a row is stored for key. Never raises for a missing key."""
        return self.get(key, ["status"]) is not None

    def put_if_absent(self, key: str, record: FrontierRecord) -> bool:
        """Insert the row only if there is none for key yet.

        The default is a best-effort check followed by a put; adapters that
        can do better override it.

        Returns:
            True if the row was written
        """
        if self.exists(key):
            return False
        self.put(key, record)
        return True

    def close(self) -> None:
        self.flush()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
