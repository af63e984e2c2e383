"""File-based CrawlDB store.

Rows live in memory and are persisted as an append-only JSONL log
(<crawl_id>_webpage.jsonl). Writes are buffered until flush(); on open the
log is replayed with the last entry for a key winning. compact() rewrites
the log with one line per key.
"""

import base64
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import zstandard as zstd

from ..errors import SetupError
from ..record import FrontierRecord
from .base import FrontierStore

logger = logging.getLogger(__name__)

TABLE_NAME = "webpage"


def table_file_name(crawl_id: str = "") -> str:
    """Log file name for a crawl, e.g. 'news_webpage.jsonl'."""
    return f"{crawl_id}_{TABLE_NAME}.jsonl" if crawl_id else f"{TABLE_NAME}.jsonl"


class FileStore(FrontierStore):
    """JSONL-backed store with buffered writes."""

    def __init__(self, root: str, crawl_id: str = "", compress: bool = False):
        """Open (or create) the store.

        Args:
            root: Directory holding the table files
            crawl_id: Crawl identifier, selects the table file
            compress: Compress page content with zstandard

        Raises:
            SetupError: if the directory or table file cannot be used
        """
        self.root = Path(root)
        self.crawl_id = crawl_id
        self.compress = compress
        self.path = self.root / table_file_name(crawl_id)

        self._rows: Dict[str, FrontierRecord] = {}
        self._pending: List[Tuple[str, FrontierRecord]] = []
        self._lock = threading.RLock()
        self._compressor = zstd.ZstdCompressor(level=3) if compress else None
        self._decompressor = zstd.ZstdDecompressor()

        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self._load()
            self._handle = open(self.path, "a", encoding="utf-8")
        except OSError as e:
            raise SetupError(f"Could not open CrawlDB table {self.path}: {e}") from e

        # Statistics
        self.rows_written = 0
        self.flushes = 0

        logger.info(f"CrawlDB store opened: {self.path} ({len(self._rows)} rows)")

    # =========================================================================
    # Serialization
    # =========================================================================

    def _encode_row(self, key: str, record: FrontierRecord) -> str:
        row = record.to_dict()
        if self._compressor is not None and record.content is not None:
            row["content"] = base64.b64encode(self._compressor.compress(record.content)).decode("ascii")
            row["content_codec"] = "zstd"
        return json.dumps({"key": key, "row": row}, ensure_ascii=False)

    def _decode_row(self, line: str) -> Tuple[str, FrontierRecord]:
        data = json.loads(line)
        row: Dict[str, Any] = data["row"]
        codec = row.pop("content_codec", None)
        record = FrontierRecord.from_dict(row)
        if codec == "zstd" and record.content is not None:
            record.content = self._decompressor.decompress(record.content)
        elif codec is not None:
            raise ValueError(f"Unknown content codec: {codec}")
        return data["key"], record

    def _load(self):
        """Replay the table log into memory."""
        if not self.path.exists():
            logger.info("No existing CrawlDB table found - starting fresh")
            return

        with open(self.path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    key, record = self._decode_row(line)
                except (ValueError, KeyError, TypeError, zstd.ZstdError) as e:
                    logger.error(f"Skipping bad row at {self.path}:{lineno}: {e}")
                    continue
                self._rows[key] = record

        logger.info(f"Loaded {len(self._rows)} rows from {self.path}")

    # =========================================================================
    # Store contract
    # =========================================================================

    def get(self, key: str, fields: Optional[Iterable[str]] = None) -> Optional[FrontierRecord]:
        record = self._rows.get(key)
        if record is None:
            return None
        return record.project(fields) if fields is not None else record

    def exists(self, key: str) -> bool:
        return key in self._rows

    def put(self, key: str, record: FrontierRecord) -> None:
        with self._lock:
            self._rows[key] = record
            self._pending.append((key, record))

    def put_if_absent(self, key: str, record: FrontierRecord) -> bool:
        with self._lock:
            if key in self._rows:
                return False
            self.put(key, record)
            return True

    def flush(self) -> None:
        """Append buffered rows to the table log and sync to disk."""
        with self._lock:
            if not self._pending:
                return
            for key, record in self._pending:
                self._handle.write(self._encode_row(key, record) + "\n")
            self._handle.flush()
            os.fsync(self._handle.fileno())
            self.rows_written += len(self._pending)
            self.flushes += 1
            logger.debug(f"Flushed {len(self._pending)} rows to {self.path}")
            self._pending.clear()

    def scan(self) -> Iterator[Tuple[str, FrontierRecord]]:
        for key in sorted(self._rows):
            yield key, self._rows[key]

    @property
    def pending(self) -> int:
        """Number of rows written but not yet flushed."""
        return len(self._pending)

    def __len__(self) -> int:
        return len(self._rows)

    # =========================================================================
    # Maintenance
    # =========================================================================

    def compact(self):
        """Rewrite the table log with only the latest row per key."""
        with self._lock:
            self.flush()
            self._handle.close()

            # Write to temp file first (atomic)
            tmp_path = self.path.with_suffix(".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    for key in sorted(self._rows):
                        f.write(self._encode_row(key, self._rows[key]) + "\n")
                    f.flush()
                    os.fsync(f.fileno())
                tmp_path.replace(self.path)
            except Exception:
                logger.error(f"Failed to compact CrawlDB table {self.path}, keeping the old log")
                tmp_path.unlink(missing_ok=True)
                raise
            finally:
                # Reopen whichever log is now at self.path
                self._handle = open(self.path, "a", encoding="utf-8")
            logger.info(f"Compacted CrawlDB table {self.path} to {len(self._rows)} rows")

    def close(self):
        """Flush pending rows and close the table log."""
        with self._lock:
            if self._handle.closed:
                return
            self.flush()
            self._handle.close()
            logger.info(f"CrawlDB store closed: {self.path} ({len(self._rows)} rows)")
