"""Frontier records stored in the CrawlDB.

A record is one row of the web page table: the crawl state of a single URL.
The injector only ever creates three kinds of rows:

- seed rows for URLs that should be crawled (status UNFETCHED)
- redirect rows for URLs known to permanently redirect elsewhere (REDIR_PERM)
- document rows for pages that were fetched outside the crawler (FETCHED)

Later crawl stages update these rows; this package never does.
"""

import base64
import logging
import math
import re
import time
from dataclasses import dataclass, field, fields, replace
from enum import Enum, IntEnum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


# Marker and metadata names shared with the downstream crawl jobs
DISTANCE_MARKER = "dist"
INJECT_MARK = "_injmrk_"
FETCH_MARK = "_ftcmrk_"
REDIRECT_DISCOVERED = "___rdrdsc__"

YES_VALUE = "y"
ZERO_DISTANCE = "0"

DEFAULT_SCORE = 1.0
DEFAULT_FETCH_INTERVAL = 30 * 24 * 60 * 60  # 30 days

SCORE_KEY = "nutch.score"
FETCH_INTERVAL_KEY = "nutch.fetchInterval"

# Fetch intervals are 32-bit ints downstream
INTERVAL_PATTERN = re.compile(r"[+-]?[0-9]+")
MIN_INTERVAL = -(2 ** 31)
MAX_INTERVAL = 2 ** 31 - 1


class CrawlStatus(IntEnum):
    """Crawl status codes as used by the CrawlDB."""
    UNKNOWN = 0
    UNFETCHED = 1
    FETCHED = 2
    GONE = 3
    REDIR_TEMP = 4
    REDIR_PERM = 5
    RETRY = 34
    NOTMODIFIED = 38


class ProtocolStatusCode(IntEnum):
    """Protocol-level outcome codes for a fetch."""
    SUCCESS = 1
    FAILED = 2
    GONE = 11
    MOVED = 12
    TEMP_MOVED = 13
    NOTFOUND = 14


@dataclass(frozen=True)
class ProtocolStatus:
    code: ProtocolStatusCode
    args: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"code": int(self.code), "args": list(self.args)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProtocolStatus":
        return cls(code=ProtocolStatusCode(data["code"]), args=tuple(data.get("args", ())))


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class FrontierRecord:
    """One row of the CrawlDB web page table."""
    status: CrawlStatus = CrawlStatus.UNKNOWN
    score: float = DEFAULT_SCORE
    fetch_interval: int = DEFAULT_FETCH_INTERVAL
    fetch_time: int = 0
    metadata: Dict[str, bytes] = field(default_factory=dict)
    markers: Dict[str, str] = field(default_factory=dict)
    outlinks: Dict[str, str] = field(default_factory=dict)
    repr_url: Optional[str] = None
    protocol_status: Optional[ProtocolStatus] = None
    content: Optional[bytes] = None
    content_type: Optional[str] = None
    base_url: Optional[str] = None

    def project(self, names: Iterable[str]) -> "FrontierRecord":
        """Return a copy that only carries the named fields.

        Fields that are not requested keep their defaults, matching what a
        store returns for a partial read.

        Raises:
            ValueError: for unknown field names
        """
        wanted = set(names)
        known = {f.name for f in fields(self)}
        unknown = wanted - known
        if unknown:
            raise ValueError(f"Unknown record fields: {sorted(unknown)}")
        return replace(FrontierRecord(), **{name: getattr(self, name) for name in wanted})

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible types (bytes as base64)."""
        return {
            "status": int(self.status),
            "score": self.score,
            "fetch_interval": self.fetch_interval,
            "fetch_time": self.fetch_time,
            "metadata": {k: _b64encode(v) for k, v in self.metadata.items()},
            "markers": dict(self.markers),
            "outlinks": dict(self.outlinks),
            "repr_url": self.repr_url,
            "protocol_status": self.protocol_status.to_dict() if self.protocol_status else None,
            "content": _b64encode(self.content) if self.content is not None else None,
            "content_type": self.content_type,
            "base_url": self.base_url,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FrontierRecord":
        protocol_status = data.get("protocol_status")
        content = data.get("content")
        return cls(
            status=CrawlStatus(data.get("status", 0)),
            score=float(data.get("score", DEFAULT_SCORE)),
            fetch_interval=int(data.get("fetch_interval", DEFAULT_FETCH_INTERVAL)),
            fetch_time=int(data.get("fetch_time", 0)),
            metadata={k: _b64decode(v) for k, v in (data.get("metadata") or {}).items()},
            markers=dict(data.get("markers") or {}),
            outlinks=dict(data.get("outlinks") or {}),
            repr_url=data.get("repr_url"),
            protocol_status=ProtocolStatus.from_dict(protocol_status) if protocol_status else None,
            content=_b64decode(content) if content is not None else None,
            content_type=data.get("content_type"),
            base_url=data.get("base_url"),
        )


def _b64encode(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


def _b64decode(value: str) -> bytes:
    return base64.b64decode(value.encode("ascii"))


def encode_metadata(metadata: Optional[Mapping[str, str]]) -> Dict[str, bytes]:
    """Copy caller metadata into the byte-valued form stored on records."""
    if not metadata:
        return {}
    encoded = {}
    for key, value in metadata.items():
        encoded[key] = value if isinstance(value, bytes) else str(value).encode("utf-8")
    return encoded


# =========================================================================
# Metadata overrides
# =========================================================================

@dataclass(frozen=True)
class OverrideKeys:
    """Metadata keys that override the score and fetch interval of a seed."""
    score: str = SCORE_KEY
    fetch_interval: str = FETCH_INTERVAL_KEY


class OverrideOutcome(str, Enum):
    APPLIED = "applied"
    IGNORED = "ignored"


@dataclass(frozen=True)
class OverrideResult:
    """What happened to one reserved metadata entry."""
    key: str
    value: str
    outcome: OverrideOutcome

    @property
    def applied(self) -> bool:
        return self.outcome is OverrideOutcome.APPLIED


def _parse_score(text: str) -> float:
    # Digit group separators, non-ASCII digits and non-finite values are not scores
    if "_" in text or not text.isascii():
        raise ValueError(f"not a score: {text!r}")
    score = float(text.strip())
    if not math.isfinite(score):
        raise ValueError(f"not a finite score: {text!r}")
    return score


def _parse_interval(text: str) -> int:
    if not INTERVAL_PATTERN.fullmatch(text):
        raise ValueError(f"not an interval: {text!r}")
    interval = int(text)
    if not MIN_INTERVAL <= interval <= MAX_INTERVAL:
        raise ValueError(f"interval out of range: {text!r}")
    return interval


def apply_overrides(
    url: str,
    metadata: Optional[Mapping[str, str]],
    score: float,
    interval: int,
    keys: OverrideKeys = OverrideKeys(),
) -> Tuple[float, int, List[OverrideResult]]:
    """Apply score/fetch interval overrides found in seed metadata.

    Malformed values (including bytes that are not UTF-8) are logged and
    ignored; the value accumulated so far is kept. Values under other keys
    are never looked at.

    Args:
        url: URL the metadata belongs to (for log messages)
        metadata: Caller supplied metadata
        score: Score to start from
        interval: Fetch interval (seconds) to start from
        keys: Reserved metadata keys

    Returns:
        Tuple of (score, interval, results for every reserved key seen)
    """
    results: List[OverrideResult] = []
    for key, value in (metadata or {}).items():
        if key == keys.score:
            name, parse = "score", _parse_score
        elif key == keys.fetch_interval:
            name, parse = "fetch interval", _parse_interval
        else:
            continue

        if isinstance(value, bytes):
            shown = value.decode("utf-8", errors="replace")
        else:
            shown = str(value)
        try:
            text = value.decode("utf-8") if isinstance(value, bytes) else str(value)
            parsed = parse(text)
        except ValueError:
            # UnicodeDecodeError is a ValueError too
            logger.debug("Got illegal %s value '%s' for URL '%s', ignoring", name, shown, url)
            results.append(OverrideResult(key, shown, OverrideOutcome.IGNORED))
            continue

        if key == keys.score:
            score = parsed
        else:
            interval = parsed
        results.append(OverrideResult(key, shown, OverrideOutcome.APPLIED))
    return score, interval, results


# =========================================================================
# Builders
# =========================================================================

def build_seed_record(
    url: str,
    metadata: Optional[Mapping[str, str]] = None,
    default_score: float = DEFAULT_SCORE,
    default_interval: int = DEFAULT_FETCH_INTERVAL,
    keys: OverrideKeys = OverrideKeys(),
) -> Tuple[FrontierRecord, List[OverrideResult]]:
    """Create the row for a new seed URL.

    Returns:
        Tuple of (record, override results)
    """
    score, interval, results = apply_overrides(url, metadata, default_score, default_interval, keys)
    record = FrontierRecord(
        status=CrawlStatus.UNFETCHED,
        score=score,
        fetch_interval=interval,
        fetch_time=now_millis(),
        metadata=encode_metadata(metadata),
        markers={DISTANCE_MARKER: ZERO_DISTANCE, INJECT_MARK: YES_VALUE},
    )
    return record, results


def build_redirect_record(to_url: str) -> FrontierRecord:
    """Create the row for a URL that permanently redirects to to_url."""
    return FrontierRecord(
        status=CrawlStatus.REDIR_PERM,
        fetch_time=now_millis(),
        metadata={REDIRECT_DISCOVERED: YES_VALUE.encode("utf-8")},
        outlinks={to_url: ""},
        repr_url=to_url,
        protocol_status=ProtocolStatus(ProtocolStatusCode.MOVED, (to_url,)),
    )


def build_document_record(
    url: str,
    content: Optional[bytes],
    content_type: Optional[str],
    metadata: Optional[Mapping[str, str]],
    batch_id: str,
) -> FrontierRecord:
    """Create the row for a page fetched outside the crawler.

    Previous fetch time and protocol status are not filled in.
    """
    record = FrontierRecord(
        status=CrawlStatus.FETCHED,
        fetch_time=now_millis(),
        metadata=encode_metadata(metadata),
        markers={DISTANCE_MARKER: ZERO_DISTANCE, FETCH_MARK: batch_id},
    )
    if content is not None:
        record.content = bytes(content)
        record.content_type = content_type
        record.base_url = url
    return record
