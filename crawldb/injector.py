"""Write seed URLs, redirects and pre-fetched documents to the CrawlDB.

Rows are only ever inserted: if there is already a row for a URL the call
is a no-op and returns False. URL filters and normalizers are not applied;
callers pass URLs in the form they should be stored.
"""

import logging
import random
import time
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .config import CrawlDbConfig
from .errors import InjectionError
from .keys import reverse_url
from .record import (
    DEFAULT_FETCH_INTERVAL,
    DEFAULT_SCORE,
    OverrideKeys,
    OverrideResult,
    build_document_record,
    build_redirect_record,
    build_seed_record,
)
from .store import FrontierStore, create_store

logger = logging.getLogger(__name__)

Seed = Union[str, Tuple[str, Optional[Mapping[str, str]]]]


def generate_batch_id() -> str:
    """Create a batch id in the '<epoch seconds>-<random>' form used by crawl jobs."""
    return f"{int(time.time())}-{random.randrange(1 << 31)}"


class Injector:
    """Inserts rows into a CrawlDB store, never overwriting existing ones."""

    def __init__(
        self,
        store: FrontierStore,
        default_score: float = DEFAULT_SCORE,
        default_interval: int = DEFAULT_FETCH_INTERVAL,
        override_keys: OverrideKeys = OverrideKeys(),
        max_redirects: int = 20,
    ):
        """Create an injector for an open store.

        Args:
            store: CrawlDB store to write to
            default_score: Score for injected pages, unless overridden by metadata
            default_interval: Fetch interval (seconds) for injected pages,
                unless overridden by metadata
            override_keys: Metadata keys carrying score/interval overrides
            max_redirects: Longest redirect chain add_redirect_chain() accepts
        """
        if max_redirects < 1:
            raise ValueError("max_redirects must be >= 1")
        self.store = store
        self.default_score = default_score
        self.default_interval = default_interval
        self.override_keys = override_keys
        self.max_redirects = max_redirects

        # Overrides seen while building the most recent seed row
        self.last_overrides: List[OverrideResult] = []

        self.stats: Dict[str, int] = {
            "injected": 0,
            "already_present": 0,
            "redirects": 0,
            "documents": 0,
            "overrides_applied": 0,
            "overrides_ignored": 0,
        }

    @classmethod
    def from_config(cls, config: CrawlDbConfig) -> "Injector":
        """Open the configured store and wrap it.

        Raises:
            SetupError: if the store cannot be opened
        """
        store = create_store(config.storage, crawl_id=config.crawl_id, workspace=config.get_workspace_path())
        settings = config.injector
        return cls(
            store,
            default_score=settings.default_score,
            default_interval=settings.default_fetch_interval,
            override_keys=settings.override_keys,
            max_redirects=settings.max_redirects,
        )

    # =========================================================================
    # Lookups
    # =========================================================================

    def _has_key(self, key: str) -> bool:
        return self.store.get(key, ["status"]) is not None

    def has_url(self, url: str) -> bool:
        """Test if a given URL is in the CrawlDB.

        Args:
            url: URL to check

        Returns:
            True iff a row for the URL is stored

        Raises:
            InvalidUrlError: if url is not a valid URL
        """
        return self._has_key(reverse_url(url))

    # =========================================================================
    # Seeds
    # =========================================================================

    def inject(self, url: str, metadata: Optional[Mapping[str, str]] = None) -> bool:
        """Add a new seed URL, if it doesn't exist yet.

        The reserved score and fetch interval metadata entries override the
        defaults for this row. Every metadata entry, reserved or not, is
        stored with the row.

        Args:
            url: URL to add
            metadata: Additional metadata to store with the row

        Returns:
            False if the URL is already in the CrawlDB, True otherwise

        Raises:
            InvalidUrlError: if url is not a valid URL
        """
        key = reverse_url(url)
        if self._has_key(key):
            self.stats["already_present"] += 1
            return False

        record, overrides = build_seed_record(
            url, metadata, self.default_score, self.default_interval, self.override_keys
        )
        self.last_overrides = overrides
        for result in overrides:
            self.stats["overrides_applied" if result.applied else "overrides_ignored"] += 1

        if not self.store.put_if_absent(key, record):
            logger.debug("Row for %s appeared concurrently, not overwriting", url)
            self.stats["already_present"] += 1
            return False
        self.store.flush()

        self.stats["injected"] += 1
        logger.debug("Injected %s (score=%s, interval=%s)", url, record.score, record.fetch_interval)
        return True

    def inject_all(self, seeds: Iterable[Seed]) -> int:
        """Inject many seeds.

        Args:
            seeds: URLs, or (url, metadata) pairs

        Returns:
            Number of URLs that were newly added
        """
        added = 0
        total = 0
        for seed in seeds:
            if isinstance(seed, str):
                url, metadata = seed, None
            else:
                url, metadata = seed
            total += 1
            if self.inject(url, metadata):
                added += 1
        logger.info(f"Injected {added} of {total} seed URLs ({total - added} already present)")
        return added

    # =========================================================================
    # Redirects
    # =========================================================================

    def add_redirect(self, from_url: str, to_url: str, metadata: Optional[Mapping[str, str]] = None) -> bool:
        """Store a redirect, unless there is already a row for from_url.

        The redirect target is then injected as a seed with the given
        metadata. When from_url is already stored nothing is written, not
        even for the target.

        Args:
            from_url: The redirecting URL
            to_url: The redirect target URL
            metadata: Metadata for the seed row of the target

        Returns:
            False if the redirecting URL is already stored, True otherwise

        Raises:
            InvalidUrlError: if either URL is not valid (nothing is written)
        """
        from_key = reverse_url(from_url)
        to_key = reverse_url(to_url)
        if self._has_key(from_key):
            self.stats["already_present"] += 1
            return False

        if from_key == to_key:
            logger.warning("Ignoring redirect of %s to itself, injecting it as a seed", from_url)
            return self.inject(from_url, metadata)

        # Written unflushed; the inject below flushes it along with the target
        if not self.store.put_if_absent(from_key, build_redirect_record(to_url)):
            self.stats["already_present"] += 1
            return False
        self.stats["redirects"] += 1
        logger.debug("Added redirect %s -> %s", from_url, to_url)

        if not self.inject(to_url, metadata):
            self.store.flush()
        return True

    def add_redirect_chain(self, urls: Sequence[str], metadata: Optional[Mapping[str, str]] = None) -> int:
        """Store a chain of redirects u0 -> u1 -> ... -> un.

        Every URL but the last becomes a redirect row, the last one a seed.
        The chain stops at the first URL that is already stored or that
        occurs twice.

        Args:
            urls: The URLs of the chain, in redirect order
            metadata: Metadata for the seed row of the final URL

        Returns:
            Number of rows written

        Raises:
            InvalidUrlError: if any URL is not valid (nothing is written)
            InjectionError: if the chain is longer than max_redirects
        """
        if not urls:
            return 0
        if len(urls) - 1 > self.max_redirects:
            raise InjectionError(
                f"Redirect chain of {len(urls) - 1} hops exceeds limit of {self.max_redirects}"
            )
        # Collapse hops from a URL to itself
        hops: List[Tuple[str, str]] = []
        for url in urls:
            key = reverse_url(url)
            if not hops or hops[-1][1] != key:
                hops.append((url, key))

        written = 0
        visited = set()
        complete = True
        for (url, key), (target, _) in zip(hops, hops[1:]):
            if key in visited:
                logger.warning("Redirect loop at %s, stopping chain", url)
                complete = False
                break
            visited.add(key)
            if self._has_key(key) or not self.store.put_if_absent(key, build_redirect_record(target)):
                self.stats["already_present"] += 1
                complete = False
                break
            self.stats["redirects"] += 1
            written += 1

        last_url, last_key = hops[-1]
        if complete and last_key not in visited and self.inject(last_url, metadata):
            written += 1
        elif written:
            self.store.flush()

        logger.debug("Stored redirect chain of %d URLs, %d rows written", len(urls), written)
        return written

    # =========================================================================
    # Documents
    # =========================================================================

    def write_document(
        self,
        url: str,
        content: Optional[bytes] = None,
        content_type: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        metadata: Optional[Mapping[str, str]] = None,
        batch_id: Optional[str] = None,
    ) -> bool:
        """Write a fetched document, unless there is already a row for url.

        Metadata is stored verbatim; the score/interval override keys have no
        special meaning here. Protocol headers, previous fetch time and
        protocol status are not stored.

        Args:
            url: URL of the page, also used as its base URL
            content: Raw page content
            content_type: MIME type of the content
            headers: Protocol headers
            metadata: Additional metadata
            batch_id: Batch the document belongs to, used as fetch mark
                (generated if not given)

        Returns:
            True if the document was inserted, False if the URL is already stored

        Raises:
            InvalidUrlError: if url is not a valid URL
        """
        key = reverse_url(url)
        if self._has_key(key):
            self.stats["already_present"] += 1
            return False

        if batch_id is None:
            batch_id = generate_batch_id()
        if headers:
            logger.debug("Not storing %d protocol headers for %s", len(headers), url)

        record = build_document_record(url, content, content_type, metadata, batch_id)
        if not self.store.put_if_absent(key, record):
            self.stats["already_present"] += 1
            return False
        self.store.flush()

        self.stats["documents"] += 1
        logger.debug("Wrote document %s (batch %s, %d bytes)", url, batch_id, len(content or b""))
        return True

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self):
        """Flush and close the underlying store."""
        logger.info(
            "Closing injector - injected: %d, redirects: %d, documents: %d, already present: %d",
            self.stats["injected"],
            self.stats["redirects"],
            self.stats["documents"],
            self.stats["already_present"],
        )
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
