# ThreatView: Feed Module - Feed Fetchers
#
# ``FeedFetcher`` is the contract for anything that can produce a fresh
# record set for the store.  ``HttpFeedFetcher`` is the production
# implementation: one HTTP GET per refresh, JSON body handed to
# ``normalize_feed``.  There is no retry here; a failed refresh simply
# leaves the store as it was until the next scheduled cycle.

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from .errors import FeedFetchError, FeedFormatError
from .normalize import NormalizedFeed, normalize_feed

logger = logging.getLogger(__name__)

USER_AGENT = "ThreatView/0.1"
DEFAULT_TIMEOUT_SEC = 15.0


class FeedFetcher(ABC):
    """Abstract base class for threat feed sources.

    Lifecycle:
        1. ``configure()`` - set URL, timeout
        2. ``fetch()`` - pull the full current record set
        3. ``health_check()`` - verify the feed is reachable
    """

    def __init__(self, name: str):
        self.name = name
        self._last_fetch: Optional[str] = None
        self._fetch_count: int = 0
        self._error_count: int = 0

    @abstractmethod
    def configure(self, **kwargs) -> None:
        """Configure the fetcher (URL, timeout, etc.)."""

    @abstractmethod
    def fetch(self) -> NormalizedFeed:
        """Fetch and normalise the full current record set.

        Raises:
            FeedError: on any transport, HTTP or format failure.
        """

    @abstractmethod
    def health_check(self) -> bool:
        """Return True if the feed source is reachable."""

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def record_fetch(self, count: int) -> None:
        self._last_fetch = datetime.utcnow().isoformat()
        self._fetch_count += count

    def record_error(self) -> None:
        self._error_count += 1

    def get_stats(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "last_fetch": self._last_fetch,
            "total_fetched": self._fetch_count,
            "total_errors": self._error_count,
        }


class HttpFeedFetcher(FeedFetcher):
    """Fetch the threat feed from a JSON HTTP endpoint.

    Usage::

        fetcher = HttpFeedFetcher()
        fetcher.configure(url="https://example.org/api/threats")
        feed = fetcher.fetch()
    """

    def __init__(self, url: str = "", timeout: float = DEFAULT_TIMEOUT_SEC):
        super().__init__("threatview-http")
        self._url = url
        self._timeout = timeout

    @property
    def url(self) -> str:
        return self._url

    def configure(self, **kwargs) -> None:
        """Configure the fetcher.

        Keyword Args:
            url: Feed endpoint returning JSON.
            timeout: Request timeout in seconds.
        """
        self._url = kwargs.get("url", self._url)
        self._timeout = kwargs.get("timeout", self._timeout)

    def fetch(self) -> NormalizedFeed:
        try:
            payload = self._get_json()
            feed = normalize_feed(payload)
        except (FeedFetchError, FeedFormatError):
            self.record_error()
            raise
        self.record_fetch(len(feed.records))
        logger.info("Fetched %d threat records from %s", len(feed.records), self._url)
        return feed

    def health_check(self) -> bool:
        try:
            resp = httpx.get(self._url, headers=self._headers(), timeout=self._timeout)
            return resp.status_code < 500
        except httpx.HTTPError:
            return False

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "User-Agent": USER_AGENT}

    def _get_json(self) -> Any:
        if not self._url:
            raise FeedFetchError("Feed URL is not configured")
        try:
            resp = httpx.get(self._url, headers=self._headers(), timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise FeedFetchError(f"Feed request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise FeedFetchError(
                f"Feed returned HTTP {resp.status_code}", status_code=resp.status_code
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise FeedFormatError(f"Feed body is not valid JSON: {exc}") from exc
