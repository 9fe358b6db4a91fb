"""
Element-Set Text Cache

Persistent text cache with HTTP conditional revalidation (ETag /
Last-Modified) that prefers serving stale content over failing.

Behaviour per request:
- Fresh entry and no revalidation requested: served with zero network access
- Otherwise a conditional GET is issued with the stored validators
- 304 Not Modified: stored body kept, validators and fetch time refreshed
- Any other failure: stale body served when one exists, else NetworkError
- 2xx: body stored with its validators and returned

Records are stored as JSON under ``tle:<url>`` in the injected key-value
store. Concurrent requests for the same URL are not coalesced; overwrites are
idempotent.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from pydantic import ValidationError

from frame_service.config import TLE_CACHE_TTL_SECONDS
from frame_service.exceptions import NetworkError
from frame_service.models import CachedEntry
from frame_service.store import KeyValueStore
from frame_service.transport import FetchStrategy

logger = logging.getLogger(__name__)

KEY_PREFIX = "tle:"


def cache_key(url: str) -> str:
    return f"{KEY_PREFIX}{url}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TextCache:
    """
    Conditional-GET text cache bound to a key-value store.

    Args:
        store: Persistent key-value collaborator
        clock: Returns the current UTC instant (injectable for tests)
    """

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = _utcnow):
        self.store = store
        self.clock = clock

    def load_entry(self, url: str) -> Optional[CachedEntry]:
        raw = self.store.get(cache_key(url))
        if raw is None:
            return None
        try:
            return CachedEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding corrupt cache record for {url}: {e}")
            return None

    def save_entry(self, entry: CachedEntry) -> None:
        self.store.set(cache_key(entry.url), entry.model_dump_json())

    async def fetch_text_cached(self, url: str, fetcher: FetchStrategy,
                                ttl: float = TLE_CACHE_TTL_SECONDS,
                                revalidate: bool = True) -> str:
        """
        Return the text at ``url``, using the cache where allowed.

        Args:
            url: Source URL (also the cache key)
            fetcher: Fetch strategy used for network access
            ttl: Seconds an entry is considered fresh
            revalidate: Revalidate even when the entry is fresh

        Returns:
            Response body, possibly stale

        Raises:
            NetworkError: The fetch failed and nothing is cached
        """
        now = self.clock()
        cached = self.load_entry(url)
        fresh = cached is not None and cached.is_fresh(now)

        if fresh and not revalidate:
            logger.debug(f"Cache hit for {url} (fresh, no network request)")
            return cached.body

        if cached is not None:
            logger.debug(
                f"Cache entry for {url}: etag={cached.etag}, "
                f"last_modified={cached.last_modified}, fresh={fresh}, revalidate={revalidate}"
            )
        else:
            logger.debug(f"No cache entry for {url}")

        headers = self._conditional_headers(cached)

        try:
            response = await fetcher.fetch(url, headers)
        except Exception as e:
            if cached is not None:
                logger.warning(f"Network error for {url}: {e}. Serving stale cache")
                return cached.body
            raise NetworkError(url, reason=str(e)) from e

        try:
            return await self._handle_response(url, response, cached, now, ttl)
        finally:
            response.close()

    async def _handle_response(self, url: str, response, cached: Optional[CachedEntry],
                               now: datetime, ttl: float) -> str:
        if response.status == 304 and cached is not None:
            logger.debug(f"304 Not Modified for {url}; cached body kept")
            cached.etag = response.headers.get("etag") or cached.etag
            cached.last_modified = response.headers.get("last-modified") or cached.last_modified
            cached.fetched_at = max(cached.fetched_at, now)
            cached.ttl = ttl
            self.save_entry(cached)
            return cached.body

        if not response.ok:
            if cached is not None:
                logger.warning(f"HTTP {response.status} for {url}. Serving stale cache")
                return cached.body
            raise NetworkError(url, response.status)

        body = await response.text()
        if cached is not None and cached.fetched_at > now:
            fetched_at = cached.fetched_at
        else:
            fetched_at = now
        self.save_entry(CachedEntry(
            url=url,
            body=body,
            etag=response.headers.get("etag"),
            last_modified=response.headers.get("last-modified"),
            fetched_at=fetched_at,
            ttl=ttl,
        ))
        logger.info(f"Fetched {url} ({len(body)} bytes); cached")
        return body

    @staticmethod
    def _conditional_headers(cached: Optional[CachedEntry]) -> Dict[str, str]:
        headers = {"Cache-Control": "no-cache", "Pragma": "no-cache"}
        if cached is not None:
            if cached.etag:
                headers["If-None-Match"] = cached.etag
            if cached.last_modified:
                headers["If-Modified-Since"] = cached.last_modified
        return headers


async def fetch_text_cached(url: str, fetcher: FetchStrategy, store: KeyValueStore,
                            ttl: float = TLE_CACHE_TTL_SECONDS,
                            revalidate: bool = True) -> str:
    """Functional shortcut for :meth:`TextCache.fetch_text_cached`."""
    return await TextCache(store).fetch_text_cached(url, fetcher, ttl=ttl, revalidate=revalidate)
