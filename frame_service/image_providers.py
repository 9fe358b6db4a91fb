"""
Image Freshness Resolution

Discovers the most recent full-disk image for a satellite and its capture
time. Two discovery strategies share one capability interface:

- CandidateListProvider: probes a fixed, ordered list of URLs (highest
  resolution first) and dates the first success from its final URL, its
  Last-Modified header, or the current instant
- DirectoryListingProvider: scans an HTML directory listing for
  timestamped filenames and picks the most recent one

Failures are best-effort: a failing candidate or listing is logged and
skipped, and resolution yields None only when every option is exhausted.
"""

import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Mapping, Optional

from frame_service.models import ResolvedImage
from frame_service.timestamps import (
    parse_day_of_year_stamp,
    parse_http_date,
    parse_timestamp_from_url,
)
from frame_service.transport import FetchStrategy, ImageLoader

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImageProvider(ABC):
    """Finds a satellite's most recent image."""

    @abstractmethod
    async def get_recent_image(self, fetch: FetchStrategy,
                               image_loader: ImageLoader) -> Optional[ResolvedImage]:
        """Return the freshest image found, or None."""


class CandidateListProvider(ImageProvider):
    """
    Probe known image URLs in priority order.

    Args:
        candidates: URLs to try, best first
        clock: Current-instant source used when no timestamp signal exists
    """

    def __init__(self, candidates: Iterable[str], clock: Callable[[], datetime] = _utcnow):
        self.candidates: List[str] = list(candidates)
        self.clock = clock

    def timestamp_for(self, final_url: str, last_modified: Optional[str]) -> datetime:
        return (
            parse_timestamp_from_url(final_url)
            or parse_http_date(last_modified)
            or self.clock()
        )

    async def get_recent_image(self, fetch, image_loader):
        for url in self.candidates:
            try:
                response = await fetch.fetch(url)
                # Only status, headers and the final URL are used; the image
                # itself is downloaded by the loader.
                response.close()
                if not response.ok:
                    logger.warning(f"Candidate {url} returned HTTP {response.status}")
                    continue
                final_url = response.url or url
                timestamp = self.timestamp_for(final_url, response.headers.get("last-modified"))
                image = await image_loader.load(final_url)
            except Exception as e:
                logger.warning(f"Candidate {url} failed: {e}")
                continue
            logger.info(f"Resolved image {final_url} captured {timestamp.isoformat()}")
            return ResolvedImage(url=final_url, image=image, timestamp=timestamp)

        logger.warning(f"All {len(self.candidates)} image candidates failed")
        return None

    def __repr__(self):
        return f"CandidateListProvider({len(self.candidates)} candidates)"


class DirectoryListingProvider(ImageProvider):
    """
    Discover the newest image from a directory listing.

    Args:
        directory_url: Listing URL, ending in ``/``
        filename_pattern: Regex with one group capturing the ``YYYYDDDHHMM``
            stamp; the whole match is the filename
        clock: Current-instant source used when the stamp does not decode
    """

    def __init__(self, directory_url: str, filename_pattern: str,
                 clock: Callable[[], datetime] = _utcnow):
        self.directory_url = directory_url
        self.filename_regex = re.compile(filename_pattern)
        self.clock = clock

    @classmethod
    def for_goes(cls, cdn_base: str, satellite_name: str, resolution: str = "1808x1808",
                 clock: Callable[[], datetime] = _utcnow) -> "DirectoryListingProvider":
        """GEOCOLOR full-disk listing for e.g. ``"GOES19"``."""
        directory_url = f"{cdn_base}/{satellite_name}/ABI/FD/GEOCOLOR/"
        pattern = rf"(\d{{11,}})_{re.escape(satellite_name)}-ABI-FD-GEOCOLOR-{re.escape(resolution)}\.jpg"
        return cls(directory_url, pattern, clock)

    def latest_filename(self, html: str):
        """Return (filename, stamp) of the most recent match, or None."""
        matches = {(m.group(0), m.group(1)) for m in self.filename_regex.finditer(html)}
        if not matches:
            return None
        return max(matches, key=lambda match: match[1])

    async def get_recent_image(self, fetch, image_loader):
        try:
            response = await fetch.fetch(self.directory_url)
            try:
                if not response.ok:
                    logger.warning(f"Directory listing {self.directory_url} returned HTTP {response.status}")
                    return None
                html = await response.text()
            finally:
                response.close()
            latest = self.latest_filename(html)
            if latest is None:
                logger.warning(f"No matching images in {self.directory_url}")
                return None
            filename, stamp = latest
            url = self.directory_url + filename
            timestamp = parse_day_of_year_stamp(stamp)
            if timestamp is None:
                logger.warning(f"Undecodable stamp {stamp} in {filename}; using current time")
                timestamp = self.clock()
            image = await image_loader.load(url)
        except Exception as e:
            logger.warning(f"Directory discovery at {self.directory_url} failed: {e}")
            return None
        logger.info(f"Discovered image {url} (stamp {stamp})")
        return ResolvedImage(url=url, image=image, timestamp=timestamp)

    def __repr__(self):
        return f"DirectoryListingProvider({self.directory_url!r})"


class ImageFreshnessResolver:
    """
    Resolve the latest image per satellite through its configured provider.

    Args:
        providers: Satellite id -> image provider
        fetch: Fetch strategy handed to providers
        image_loader: Image loader handed to providers
    """

    def __init__(self, providers: Mapping[str, ImageProvider],
                 fetch: FetchStrategy, image_loader: ImageLoader):
        self.providers = dict(providers)
        self.fetch = fetch
        self.image_loader = image_loader

    async def resolve_latest_image(self, satellite_id: str) -> Optional[ResolvedImage]:
        provider = self.providers.get(satellite_id)
        if provider is None:
            logger.warning(f"No image provider configured for {satellite_id}")
            return None
        try:
            return await provider.get_recent_image(self.fetch, self.image_loader)
        except Exception as e:
            logger.warning(f"Image resolution for {satellite_id} failed: {e}")
            return None
