"""
Tests for image discovery: candidate probing and directory listings.

Run with:
    python -m pytest tests/test_image_providers.py -v
"""

import unittest
from datetime import datetime, timezone

from frame_service.catalog import default_catalog
from frame_service.image_providers import (
    CandidateListProvider,
    DirectoryListingProvider,
    ImageFreshnessResolver,
)
from tests.fakes import FakeFetch, FakeImageLoader, FrozenClock, refuse, respond

BASE = "https://cdn.example.test/GOES19/ABI/FD/GEOCOLOR"
LISTING = f"""
<html><body><pre>
<a href="20252252320_GOES19-ABI-FD-GEOCOLOR-1808x1808.jpg">20252252320_GOES19-ABI-FD-GEOCOLOR-1808x1808.jpg</a>
<a href="20252252350_GOES19-ABI-FD-GEOCOLOR-1808x1808.jpg">20252252350_GOES19-ABI-FD-GEOCOLOR-1808x1808.jpg</a>
<a href="20252252340_GOES19-ABI-FD-GEOCOLOR-1808x1808.jpg">20252252340_GOES19-ABI-FD-GEOCOLOR-1808x1808.jpg</a>
<a href="20252252355_GOES19-ABI-FD-GEOCOLOR-678x678.jpg">20252252355_GOES19-ABI-FD-GEOCOLOR-678x678.jpg</a>
<a href="1808x1808.jpg">1808x1808.jpg</a>
</pre></body></html>
"""


class TestCandidateListProvider(unittest.IsolatedAsyncioTestCase):
    """Test suite for ordered candidate probing."""

    def setUp(self):
        self.clock = FrozenClock()
        self.candidates = [f"{BASE}/1808x1808.jpg", f"{BASE}/1080x1080.jpg", f"{BASE}/latest.jpg"]
        self.provider = CandidateListProvider(self.candidates, clock=self.clock)

    async def test_first_success_wins_with_redirect_timestamp(self):
        def handler(url, headers):
            if url.endswith("1808x1808.jpg"):
                return respond(404, url=url)
            return respond(200, url=f"{BASE}/archive/GOES19_20250812-2310.jpg")

        loader = FakeImageLoader()
        fetch = FakeFetch(handler)
        with self.assertLogs("frame_service.image_providers", level="WARNING"):
            resolved = await self.provider.get_recent_image(fetch, loader)

        self.assertEqual(fetch.urls(), self.candidates[:2])
        self.assertEqual(resolved.url, f"{BASE}/archive/GOES19_20250812-2310.jpg")
        self.assertEqual(resolved.timestamp, datetime(2025, 8, 12, 23, 10, tzinfo=timezone.utc))
        self.assertEqual(loader.loaded, [resolved.url])

    async def test_last_modified_fallback(self):
        fetch = FakeFetch(lambda url, headers: respond(
            200, headers={"Last-Modified": "Tue, 12 Aug 2025 23:40:00 GMT"}, url=url
        ))
        resolved = await self.provider.get_recent_image(fetch, FakeImageLoader())
        self.assertEqual(resolved.timestamp, datetime(2025, 8, 12, 23, 40, tzinfo=timezone.utc))

    async def test_clock_fallback(self):
        fetch = FakeFetch(lambda url, headers: respond(200, url=url))
        resolved = await self.provider.get_recent_image(fetch, FakeImageLoader())
        self.assertEqual(resolved.timestamp, self.clock.now)

    async def test_decode_failure_moves_to_next_candidate(self):
        fetch = FakeFetch(lambda url, headers: respond(200, url=url))
        loader = FakeImageLoader(fail_for=[self.candidates[0]])
        with self.assertLogs("frame_service.image_providers", level="WARNING"):
            resolved = await self.provider.get_recent_image(fetch, loader)
        self.assertEqual(resolved.url, self.candidates[1])

    async def test_all_candidates_fail(self):
        fetch = FakeFetch(refuse)
        with self.assertLogs("frame_service.image_providers", level="WARNING"):
            resolved = await self.provider.get_recent_image(fetch, FakeImageLoader())
        self.assertIsNone(resolved)
        self.assertEqual(fetch.urls(), self.candidates)


class TestDirectoryListingProvider(unittest.IsolatedAsyncioTestCase):
    """Test suite for directory-listing discovery."""

    def setUp(self):
        self.provider = DirectoryListingProvider.for_goes("https://cdn.example.test", "GOES19")

    def test_latest_filename(self):
        filename, stamp = self.provider.latest_filename(LISTING)
        self.assertEqual(stamp, "20252252350")
        self.assertEqual(filename, "20252252350_GOES19-ABI-FD-GEOCOLOR-1808x1808.jpg")

    def test_no_matches(self):
        self.assertIsNone(self.provider.latest_filename("<html>empty</html>"))

    async def test_resolves_newest_image(self):
        fetch = FakeFetch(lambda url, headers: respond(200, LISTING, url=url))
        loader = FakeImageLoader()
        resolved = await self.provider.get_recent_image(fetch, loader)

        self.assertEqual(fetch.urls(), [f"{BASE}/"])
        self.assertEqual(resolved.url, f"{BASE}/20252252350_GOES19-ABI-FD-GEOCOLOR-1808x1808.jpg")
        self.assertEqual(resolved.timestamp, datetime(2025, 8, 13, 23, 50, tzinfo=timezone.utc))
        self.assertEqual(loader.loaded, [resolved.url])

    async def test_undecodable_stamp_uses_clock(self):
        """A stamp longer than YYYYDDDHHMM still matches but falls back to the clock."""
        clock = FrozenClock()
        provider = DirectoryListingProvider.for_goes("https://cdn.example.test", "GOES19", clock=clock)
        listing = "202522523500_GOES19-ABI-FD-GEOCOLOR-1808x1808.jpg"
        fetch = FakeFetch(lambda url, headers: respond(200, listing, url=url))

        with self.assertLogs("frame_service.image_providers", level="WARNING"):
            resolved = await provider.get_recent_image(fetch, FakeImageLoader())

        self.assertEqual(resolved.url, f"{BASE}/{listing}")
        self.assertEqual(resolved.timestamp, clock.now)

    async def test_listing_failure_yields_none(self):
        for handler in [refuse, lambda url, headers: respond(500, url=url)]:
            with self.subTest(handler=handler):
                with self.assertLogs("frame_service.image_providers", level="WARNING"):
                    resolved = await self.provider.get_recent_image(FakeFetch(handler), FakeImageLoader())
                self.assertIsNone(resolved)


class TestImageFreshnessResolver(unittest.IsolatedAsyncioTestCase):

    async def test_strategy_selected_per_satellite(self):
        catalog = default_catalog("https://cdn.example.test")
        providers = {
            "G19": catalog["G19"].image_provider("directory"),
            "G18": catalog["G18"].image_provider("candidates"),
        }
        self.assertIsInstance(providers["G19"], DirectoryListingProvider)
        self.assertIsInstance(providers["G18"], CandidateListProvider)

        fetch = FakeFetch(lambda url, headers: respond(200, LISTING, url=url))
        resolver = ImageFreshnessResolver(providers, fetch, FakeImageLoader())
        resolved = await resolver.resolve_latest_image("G18")
        self.assertEqual(resolved.url, "https://cdn.example.test/GOES18/ABI/FD/GEOCOLOR/1808x1808.jpg")

    async def test_unknown_satellite(self):
        resolver = ImageFreshnessResolver({}, FakeFetch(refuse), FakeImageLoader())
        with self.assertLogs("frame_service.image_providers", level="WARNING"):
            self.assertIsNone(await resolver.resolve_latest_image("G99"))

    def test_unknown_strategy_rejected(self):
        with self.assertRaises(ValueError):
            default_catalog()["G19"].image_provider("carrier-pigeon")


if __name__ == "__main__":
    unittest.main()
