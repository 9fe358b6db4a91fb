"""
Frame Service Configuration and Constants

This module contains physical constants, data source locations, stub element
sets and the environment-driven service configuration.

Stub Element Sets:
    Deterministic GOES-18/GOES-19 element sets used when live element-set
    fetching is disabled (tests, offline demos).

    Current stub epoch: 2025-08-13 (day 225)
    GEO element sets drift slowly; refresh quarterly if used for anything
    beyond deterministic runs.

    Sources for updated element sets:
    - CelesTrak.org GOES group (public access)
    - Space-Track.org (requires free registration)
"""

import os
from typing import Dict

# Mean Earth radius used for full-disk geometry (km)
EARTH_RADIUS_KM: float = 6371.0
KM_TO_M: float = 1000.0

# Hand fine-tuned full-disk field of view of the ABI imager (degrees)
FULL_DISK_FOV_DEG: float = 17.33

GOES_CDN_BASE: str = "https://cdn.star.nesdis.noaa.gov"
CELESTRAK_BASE: str = "https://celestrak.org"
CELESTRAK_GOES_TLE_URL: str = f"{CELESTRAK_BASE}/NORAD/elements/gp.php?GROUP=goes&FORMAT=tle"

# Element-set text is self-limited to one network request per window
TLE_CACHE_TTL_SECONDS: float = 6 * 60 * 60

DEFAULT_HTTP_TIMEOUT: float = 30.0

# Stub element sets (epoch 2025-08-13)
STUB_ELEMENT_SETS: Dict[str, Dict[str, str]] = {
    "G18": {
        "name": "GOES 18",
        "line1": "1 51850U 22021A   25225.49697635  .00000098  00000+0  00000+0 0  9996",
        "line2": "2 51850   0.0070 282.4274 0000607 300.8675 140.7832  1.00271626  3507",
    },
    "G19": {
        "name": "GOES 19",
        "line1": "1 60133U 24119A   25225.52405752 -.00000247  00000+0  00000+0 0  9998",
        "line2": "2 60133   0.0150  90.0040 0000708 157.4073 188.2598  1.00269356  3877",
    },
}


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class FrameServiceConfig:
    """Service configuration read from the environment."""

    def __init__(self):
        self.REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
        self.CELESTRAK_BASE = os.getenv("CELESTRAK_API_BASE", CELESTRAK_BASE)
        self.TLE_URL = f"{self.CELESTRAK_BASE}/NORAD/elements/gp.php?GROUP=goes&FORMAT=tle"
        self.TLE_CACHE_TTL = float(os.getenv("TLE_CACHE_TTL", str(TLE_CACHE_TTL_SECONDS)))
        self.TLE_CACHE_FILE = os.getenv("TLE_CACHE_FILE", "")
        self.USE_LIVE_TLE = _env_flag("USE_LIVE_TLE", "false")
        self.IMAGE_STRATEGY = os.getenv("IMAGE_STRATEGY", "directory").lower()
        self.HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT)))
        self.FOV_OFFSET_DEG = float(os.getenv("FOV_OFFSET_DEG", "0.0"))
        self.RENDER_SIZE = int(os.getenv("RENDER_SIZE", "512"))
        self.PORT = int(os.getenv("PORT", "5000"))
