"""
Satellite Catalog

Per-satellite configuration: identity, element-set name aliases, image
discovery strategy, field of view and deterministic stub element set.
"""

from typing import Dict, Iterable, List, Optional

from frame_service.config import FULL_DISK_FOV_DEG, GOES_CDN_BASE, STUB_ELEMENT_SETS
from frame_service.elements import compile_aliases
from frame_service.image_providers import (
    CandidateListProvider,
    DirectoryListingProvider,
    ImageProvider,
)
from frame_service.models import ElementSet

IMAGE_STRATEGIES = ("directory", "candidates")


class SatelliteConfig:
    """Static description of one tracked satellite."""

    def __init__(self, satellite_id: str, name: str, alias_patterns: Iterable[str],
                 candidate_urls: Iterable[str], directory_provider: Optional[DirectoryListingProvider],
                 fov_deg: float = FULL_DISK_FOV_DEG,
                 stub_element_set: Optional[ElementSet] = None):
        self.satellite_id = satellite_id
        self.name = name
        self.aliases = compile_aliases(alias_patterns)
        self.candidate_urls: List[str] = list(candidate_urls)
        self.directory_provider = directory_provider
        self.fov_deg = fov_deg
        self.stub_element_set = stub_element_set

    def image_provider(self, strategy: str = "directory") -> ImageProvider:
        if strategy not in IMAGE_STRATEGIES:
            raise ValueError(f"Unknown image strategy {strategy!r}; expected one of {IMAGE_STRATEGIES}")
        if strategy == "directory" and self.directory_provider is not None:
            return self.directory_provider
        return CandidateListProvider(self.candidate_urls)

    def __repr__(self):
        return f"SatelliteConfig({self.satellite_id!r}, {self.name!r})"


def goes_satellite(satellite_id: str, number: int, letter: str,
                   cdn_base: str = GOES_CDN_BASE) -> SatelliteConfig:
    """GOES-R series satellite imaged by ABI in GEOCOLOR."""
    name = f"GOES{number}"
    base = f"{cdn_base}/{name}/ABI/FD/GEOCOLOR"
    stub = STUB_ELEMENT_SETS.get(satellite_id)
    return SatelliteConfig(
        satellite_id=satellite_id,
        name=name,
        alias_patterns=[rf"\bGOES[-\s]?{number}\b", rf"\bGOES {letter}\b"],
        candidate_urls=[
            f"{base}/1808x1808.jpg",
            f"{base}/1080x1080.jpg",
            f"{base}/latest.jpg",
        ],
        directory_provider=DirectoryListingProvider.for_goes(cdn_base, name),
        stub_element_set=ElementSet(**stub) if stub else None,
    )


def default_catalog(cdn_base: str = GOES_CDN_BASE) -> Dict[str, SatelliteConfig]:
    """GOES-19 (East) and GOES-18 (West), in resolution order."""
    return {
        "G19": goes_satellite("G19", 19, "U", cdn_base),
        "G18": goes_satellite("G18", 18, "T", cdn_base),
    }
