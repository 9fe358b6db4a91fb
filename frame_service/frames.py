"""
Frame Assembly and Resolution

Joins a resolved image with the satellite's propagated position into an
immutable SatelliteFrame, and resolves frames for every tracked satellite.

The satellite is propagated to the image's capture instant, not to "now",
so the projection geometry matches the moment the pixels were taken.
Satellites are resolved independently: a satellite missing an image or an
element set, or failing propagation, is left out of the result without
affecting the others.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from frame_service.catalog import SatelliteConfig, default_catalog
from frame_service.config import (
    CELESTRAK_GOES_TLE_URL,
    FULL_DISK_FOV_DEG,
    TLE_CACHE_TTL_SECONDS,
    FrameServiceConfig,
)
from frame_service.elements import ElementSetMode, parse_element_sets
from frame_service.exceptions import FrameServiceError
from frame_service.image_providers import ImageFreshnessResolver
from frame_service.models import ElementSet, ResolvedImage, SatelliteFrame
from frame_service.propagator import expected_full_disk_fov_deg, propagate
from frame_service.store import KeyValueStore, MemoryStore, open_store
from frame_service.timestamps import is_valid_timestamp
from frame_service.tle_cache import TextCache
from frame_service.transport import (
    FetchStrategy,
    ImageLoader,
    PillowImageLoader,
    RequestsFetchStrategy,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def image_dimensions(image) -> tuple:
    """Natural pixel size of an image, falling back to its declared size."""
    width = getattr(image, "natural_width", None) or getattr(image, "width", None)
    height = getattr(image, "natural_height", None) or getattr(image, "height", None)
    if not width or not height:
        raise ValueError(f"Image has no usable dimensions: {width}x{height}")
    return int(width), int(height)


def assemble_frame(satellite_id: str, resolved_image: ResolvedImage, element_set: ElementSet,
                   fov_deg: float = FULL_DISK_FOV_DEG, fov_offset_deg: float = 0.0,
                   clock: Callable[[], datetime] = _utcnow) -> SatelliteFrame:
    """
    Build a frame from one image and one element set.

    Args:
        satellite_id: Satellite identifier
        resolved_image: Image, source URL and capture time
        element_set: Element set used to place the satellite
        fov_deg: Full-disk field of view for the satellite class
        fov_offset_deg: Caller fine adjustment added to ``fov_deg``
        clock: Current-instant source for missing timestamps

    Returns:
        Immutable SatelliteFrame

    Raises:
        PropagationError: SGP4 produced no position at the capture time
    """
    timestamp = resolved_image.timestamp
    if not is_valid_timestamp(timestamp):
        logger.warning(f"[{satellite_id}] Image has no valid timestamp; using current time")
        timestamp = clock()
    elif timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    logger.debug(
        f"Building frame for {satellite_id} at {timestamp.isoformat()} "
        f"(element epoch {element_set.epoch_field})"
    )
    position = propagate(element_set, timestamp)

    try:
        expected_fov = expected_full_disk_fov_deg(position)
    except ValueError:
        expected_fov = None
    if expected_fov is not None:
        logger.debug(
            f"[{satellite_id}] Expected full-disk FOV {expected_fov:.4f} deg | "
            f"configured {fov_deg} deg | offset {fov_offset_deg} deg"
        )

    width, height = image_dimensions(resolved_image.image)
    return SatelliteFrame(
        satellite_id=satellite_id,
        image_url=resolved_image.url,
        image=resolved_image.image,
        width=width,
        height=height,
        aspect=width / height,
        timestamp=timestamp,
        position_ecef_m=position,
        fov_deg=fov_deg + fov_offset_deg,
        expected_fov_deg=expected_fov,
    )


class FrameResolver:
    """
    Resolve current frames for the tracked satellites.

    Args:
        catalog: Satellite id -> configuration, in output order
        fetch: Fetch strategy for element sets and images
        image_loader: Image loader
        store: Key-value store backing the element-set cache
        element_set_mode: Stub (deterministic) or live element sets
        tle_url: Element-set source URL for live mode
        tle_ttl: Seconds before cached element text is refetched
        image_strategy: ``"directory"`` or ``"candidates"``
        fov_offset_deg: Field-of-view fine adjustment applied to every frame
    """

    def __init__(self, catalog: Mapping[str, SatelliteConfig],
                 fetch: FetchStrategy, image_loader: ImageLoader,
                 store: Optional[KeyValueStore] = None,
                 element_set_mode: ElementSetMode = ElementSetMode.STUB,
                 tle_url: str = CELESTRAK_GOES_TLE_URL,
                 tle_ttl: float = TLE_CACHE_TTL_SECONDS,
                 image_strategy: str = "directory",
                 fov_offset_deg: float = 0.0,
                 clock: Callable[[], datetime] = _utcnow):
        self.catalog = dict(catalog)
        self.fetch = fetch
        self.image_loader = image_loader
        self.element_set_mode = element_set_mode
        self.tle_url = tle_url
        self.tle_ttl = tle_ttl
        self.fov_offset_deg = fov_offset_deg
        self.clock = clock
        self.text_cache = TextCache(store if store is not None else MemoryStore(), clock=clock)
        self.images = ImageFreshnessResolver(
            {sat_id: sat.image_provider(image_strategy) for sat_id, sat in self.catalog.items()},
            fetch,
            image_loader,
        )

    @classmethod
    def from_config(cls, config: Optional[FrameServiceConfig] = None,
                    catalog: Optional[Mapping[str, SatelliteConfig]] = None) -> "FrameResolver":
        """Resolver wired with the default requests/Pillow/store collaborators."""
        config = config or FrameServiceConfig()
        return cls(
            catalog or default_catalog(),
            RequestsFetchStrategy(timeout=config.HTTP_TIMEOUT),
            PillowImageLoader(timeout=config.HTTP_TIMEOUT),
            store=open_store(config.REDIS_URL, config.TLE_CACHE_FILE),
            element_set_mode=ElementSetMode.from_flag(config.USE_LIVE_TLE),
            tle_url=config.TLE_URL,
            tle_ttl=config.TLE_CACHE_TTL,
            image_strategy=config.IMAGE_STRATEGY,
            fov_offset_deg=config.FOV_OFFSET_DEG,
        )

    async def fetch_element_sets(self) -> Dict[str, ElementSet]:
        """
        Element sets for every catalog satellite that has one.

        Raises:
            NetworkError: Live mode, nothing cached and the fetch failed
        """
        if self.element_set_mode is ElementSetMode.STUB:
            return {
                sat_id: sat.stub_element_set
                for sat_id, sat in self.catalog.items()
                if sat.stub_element_set is not None
            }

        # Conditional requests cannot always be validated upstream, so
        # self-limit to one fetch per TTL window.
        text = await self.text_cache.fetch_text_cached(
            self.tle_url, self.fetch, ttl=self.tle_ttl, revalidate=False
        )
        aliases = {sat_id: sat.aliases for sat_id, sat in self.catalog.items()}
        element_sets = parse_element_sets(text, aliases)
        logger.info(f"Fetched live element sets for {sorted(element_sets)}")
        return element_sets

    async def resolve_latest_image(self, satellite_id: str) -> Optional[ResolvedImage]:
        return await self.images.resolve_latest_image(satellite_id)

    async def _element_sets_or_empty(self) -> Dict[str, ElementSet]:
        try:
            return await self.fetch_element_sets()
        except FrameServiceError as e:
            logger.error(f"Element sets unavailable: {e}")
            return {}

    async def resolve_frames(self, satellite_ids: Optional[Iterable[str]] = None) -> List[SatelliteFrame]:
        """
        Resolve a frame for each requested satellite (default: whole catalog).

        Image discovery for all satellites and the element-set fetch run
        concurrently. Returns the frames that succeeded, in request order
        (catalog order by default).
        """
        requested = self.catalog if satellite_ids is None else satellite_ids
        ids = [s for s in requested if s in self.catalog]
        if not ids:
            return []
        results = await asyncio.gather(
            self._element_sets_or_empty(),
            *(self.resolve_latest_image(sat_id) for sat_id in ids),
        )
        element_sets, images = results[0], results[1:]

        frames = []
        for sat_id, resolved in zip(ids, images):
            if resolved is None:
                logger.warning(f"[{sat_id}] No image resolved; skipping")
                continue
            element_set = element_sets.get(sat_id)
            if element_set is None:
                logger.warning(f"[{sat_id}] No element set available; skipping")
                continue
            try:
                frame = assemble_frame(
                    sat_id, resolved, element_set,
                    fov_deg=self.catalog[sat_id].fov_deg,
                    fov_offset_deg=self.fov_offset_deg,
                    clock=self.clock,
                )
            except (FrameServiceError, ValueError) as e:
                logger.error(f"[{sat_id}] Frame assembly failed: {e}")
                continue
            frames.append(frame)

        logger.info(f"Resolved {len(frames)}/{len(ids)} frames")
        return frames
