"""
Geostationary Frame Resolution Demonstration

This script resolves the current GOES-East/GOES-West full-disk frames and
reports, for each satellite:
- The freshest image URL and its capture time
- The satellite's Earth-fixed position at that instant
- Configured and geometric full-disk field of view
Optionally it composites the frames onto a sphere and writes a PNG.

Usage:
    python demo.py [--live-tle] [--strategy {directory,candidates}]
                   [--render OUTPUT.png] [--size N] [--verbose]

Arguments:
    --live-tle: Fetch element sets from CelesTrak instead of the stub sets
    --strategy: Image discovery strategy
    --render: Write a composited sphere image
    --size: Render size in pixels
    --verbose: Enable debug logging
"""

import argparse
import asyncio
import logging

from frame_service.config import FrameServiceConfig
from frame_service.frames import FrameResolver
from frame_service.logging_config import configure_logging, get_logger
from frame_service.propagator import ecef_to_geodetic
from frame_service.render import render_frames

logger = get_logger(__name__)


def report_frame(frame) -> None:
    """Log one resolved frame."""
    lat, lon, alt_km = ecef_to_geodetic(frame.position_ecef_m)
    logger.info(f"{frame.satellite_id}: {frame.image_url}")
    logger.info(f"  Captured:    {frame.timestamp.isoformat()}")
    logger.info(f"  Image:       {frame.width}x{frame.height} (aspect {frame.aspect:.3f})")
    logger.info(
        f"  ECEF (m):    [{frame.position_ecef_m.x:.0f}, "
        f"{frame.position_ecef_m.y:.0f}, {frame.position_ecef_m.z:.0f}]"
    )
    logger.info(f"  Subpoint:    {lat:.3f} deg, {lon:.3f} deg, {alt_km:.1f} km")
    if frame.expected_fov_deg is not None:
        logger.info(f"  FOV:         {frame.fov_deg:.2f} deg (geometric {frame.expected_fov_deg:.2f} deg)")


def main() -> None:
    """Main demonstration entry point."""
    parser = argparse.ArgumentParser(
        description="Geostationary Frame Resolution Demonstration"
    )
    parser.add_argument("--live-tle", action="store_true", help="Fetch live element sets")
    parser.add_argument(
        "--strategy", choices=["directory", "candidates"], default=None,
        help="Image discovery strategy",
    )
    parser.add_argument("--render", metavar="OUTPUT", help="Write a composited PNG")
    parser.add_argument("--size", type=int, default=None, help="Render size in pixels")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    config = FrameServiceConfig()
    if args.live_tle:
        config.USE_LIVE_TLE = True
    if args.strategy:
        config.IMAGE_STRATEGY = args.strategy

    logger.info("Geostationary Frame Resolution")
    logger.info("=" * 60)

    resolver = FrameResolver.from_config(config)
    frames = asyncio.run(resolver.resolve_frames())

    if not frames:
        logger.warning("No frames could be resolved")
    for frame in frames:
        report_frame(frame)

    if args.render and frames:
        render_frames(frames, size=args.size or config.RENDER_SIZE, output_path=args.render)

    logger.info("=" * 60)
    logger.info(f"Resolved {len(frames)} frame(s)")


if __name__ == "__main__":
    main()
