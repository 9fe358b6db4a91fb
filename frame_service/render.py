"""
Headless Rendering

CPU rendering adapter for the compositor: rasterizes the Earth sphere as seen
by an orthographic viewer, composites every visible surface point through the
active projector sources in one vectorized pass, and writes the result with
matplotlib.
"""

import logging
from typing import Iterable, Optional, Sequence

import numpy as np
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from frame_service.compositor import composite_points  # noqa: E402
from frame_service.models import SatelliteFrame  # noqa: E402
from frame_service.projector import (  # noqa: E402
    ProjectorSource,
    geodetic_to_ecef,
    look_at_matrix,
    projector_from_frame,
)

logger = logging.getLogger(__name__)

BACKGROUND = np.array([0.067, 0.067, 0.067])


def sphere_points(size: int, view_lat_deg: float = 0.0, view_lon_deg: float = -100.0,
                  sphere_radius: float = 1.0, margin: float = 1.05):
    """
    Visible sphere points for an orthographic ``size`` x ``size`` view.

    Returns:
        (points (M, 3), mask (size, size)) where mask marks pixels that hit
        the sphere, in row-major order from the top row
    """
    eye = geodetic_to_ecef(view_lat_deg, view_lon_deg, 10.0 * sphere_radius)
    basis = look_at_matrix(eye, np.zeros(3))
    right, up, toward_viewer = basis[:3, 0], basis[:3, 1], basis[:3, 2]

    extent = margin * sphere_radius
    coords = np.linspace(-extent, extent, size)
    sx, sy = np.meshgrid(coords, coords[::-1])
    rho2 = sx * sx + sy * sy
    mask = rho2 <= sphere_radius * sphere_radius
    depth = np.sqrt(np.maximum(sphere_radius * sphere_radius - rho2[mask], 0.0))

    points = (
        sx[mask][:, None] * right
        + sy[mask][:, None] * up
        + depth[:, None] * toward_viewer
    )
    return points, mask


def render_sources(sources: Iterable[ProjectorSource], size: int = 512,
                   view_lat_deg: float = 0.0, view_lon_deg: float = -100.0,
                   sphere_radius: float = 1.0) -> np.ndarray:
    """Render the composited sphere to an (size, size, 3) float image."""
    points, mask = sphere_points(size, view_lat_deg, view_lon_deg, sphere_radius)
    colors, weights = composite_points(points, list(sources))
    image = np.empty((size, size, 3))
    image[:] = BACKGROUND
    image[mask] = colors
    logger.debug(f"Rendered {mask.sum()} sphere pixels; {int((weights > 0).sum())} covered")
    return np.clip(image, 0.0, 1.0)


def render_frames(frames: Sequence[SatelliteFrame], size: int = 512,
                  view_lon_deg: Optional[float] = None,
                  output_path=None) -> np.ndarray:
    """
    Render resolved frames onto the sphere, optionally saving a PNG.

    ``output_path`` may be a path or a binary file object. The default view
    longitude is the mean sub-satellite longitude.
    """
    sources = [projector_from_frame(frame) for frame in frames]
    if view_lon_deg is None:
        if frames:
            longitudes = [np.degrees(np.arctan2(f.position_ecef_m.y, f.position_ecef_m.x)) for f in frames]
            view_lon_deg = float(np.degrees(np.angle(np.mean(np.exp(1j * np.radians(longitudes))))))
        else:
            view_lon_deg = -100.0

    image = render_sources(sources, size=size, view_lon_deg=view_lon_deg)
    if output_path is not None:
        plt.imsave(output_path, image, format="png")
        logger.info(f"Composite image written to {output_path}")
    return image
