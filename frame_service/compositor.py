"""
Projective Compositor

Decides, per point on the target sphere, which projected satellite images to
sample and how to blend them. The algorithm is backend-independent and
vectorized with numpy over arrays of surface points; a rendering adapter maps
it onto its own per-sample execution model.

Per source:
1. Facing test: N = normalize(P), T = normalize(C - P); N.T must exceed a small
   threshold (back faces and self-occluded points are rejected)
2. Clip transform projection * view * [P, 1]; points with w <= 0 lie behind
   the projector
3. Perspective divide; uv = ndc.xy * 0.5 + 0.5 must lie in [0, 1]^2 and the
   depth inside the clip range
4. Border fade: smoothstep falloff within a margin of each edge, multiplied
   together and by the facing term
5. Bilinear texture sample; weight = fade * facing * texel alpha

Across sources the weighted colours are averaged (never summed) and mixed
toward a Lambert-shaded base colour by the clamped total weight, so partial
coverage fades to the base rather than to black.
"""

import logging
from typing import Iterable, NamedTuple, Tuple

import numpy as np

from frame_service.projector import ProjectorSource

logger = logging.getLogger(__name__)

MAX_PROJECTORS = 4
FACING_THRESHOLD = 0.01
EDGE_MARGIN = 0.1
BASE_COLOR = np.array([0.1, 0.3, 0.7])
LIGHT_DIR = np.array([0.5, 1.0, 0.8]) / np.linalg.norm([0.5, 1.0, 0.8])


class CompositeSample(NamedTuple):
    color: np.ndarray
    weight: float


def smoothstep(edge0: float, edge1: float, x):
    t = np.clip((np.asarray(x, dtype=float) - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def border_fade(u, v, margin: float = EDGE_MARGIN):
    """Product of edge falloffs; 1 in the interior, 0 on the border."""
    return (
        smoothstep(0.0, margin, u)
        * smoothstep(0.0, margin, v)
        * smoothstep(0.0, margin, 1.0 - u)
        * smoothstep(0.0, margin, 1.0 - v)
    )


def _as_points(points) -> np.ndarray:
    return np.asarray(points, dtype=float).reshape(-1, 3)


def _normalize(vectors: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
    return vectors / np.where(norms > 0.0, norms, 1.0)


def sample_texture(texture: np.ndarray, u, v) -> np.ndarray:
    """
    Bilinearly sample ``texture`` at texture coordinates.

    Args:
        texture: (H, W, C) array
        u: Horizontal coordinates in [0, 1] (0 = left column)
        v: Vertical coordinates in [0, 1] (0 = bottom row)

    Returns:
        (N, C) array of texels
    """
    height, width = texture.shape[:2]
    x = np.clip(np.asarray(u, dtype=float), 0.0, 1.0) * (width - 1)
    y = (1.0 - np.clip(np.asarray(v, dtype=float), 0.0, 1.0)) * (height - 1)

    x0 = np.floor(x).astype(int)
    y0 = np.floor(y).astype(int)
    x1 = np.minimum(x0 + 1, width - 1)
    y1 = np.minimum(y0 + 1, height - 1)
    fx = (x - x0)[:, None]
    fy = (y - y0)[:, None]

    top = texture[y0, x0] * (1.0 - fx) + texture[y0, x1] * fx
    bottom = texture[y1, x0] * (1.0 - fx) + texture[y1, x1] * fx
    return top * (1.0 - fy) + bottom * fy


def project_source(points, source: ProjectorSource,
                   facing_threshold: float = FACING_THRESHOLD,
                   edge_margin: float = EDGE_MARGIN,
                   depth_test: bool = True) -> Tuple[np.ndarray, np.ndarray]:
    """
    Colour and weight contributed by one source at each point.

    Returns:
        (colors (N, 3), weights (N,)); weight is 0 where the source does not
        contribute
    """
    points = _as_points(points)
    normals = _normalize(points)
    to_camera = _normalize(source.camera_position - points)
    facing = np.sum(normals * to_camera, axis=1)

    homogeneous = np.hstack([points, np.ones((len(points), 1))])
    clip = homogeneous @ (source.projection_matrix @ source.view_matrix).T
    w = clip[:, 3]
    in_front = w > 0.0
    ndc = clip[:, :3] / np.where(in_front, w, 1.0)[:, None]
    u = ndc[:, 0] * 0.5 + 0.5
    v = ndc[:, 1] * 0.5 + 0.5

    valid = (facing > facing_threshold) & in_front
    valid &= (u >= 0.0) & (u <= 1.0) & (v >= 0.0) & (v <= 1.0)
    if depth_test:
        valid &= np.abs(ndc[:, 2]) <= 1.0

    texels = sample_texture(source.texture, u, v)
    alpha = texels[:, 3] if texels.shape[1] == 4 else 1.0
    weights = np.where(valid, border_fade(u, v, edge_margin) * facing * alpha, 0.0)
    return texels[:, :3], weights


def base_shade(points) -> np.ndarray:
    """Lambert-shaded base colour used where no source contributes."""
    normals = _normalize(_as_points(points))
    diffuse = 0.5 + 0.5 * np.maximum(normals @ LIGHT_DIR, 0.0)
    return BASE_COLOR[None, :] * diffuse[:, None]


def composite_points(points, sources: Iterable[ProjectorSource],
                     facing_threshold: float = FACING_THRESHOLD,
                     edge_margin: float = EDGE_MARGIN,
                     depth_test: bool = True) -> Tuple[np.ndarray, np.ndarray]:
    """
    Blend all active sources at each surface point.

    Args:
        points: (N, 3) or (3,) world-space points on a sphere centred at the origin
        sources: Active projector sources; only the first MAX_PROJECTORS are used

    Returns:
        (colors (N, 3), total weights (N,))
    """
    points = _as_points(points)
    sources = list(sources)
    if len(sources) > MAX_PROJECTORS:
        logger.warning(f"{len(sources)} projector sources given; using the first {MAX_PROJECTORS}")
        sources = sources[:MAX_PROJECTORS]

    accumulated = np.zeros((len(points), 3))
    total = np.zeros(len(points))
    for source in sources:
        colors, weights = project_source(points, source, facing_threshold, edge_margin, depth_test)
        accumulated += colors * weights[:, None]
        total += weights

    base = base_shade(points)
    covered = total > 0.0
    average = accumulated / np.where(covered, total, 1.0)[:, None]
    t = np.clip(total, 0.0, 1.0)[:, None]
    blended = base * (1.0 - t) + average * t
    return np.where(covered[:, None], blended, base), total


def composite(point, sources: Iterable[ProjectorSource], **kwargs) -> CompositeSample:
    """Composite a single surface point."""
    colors, weights = composite_points(point, sources, **kwargs)
    return CompositeSample(colors[0], float(weights[0]))
