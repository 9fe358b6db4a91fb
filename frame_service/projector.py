"""
Projector Setup

Turns a SatelliteFrame into a ProjectorSource for the compositor: a camera
placed at the satellite's (scaled) Earth-fixed position looking at the Earth
centre, a perspective projection sized by the frame's field of view and
aspect ratio, and the image as a floating-point texture.

Matrices are row-major 4x4 numpy arrays acting on column vectors. Cameras
follow the usual convention of looking down their local -Z axis.
"""

import math
from typing import Optional

import numpy as np

from frame_service.config import EARTH_RADIUS_KM, KM_TO_M
from frame_service.models import SatelliteFrame


def geodetic_to_ecef(lat_deg: float, lon_deg: float, radius: float) -> np.ndarray:
    """Point on a sphere of ``radius`` at the given latitude/longitude."""
    lat = math.radians(lat_deg)
    lon = math.radians(lon_deg)
    return np.array([
        radius * math.cos(lat) * math.cos(lon),
        radius * math.cos(lat) * math.sin(lon),
        radius * math.sin(lat),
    ])


def look_at_matrix(eye, target, up=(0.0, 0.0, 1.0)) -> np.ndarray:
    """
    Camera-to-world matrix for a camera at ``eye`` looking at ``target``.

    Falls back to +Y as the up vector when ``up`` is parallel to the view
    direction.
    """
    eye = np.asarray(eye, dtype=float)
    target = np.asarray(target, dtype=float)
    z_axis = eye - target
    z_axis /= np.linalg.norm(z_axis)
    x_axis = np.cross(np.asarray(up, dtype=float), z_axis)
    if np.linalg.norm(x_axis) < 1e-9:
        x_axis = np.cross(np.array([0.0, 1.0, 0.0]), z_axis)
    x_axis /= np.linalg.norm(x_axis)
    y_axis = np.cross(z_axis, x_axis)

    matrix = np.eye(4)
    matrix[:3, 0] = x_axis
    matrix[:3, 1] = y_axis
    matrix[:3, 2] = z_axis
    matrix[:3, 3] = eye
    return matrix


def perspective_matrix(fov_deg: float, aspect: float, near: float, far: float) -> np.ndarray:
    """OpenGL-style perspective projection with a vertical field of view."""
    f = 1.0 / math.tan(math.radians(fov_deg) / 2.0)
    nf = 1.0 / (near - far)
    return np.array([
        [f / aspect, 0.0, 0.0, 0.0],
        [0.0, f, 0.0, 0.0],
        [0.0, 0.0, (far + near) * nf, 2.0 * far * near * nf],
        [0.0, 0.0, -1.0, 0.0],
    ])


def texture_from_image(image) -> np.ndarray:
    """Image as an (H, W, C) float array in [0, 1]; C is 3 or 4."""
    if hasattr(image, "getbands"):
        image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
    texture = np.asarray(image)
    if texture.ndim == 2:
        texture = np.repeat(texture[:, :, None], 3, axis=2)
    if np.issubdtype(texture.dtype, np.integer):
        return texture.astype(np.float32) / 255.0
    return texture.astype(np.float32)


class ProjectorSource:
    """
    One projected image.

    Args:
        texture: (H, W, C) float texture in [0, 1]
        camera_matrix: Camera-to-world transform
        camera_position: Camera position in world space
        projection_matrix: Camera-to-clip projection
        label: Identifier for logging
    """

    def __init__(self, texture: np.ndarray, camera_matrix: np.ndarray,
                 camera_position, projection_matrix: np.ndarray, label: str = ""):
        self.texture = np.asarray(texture, dtype=np.float32)
        self.camera_matrix = np.asarray(camera_matrix, dtype=float)
        self.camera_position = np.asarray(camera_position, dtype=float)
        self.projection_matrix = np.asarray(projection_matrix, dtype=float)
        self.label = label
        self.view_matrix = np.linalg.inv(self.camera_matrix)

    def __repr__(self):
        h, w = self.texture.shape[:2]
        return f"ProjectorSource({self.label!r}, {w}x{h})"


def projector_from_frame(frame: SatelliteFrame, sphere_radius: float = 1.0,
                         near: Optional[float] = None, far: Optional[float] = None,
                         texture: Optional[np.ndarray] = None) -> ProjectorSource:
    """
    Build a projector for ``frame`` in a scene where the Earth has ``sphere_radius``.

    Args:
        frame: Resolved satellite frame
        sphere_radius: Scene radius of the Earth
        near: Near clip distance (default: 1% of the camera distance)
        far: Far clip distance (default: twice the camera distance)
        texture: Precomputed texture (default: decoded from ``frame.image``)
    """
    scale = sphere_radius / (EARTH_RADIUS_KM * KM_TO_M)
    eye = frame.position_ecef_m.as_array() * scale
    distance = float(np.linalg.norm(eye))
    near = near if near is not None else 0.01 * distance
    far = far if far is not None else 2.0 * distance

    return ProjectorSource(
        texture=texture if texture is not None else texture_from_image(frame.image),
        camera_matrix=look_at_matrix(eye, np.zeros(3)),
        camera_position=eye,
        projection_matrix=perspective_matrix(frame.fov_deg, frame.aspect, near, far),
        label=frame.satellite_id,
    )
