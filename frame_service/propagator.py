"""
Orbit Propagator

Propagates a two-line element set to a target instant with SGP4 and rotates
the inertial (TEME) position into the Earth-fixed frame using Greenwich Mean
Sidereal Time. Results are returned in meters.

Propagation is cheap and deterministic in (element set, instant), so nothing
is cached.
"""

import math
import logging
from datetime import datetime, timezone
from typing import Tuple

import numpy as np
from sgp4.api import Satrec, jday
from sgp4.propagation import gstime

from frame_service.config import EARTH_RADIUS_KM, KM_TO_M
from frame_service.exceptions import PropagationError
from frame_service.models import ElementSet, Vec3

logger = logging.getLogger(__name__)


# SGP4 error code meanings
SGP4_ERROR_CODES = {
    0: "No error",
    1: "Mean eccentricity < 0.0 or > 1.0",
    2: "Mean motion < 0.0",
    3: "Perturbed eccentricity < 0.0 or > 1.0",
    4: "Semi-latus rectum < 0.0",
    5: "Satellite has decayed",
    6: "Satellite has decayed (low altitude)",
}


def julian_date(at: datetime) -> Tuple[float, float]:
    """Split an instant into (Julian day, day fraction); naive values are UTC."""
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    at = at.astimezone(timezone.utc)
    return jday(at.year, at.month, at.day, at.hour, at.minute,
                at.second + at.microsecond / 1e6)


def eci_to_ecef(position_km, gmst: float) -> np.ndarray:
    """
    Rotate an inertial position about the polar axis into the Earth-fixed frame.

    Args:
        position_km: Inertial position [x, y, z]
        gmst: Greenwich Mean Sidereal Time (radians)

    Returns:
        Earth-fixed position in the same units
    """
    x, y, z = position_km
    cos_g = math.cos(gmst)
    sin_g = math.sin(gmst)
    return np.array([
        x * cos_g + y * sin_g,
        -x * sin_g + y * cos_g,
        z,
    ])


def propagate(element_set: ElementSet, at: datetime) -> Vec3:
    """
    Propagate an element set to ``at`` and return its ECEF position.

    Args:
        element_set: Two-line element set
        at: Target instant

    Returns:
        Earth-fixed position in meters

    Raises:
        PropagationError: SGP4 produced no usable position
    """
    try:
        satellite = Satrec.twoline2rv(element_set.line1, element_set.line2)
    except (ValueError, IndexError) as e:
        raise PropagationError(element_set, f"malformed element set: {e}") from e

    jd, fr = julian_date(at)
    error, position, _velocity = satellite.sgp4(jd, fr)

    if error:
        reason = SGP4_ERROR_CODES.get(error, f"Unknown error code {error}")
        logger.error(f"SGP4 error {error} for {element_set.name or element_set.line1}: {reason}")
        raise PropagationError(element_set, f"SGP4 error {error}: {reason}")
    if position is None or len(position) != 3 or not all(math.isfinite(c) for c in position):
        raise PropagationError(element_set, "position data missing from SGP4 result")

    gmst = gstime(jd + fr)
    ecef_km = eci_to_ecef(position, gmst)
    ecef_m = ecef_km * KM_TO_M
    return Vec3(x=float(ecef_m[0]), y=float(ecef_m[1]), z=float(ecef_m[2]))


def expected_full_disk_fov_deg(position_m: Vec3, earth_radius_km: float = EARTH_RADIUS_KM) -> float:
    """
    Angular diameter of the Earth seen from ``position_m``.

    Diagnostic only; frames use the hand-tuned field of view.
    """
    distance_km = position_m.norm() / KM_TO_M
    if distance_km <= earth_radius_km:
        raise ValueError(f"Position {distance_km:.1f} km is inside the Earth")
    return math.degrees(2.0 * math.asin(earth_radius_km / distance_km))


def ecef_to_geodetic(position_m: Vec3) -> Tuple[float, float, float]:
    """Spherical latitude/longitude (degrees) and altitude (km) of an ECEF point."""
    x, y, z = position_m.x, position_m.y, position_m.z
    radius = math.sqrt(x * x + y * y + z * z)
    lat = math.degrees(math.asin(z / radius)) if radius > 0 else 0.0
    lon = math.degrees(math.atan2(y, x))
    return lat, lon, radius / KM_TO_M - EARTH_RADIUS_KM
