"""
Data Models

Pydantic models shared across the frame service: cached HTTP text records,
element sets, resolved images and assembled satellite frames.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


class CachedEntry(BaseModel):
    """Cached response body with HTTP validators, keyed by source URL."""

    url: str
    body: str
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    fetched_at: datetime
    ttl: float  # seconds

    def age_seconds(self, now: datetime) -> float:
        return (now - self.fetched_at).total_seconds()

    def is_fresh(self, now: datetime) -> bool:
        return self.age_seconds(now) < self.ttl


class ElementSet(BaseModel):
    """NORAD two-line element set for one satellite."""

    model_config = ConfigDict(frozen=True)

    line1: str
    line2: str
    name: str = ""

    @field_validator("line1", "line2", mode="before")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value

    @field_validator("line1")
    @classmethod
    def _check_line1(cls, value: str) -> str:
        if not value.startswith("1 "):
            raise ValueError("element line 1 must start with '1 '")
        return value

    @field_validator("line2")
    @classmethod
    def _check_line2(cls, value: str) -> str:
        if not value.startswith("2 "):
            raise ValueError("element line 2 must start with '2 '")
        return value

    @property
    def norad_id(self) -> int:
        return int(self.line1[2:7])

    @property
    def epoch_field(self) -> str:
        """Raw epoch field (YYDDD.DDDDDDDD) from line 1."""
        return self.line1[18:32].strip()

    @property
    def epoch(self) -> datetime:
        """Element-set epoch as a UTC datetime."""
        epoch_year = int(self.line1[18:20])
        epoch_days = float(self.line1[20:32])
        year = 1900 + epoch_year if epoch_year >= 57 else 2000 + epoch_year
        return datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=epoch_days - 1.0)


class Vec3(BaseModel):
    """Cartesian vector (meters unless stated otherwise)."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def norm(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)


class ResolvedImage(BaseModel):
    """Outcome of probing one satellite's image sources."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    url: str
    image: Any
    timestamp: Optional[datetime] = None


class SatelliteFrame(BaseModel):
    """
    Immutable frame: image, capture time and satellite position.

    ``position_ecef_m`` is Earth-fixed (X toward 0 deg lat/0 deg lon, Z toward
    the north pole) at ``timestamp``. ``expected_fov_deg`` is the geometric
    full-disk angle, kept for diagnostics only; ``fov_deg`` is authoritative.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    satellite_id: str
    band: str = "GEOCOLOR"
    image_url: str
    image: Any = Field(repr=False)
    width: int
    height: int
    aspect: float
    timestamp: datetime
    position_ecef_m: Vec3
    fov_deg: float
    expected_fov_deg: Optional[float] = None

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def summary(self) -> dict:
        """JSON-friendly view of the frame without the image payload."""
        return self.model_dump(mode="json", exclude={"image"})
