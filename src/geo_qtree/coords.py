"""
Coordinate module for latitude/longitude points.

This module defines the immutable point type stored in the index and the
small conversions the rest of the package relies on:

- shifted coordinates, where latitude is moved to [0, 180] and longitude
  to [0, 360] so planar bounding-box arithmetic never sees negative values
- longitude normalization into [-180, 180]
- ISO 6709 degree/minute/second rendering for display
"""

from dataclasses import dataclass
from typing import Tuple
import math


MIN_LATITUDE = -90.0
MAX_LATITUDE = 90.0
MIN_LONGITUDE = -180.0
MAX_LONGITUDE = 180.0


def clamp_coords(lat: float, lon: float) -> Tuple[float, float]:
    """
    Clamp latitude and longitude to valid WGS84 ranges.

    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees

    Returns:
        Tuple of (clamped_lat, clamped_lon)
    """
    clamped_lat = max(MIN_LATITUDE, min(MAX_LATITUDE, lat))
    clamped_lon = max(MIN_LONGITUDE, min(MAX_LONGITUDE, lon))
    return clamped_lat, clamped_lon


def normalize_longitude(lon: float) -> float:
    """
    Wrap a longitude into [-180, 180].

    Values already inside the range (including both endpoints) are
    returned unchanged.
    """
    while lon > MAX_LONGITUDE:
        lon -= 360.0
    while lon < MIN_LONGITUDE:
        lon += 360.0
    return lon


def _to_dms(value: float) -> Tuple[int, int, float]:
    """Split an absolute degree value into degrees, minutes and seconds."""
    value = abs(value)
    degrees = int(value)
    remainder = (value - degrees) * 60.0
    minutes = int(remainder)
    seconds = (remainder - minutes) * 60.0
    return degrees, minutes, seconds


def _format_dms(value: float, positive: str, negative: str) -> str:
    degrees, minutes, seconds = _to_dms(value)
    hemisphere = negative if value < 0 else positive
    return f"{degrees}°{minutes:02d}'{seconds:05.2f}\"{hemisphere}"


def latitude_dms(lat: float) -> str:
    """
    Render a latitude as ISO 6709 degrees, minutes and seconds.

    Example: 40.7128 -> 40°42'46.08"N
    """
    return _format_dms(lat, "N", "S")


def longitude_dms(lon: float) -> str:
    """
    Render a longitude as ISO 6709 degrees, minutes and seconds.

    Example: -74.006 -> 74°00'21.60"W
    """
    return _format_dms(lon, "E", "W")


@dataclass(frozen=True)
class LatLon:
    """
    A point on the sphere in degrees.

    Longitude is not normalized on construction: destination points computed
    on a great circle may legitimately fall outside [-180, 180], and the
    region approximation depends on seeing that raw value.
    """
    latitude: float
    longitude: float

    def __post_init__(self):
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            raise ValueError(
                f"Invalid coordinates: lat={self.latitude}, lon={self.longitude}"
            )

    @property
    def shifted_lat(self) -> float:
        """Latitude moved into [0, 180]."""
        return self.latitude + 90.0

    @property
    def shifted_lon(self) -> float:
        """Longitude moved into [0, 360] (for normalized input)."""
        return self.longitude + 180.0

    @property
    def norm_lon(self) -> float:
        """Longitude wrapped into [-180, 180]."""
        return normalize_longitude(self.longitude)

    def to_iso6709(self) -> str:
        """Human readable position, e.g. 40°42'46.08"N 74°00'21.60"W."""
        return f"{latitude_dms(self.latitude)} {longitude_dms(self.longitude)}"
