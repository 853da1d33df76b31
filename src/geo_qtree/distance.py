"""
Great-circle computations on a spherical earth.

All angles are in degrees at the API boundary and distances in kilometers.
"""

import math

from .coords import LatLon


EARTH_RADIUS_KM = 6371.009
"""Mean radius of the reference sphere."""

HALF_EARTH_CIRCUMFERENCE = math.pi * EARTH_RADIUS_KM
"""Any search radius at or above this value covers the entire sphere."""


def point_on_great_circle(
    lat: float,
    lon: float,
    distance_km: float,
    bearing: float,
) -> LatLon:
    """
    Compute the destination reached from (lat, lon) after travelling
    distance_km along the great circle with the given initial bearing.

    Args:
        lat: Origin latitude in degrees
        lon: Origin longitude in degrees
        distance_km: Distance travelled in kilometers
        bearing: Initial bearing in degrees clockwise from north

    Returns:
        Destination point. The longitude is not normalized and can fall
        outside [-180, 180].
    """
    phi1 = math.radians(lat)
    lambda1 = math.radians(lon)
    theta = math.radians(bearing)
    delta = distance_km / EARTH_RADIUS_KM

    sin_phi2 = (
        math.sin(phi1) * math.cos(delta)
        + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    )
    # Rounding can push the argument a hair outside asin's domain at the poles
    phi2 = math.asin(max(-1.0, min(1.0, sin_phi2)))
    lambda2 = lambda1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )

    return LatLon(math.degrees(phi2), math.degrees(lambda2))


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in kilometers between two points.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    )
    a = max(0.0, min(1.0, a))
    return 2.0 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Forward azimuth from the first point towards the second.

    Returns:
        Bearing in degrees in [0, 360)
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_lambda = math.radians(lon2 - lon1)

    y = math.sin(d_lambda) * math.cos(phi2)
    x = (
        math.cos(phi1) * math.sin(phi2)
        - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    )
    return math.degrees(math.atan2(y, x)) % 360.0
