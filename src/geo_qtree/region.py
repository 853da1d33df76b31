"""
Approximation of point-radius search regions.

The quadtree only answers rectangular queries, so a search circle (a center
and a radius in kilometers) is turned into a bounding rectangle first. The
circle is sampled as a polygon of destination points, and the polygon is
examined in shifted coordinates (longitude + 180, latitude + 90) where the
whole map is the rectangle (0, 0)-(360, 180).

The branch structure below handles three awkward cases:
- a circle that encloses a pole, found by its distance to the pole
- a circle that straddles the antimeridian without enclosing a pole
- sampling artifacts where the polygon ends up describing the excluded area

The result is a conservative rectangle, not an exact spherical-cap bound.
"""

from typing import List, Tuple

from shapely.geometry import Point, Polygon, box

from .coords import LatLon
from .distance import HALF_EARTH_CIRCUMFERENCE, haversine_distance, point_on_great_circle
from .rectangle import Rectangle


# The whole map in shifted coordinates
SHIFTED_WIDTH = 360.0
SHIFTED_HEIGHT = 180.0

# A polygon at least this wide (in degrees of longitude) is treated as
# wrapping the globe.
GLOBAL_SPAN = 359.0

DEFAULT_REGION_SAMPLES = 360


def circular_region_approximation(
    center: LatLon, radius_km: float, number_of_points: int
) -> List[LatLon]:
    """
    Sample the search circle as a closed polygon.

    Args:
        center: Circle center
        radius_km: Circle radius in kilometers
        number_of_points: Number of distinct points sampled on the circle

    Returns:
        number_of_points + 1 points; the first point is repeated at the end.
        For a radius covering the whole sphere, the five corners of the map.
    """
    if radius_km >= HALF_EARTH_CIRCUMFERENCE:
        corners = [
            LatLon(-90.0, -180.0),
            LatLon(90.0, -180.0),
            LatLon(90.0, 180.0),
            LatLon(-90.0, 180.0),
        ]
        return corners + [corners[0]]

    if number_of_points < 3:
        raise ValueError("number_of_points must be at least 3")

    step = 360.0 / number_of_points
    points = [
        point_on_great_circle(center.latitude, center.longitude, radius_km, i * step)
        for i in range(number_of_points)
    ]
    points.append(points[0])
    return points


def crosses_dateline(lon1: float, lon2: float) -> bool:
    """True when an edge between two normalized longitudes wraps around."""
    return abs(lon1 - lon2) > 180.0


def count_dateline_crossings(ring: List[LatLon]) -> int:
    """Count wrapping edges along a closed ring of points."""
    return sum(
        1 for a, b in zip(ring, ring[1:]) if crosses_dateline(a.norm_lon, b.norm_lon)
    )


def _from_shifted(minx: float, miny: float, maxx: float, maxy: float) -> Rectangle:
    """Shift a rectangle back to degrees, clamped to the map."""
    x0 = min(max(minx - 180.0, -180.0), 180.0)
    x1 = min(max(maxx - 180.0, x0), 180.0)
    y0 = min(max(miny - 90.0, -90.0), 90.0)
    y1 = min(max(maxy - 90.0, y0), 90.0)
    return Rectangle(x0, x1, y0, y1)


def enclosed_poles(center: LatLon, radius_km: float) -> Tuple[bool, bool]:
    """
    Check which poles lie inside the search circle.

    Returns:
        Tuple of (north enclosed, south enclosed)
    """
    north = haversine_distance(center.latitude, center.longitude, 90.0, 0.0) <= radius_km
    south = haversine_distance(center.latitude, center.longitude, -90.0, 0.0) <= radius_km
    return north, south


def rectangular_region_approximation(
    center: LatLon, radius_km: float, number_of_samples: int = DEFAULT_REGION_SAMPLES
) -> Rectangle:
    """
    Compute a rectangle enclosing every point within radius_km of center.

    Args:
        center: Circle center
        radius_km: Circle radius in kilometers
        number_of_samples: Number of points sampled on the circle; more
            samples give a tighter rectangle at a higher cost

    Returns:
        Rectangle in degrees, possibly the whole map
    """
    if radius_km >= HALF_EARTH_CIRCUMFERENCE:
        return Rectangle.world()

    if radius_km == 0:
        return Rectangle(center.norm_lon, center.norm_lon, center.latitude, center.latitude)

    north, south = enclosed_poles(center, radius_km)
    if north and south:
        return Rectangle.world()

    ring = circular_region_approximation(center, radius_km, number_of_samples)
    polygon = Polygon([(p.shifted_lon, p.shifted_lat) for p in ring])
    minx, miny, maxx, maxy = polygon.bounds

    # Every meridian runs through an enclosed pole, and the far edge of the
    # circle is its latitude extreme on the other side.
    if north:
        return _from_shifted(0.0, miny, SHIFTED_WIDTH, SHIFTED_HEIGHT)
    if south:
        return _from_shifted(0.0, 0.0, SHIFTED_WIDTH, maxy)

    if count_dateline_crossings(ring) == 1:
        # A ring passing close to a pole can wrap once between samples
        return _from_shifted(0.0, miny, SHIFTED_WIDTH, maxy)

    if not polygon.is_valid:
        polygon = polygon.buffer(0)

    if polygon.contains(Point(center.shifted_lon, center.shifted_lat)):
        if maxx - minx >= GLOBAL_SPAN:
            return Rectangle.world()
        if minx < 0.0 or maxx > SHIFTED_WIDTH:
            # Straddles the antimeridian: keep the latitude band only
            return _from_shifted(0.0, miny, SHIFTED_WIDTH, maxy)
        return _from_shifted(minx, miny, maxx, maxy)

    # The polygon describes the excluded area rather than the included one
    whole_map = box(0.0, 0.0, SHIFTED_WIDTH, SHIFTED_HEIGHT)
    remainder = whole_map.difference(polygon)
    if remainder.is_empty:
        return Rectangle.world()
    return _from_shifted(*remainder.bounds)
