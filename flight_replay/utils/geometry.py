"""
Shared geometry functions for GPS calculations.

Local projection is equirectangular: degree lengths are taken once at the
origin latitude and held constant, which is accurate to well under a metre
per kilometre over task-sized areas (< ~200 km).
"""

import math
from dataclasses import dataclass
from typing import Any, Iterable, Tuple

from flight_replay import config


class NonFiniteError(ArithmeticError):
    """A NaN or infinite value appeared during a calculation."""


def _get_lat_lon(point: Any) -> Tuple[float, float]:
    """Extract lat/lon from a point (tuple or object with .lat/.lon)."""
    if hasattr(point, 'lat') and hasattr(point, 'lon'):
        return point.lat, point.lon
    return point[0], point[1]


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate great circle distance between two GPS points in meters.

    Args:
        lat1, lon1: First point (decimal degrees)
        lat2, lon2: Second point (decimal degrees)

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    # Rounding can push a fraction above 1 for near-antipodal points
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return config.EARTH_RADIUS_M * c


def path_length(points: Iterable[Any]) -> float:
    """Sum of great circle distances along a sequence of points (meters)."""
    total = 0.0
    previous = None
    for point in points:
        lat, lon = _get_lat_lon(point)
        if previous is not None:
            total += haversine_distance(previous[0], previous[1], lat, lon)
        previous = (lat, lon)
    return total


def degree_lengths(lat: float) -> Tuple[float, float]:
    """
    WGS84 length of one degree at a latitude.

    Returns:
        (meters per degree longitude, meters per degree latitude)
    """
    lat_rad = math.radians(lat)
    kx = config.METERS_PER_DEG_LON_BASE * math.cos(lat_rad)
    ky = (config.METERS_PER_DEG_LAT_BASE -
          config.METERS_PER_DEG_LAT_CORRECTION * math.cos(2 * lat_rad))
    return kx, ky


@dataclass(frozen=True)
class LocalProjection:
    """
    Planar frame in meters centred on an origin.

    x grows east, y grows north.
    """
    origin_lat: float
    origin_lon: float
    kx: float
    ky: float

    @classmethod
    def at(cls, origin: Any) -> 'LocalProjection':
        lat, lon = _get_lat_lon(origin)
        kx, ky = degree_lengths(lat)
        return cls(lat, lon, kx, ky)

    def to_local(self, lat: float, lon: float) -> Tuple[float, float]:
        x = (lon - self.origin_lon) * self.kx
        y = (lat - self.origin_lat) * self.ky
        return x, y

    def from_local(self, x: float, y: float) -> Tuple[float, float]:
        """Inverse of to_local, returns (lat, lon)."""
        lat = self.origin_lat + y / self.ky
        lon = self.origin_lon + x / self.kx
        return lat, lon


def to_local(origin: Any, point: Any) -> Tuple[float, float]:
    """Project a point into the planar frame centred at origin (meters)."""
    lat, lon = _get_lat_lon(point)
    return LocalProjection.at(origin).to_local(lat, lon)


def from_local(origin: Any, x: float, y: float) -> Tuple[float, float]:
    """Convert planar meters around origin back to (lat, lon)."""
    return LocalProjection.at(origin).from_local(x, y)


def require_finite(*values: float) -> None:
    """Raise NonFiniteError if any value is NaN or infinite."""
    for value in values:
        if not math.isfinite(value):
            raise NonFiniteError(f"Non-finite value in calculation: {value}")


def closest_point_on_segment(
    px: float, py: float,
    ax: float, ay: float,
    bx: float, by: float,
) -> Tuple[float, float, float]:
    """
    Find closest point on segment A-B to P in a planar frame.

    Returns: (x, y, t) where t is the clamped fraction along A-B.
    Degenerate segments return A with t = 0.
    """
    dx = bx - ax
    dy = by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return ax, ay, 0.0

    t = ((px - ax) * dx + (py - ay) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return ax + t * dx, ay + t * dy, t
