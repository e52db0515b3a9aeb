from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import math

import numpy as np
from shapely.geometry import MultiPoint

EARTH_RADIUS_KM = 6371.0

LatLon = Tuple[float, float]


def clamp_lat(lat: float) -> float:
    return max(-90.0, min(90.0, float(lat)))


def wrap_lon(lon: float) -> float:
    lon = float(lon)
    if -180.0 <= lon <= 180.0:
        return lon
    return (lon + 180.0) % 360.0 - 180.0


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float

    def normalized(self) -> "GeoPoint":
        return GeoPoint(clamp_lat(self.lat), wrap_lon(self.lon))

    def as_tuple(self) -> LatLon:
        return (self.lat, self.lon)


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance via haversine."""
    return haversine_km(a.lat, a.lon, b.lat, b.lon)


def haversine_km(a_lat: float, a_lon: float, b_lat: float, b_lon: float) -> float:
    phi1 = math.radians(a_lat)
    phi2 = math.radians(b_lat)
    dphi = math.radians(b_lat - a_lat)
    dlmb = math.radians(b_lon - a_lon)

    s = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    # float noise can push s a hair above 1 for antipodal points
    s = min(1.0, s)
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(s))


def bearing(center: GeoPoint, point: GeoPoint) -> float:
    # Ordering angle in radians (-pi..pi], not a true compass bearing.
    return math.atan2(point.lon - center.lon, point.lat - center.lat)


def destination_point(origin: GeoPoint, bearing_rad: float, dist_km: float) -> GeoPoint:
    """Spherical destination: travel dist_km from origin along an initial bearing (0 = north)."""
    delta = dist_km / EARTH_RADIUS_KM
    phi1 = math.radians(origin.lat)
    lmb1 = math.radians(origin.lon)

    sin_phi2 = math.sin(phi1) * math.cos(delta) + math.cos(phi1) * math.sin(delta) * math.cos(bearing_rad)
    phi2 = math.asin(max(-1.0, min(1.0, sin_phi2)))
    lmb2 = lmb1 + math.atan2(
        math.sin(bearing_rad) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )
    return GeoPoint(math.degrees(phi2), math.degrees(lmb2)).normalized()


def sample_point_in_disk(
    center: GeoPoint,
    radius_km: float,
    rng: Optional[np.random.Generator] = None,
    min_fraction: float = 0.3,
    max_fraction: float = 1.0,
) -> GeoPoint:
    """
    Random point around center, biased toward the outer band of the disk.

    The distance is a uniform fraction of radius_km in [min_fraction, max_fraction]
    and the bearing is uniform over the full circle; the point is then projected
    with the spherical destination formula, so it never leaves the disk.
    """
    rng = rng if rng is not None else np.random.default_rng()
    fraction = float(rng.uniform(min_fraction, max_fraction))
    theta = float(rng.uniform(0.0, 2.0 * math.pi))
    return destination_point(center, theta, radius_km * fraction)


def path_length_km(path: Sequence[LatLon]) -> float:
    total = 0.0
    for i in range(1, len(path)):
        a_lat, a_lon = path[i - 1]
        b_lat, b_lon = path[i]
        total += haversine_km(a_lat, a_lon, b_lat, b_lon)
    return total


def path_bounds(path: Sequence[LatLon]) -> Optional[Tuple[float, float, float, float]]:
    """Returns (min_lat, min_lon, max_lat, max_lon), or None for an empty path."""
    if not path:
        return None
    # shapely works in (x, y) = (lon, lat)
    min_lon, min_lat, max_lon, max_lat = MultiPoint([(lon, lat) for lat, lon in path]).bounds
    return (float(min_lat), float(min_lon), float(max_lat), float(max_lon))
