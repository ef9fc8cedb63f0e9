# backend/edshare/services/geo.py
"""
Great-circle distance helpers.

Distances are computed with the haversine formula on a spherical earth.
Callers validate coordinates before calling in; NaN propagates.
"""

from math import asin, cos, degrees, radians, sin, sqrt
from typing import List, NamedTuple, Sequence, Tuple

EARTH_RADIUS_KM = 6371.0
# Float slack on the box edges (about 1 cm). Extra candidates are dropped by
# the haversine re-check; a missing one could not be recovered.
BOX_MARGIN_DEG = 1e-7


class BoundingBox(NamedTuple):
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres, full precision."""
    phi1 = radians(lat1)
    phi2 = radians(lat2)
    dphi = phi2 - phi1
    dlambda = radians(lon2 - lon1)

    h = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlambda / 2) ** 2
    # Clamp guards against h drifting a hair above 1.0 for antipodal points
    return 2 * EARTH_RADIUS_KM * asin(min(sqrt(h), 1.0))


def round_distance(km: float) -> float:
    """Display rounding only; sort on the unrounded value."""
    return round(km, 2)



def distance_matrix(
    origins: Sequence[Tuple[float, float]], destinations: Sequence[Tuple[float, float]]
) -> List[List[float]]:
    """Row per origin, column per destination, in kilometres."""
    return [
        [distance_km(o_lat, o_lon, d_lat, d_lon) for d_lat, d_lon in destinations]
        for o_lat, o_lon in origins
    ]


def bounding_box(lat: float, lon: float, radius_km: float) -> BoundingBox:
    """
    Lat/lon box that fully contains the circle of ``radius_km`` around a point.

    Used as a coarse store-side pre-filter. Longitudes may wrap, in which
    case ``min_lon > max_lon``. Near the poles the box spans all longitudes.
    """
    lat_delta = degrees(radius_km / EARTH_RADIUS_KM) + BOX_MARGIN_DEG
    min_lat = max(-90.0, lat - lat_delta)
    max_lat = min(90.0, lat + lat_delta)

    if min_lat <= -90.0 or max_lat >= 90.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    ratio = sin(radians(lat_delta)) / cos(radians(lat))
    if ratio >= 1.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)
    lon_delta = degrees(asin(ratio)) + BOX_MARGIN_DEG

    min_lon = lon - lon_delta
    max_lon = lon + lon_delta
    if min_lon < -180.0:
        min_lon += 360.0
    if max_lon > 180.0:
        max_lon -= 360.0
    return BoundingBox(min_lat, max_lat, min_lon, max_lon)
