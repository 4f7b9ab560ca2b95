import math
from typing import NamedTuple, Sequence

EARTH_RADIUS_M = 6371000
EARTH_RADIUS_KM = 6371


class GeoPoint(NamedTuple):
    """A WGS84 coordinate in degrees."""
    lat: float
    lon: float


def haversine_distance(coord1: Sequence[float], coord2: Sequence[float]) -> float:
    """Return distance in meters between two (lat, lon) coordinates."""
    lat1, lon1 = map(math.radians, coord1[:2])
    lat2, lon2 = map(math.radians, coord2[:2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def lonlat_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Same as haversine_distance but for [lon, lat] pairs, as routing engines return them."""
    return haversine_distance((a[1], a[0]), (b[1], b[0]))


def destination_point(origin: GeoPoint, bearing_deg: float, distance_km: float) -> GeoPoint:
    """
    Project a point distance_km away from origin along bearing_deg on a spherical earth.

    Args:
        origin: starting point
        bearing_deg: compass bearing, degrees clockwise from north
        distance_km: great-circle distance to travel

    Returns:
        GeoPoint with longitude normalised to [-180, 180)
    """
    bearing = math.radians(bearing_deg)
    lat1 = math.radians(origin.lat)
    lon1 = math.radians(origin.lon)
    delta = distance_km / EARTH_RADIUS_KM

    lat2 = math.asin(math.sin(lat1) * math.cos(delta) +
                     math.cos(lat1) * math.sin(delta) * math.cos(bearing))
    lon2 = lon1 + math.atan2(math.sin(bearing) * math.sin(delta) * math.cos(lat1),
                             math.cos(delta) - math.sin(lat1) * math.sin(lat2))

    return GeoPoint(math.degrees(lat2), (math.degrees(lon2) + 540) % 360 - 180)
