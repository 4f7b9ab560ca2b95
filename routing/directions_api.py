import logging
import math
from typing import List, Optional

import requests

from routing.errors import RoutingServiceError
from routing.models import LonLat, RawStep, RoutedResult
from utils.geo import GeoPoint

logger = logging.getLogger(__name__)


def _directions_url(host: str, profile: str, points: List[GeoPoint], api_style: str) -> str:
    coord_str = ";".join(f"{p.lon},{p.lat}" for p in points)
    if api_style == "osrm":
        return f"{host}/route/v1/{profile}/{coord_str}"
    return f"{host}/directions/v5/{profile}/{coord_str}"


def _lonlat(value) -> LonLat:
    """A [lon, lat, ...] position as a (lon, lat) tuple of finite floats."""
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        raise RoutingServiceError(f"Malformed coordinate in directions response: {value!r}")
    lon, lat = float(value[0]), float(value[1])
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise RoutingServiceError(f"Non-finite coordinate in directions response: {value!r}")
    return lon, lat


def _parse_step(step: dict) -> RawStep:
    if not isinstance(step, dict):
        raise RoutingServiceError(f"Malformed step in directions response: {step!r}")
    maneuver = step.get("maneuver") or {}
    if not isinstance(maneuver, dict):
        raise RoutingServiceError(f"Malformed maneuver in directions response: {maneuver!r}")
    location = maneuver.get("location")
    return RawStep(
        instruction=str(maneuver.get("instruction") or "").strip(),
        type=maneuver.get("type"),
        modifier=maneuver.get("modifier"),
        distance_m=float(step.get("distance") or 0.0),
        duration_s=float(step.get("duration") or 0.0),
        name=step.get("name"),
        location=_lonlat(location) if location else None,
    )


def parse_directions_response(data: dict, points: List[GeoPoint]) -> RoutedResult:
    """
    Turn a Mapbox/OSRM directions body into a RoutedResult.

    Raises:
        RoutingServiceError: if the body carries no usable route
    """
    routes = data.get("routes") if isinstance(data, dict) else None
    if not routes:
        message = data.get("message", "no route") if isinstance(data, dict) else "no route"
        raise RoutingServiceError(f"No route found for given points: {message}")

    route = routes[0]
    try:
        coords = [_lonlat(c) for c in route["geometry"]["coordinates"]]
        legs = [[_parse_step(s) for s in (leg.get("steps") or [])] for leg in (route.get("legs") or [])]
        distance_m = float(route["distance"])
        duration_s = float(route.get("duration") or 0.0)
    except (KeyError, TypeError, ValueError, AttributeError, IndexError) as e:
        raise RoutingServiceError(f"Malformed directions response: {e}") from e

    if not math.isfinite(distance_m) or distance_m < 0:
        raise RoutingServiceError(f"Directions response has an unusable distance: {distance_m}")

    return RoutedResult(
        coordinates=coords,
        distance_m=distance_m,
        duration_s=duration_s,
        legs=legs,
        waypoints=tuple(points),
    )


def fetch_directions(points: List[GeoPoint],
                     host: str,
                     profile: str = "mapbox/walking",
                     token: Optional[str] = None,
                     timeout: float = 10,
                     api_style: str = "mapbox") -> RoutedResult:
    """
    Fetches a walking route through the given points from a Mapbox or OSRM directions server.

    Args:
        points (list of GeoPoint): waypoints in visiting order, at least two
        host (str): Base URL of the directions service
        profile (str): routing profile path, e.g. 'mapbox/walking' or 'foot'
        token (str): Mapbox access token, omitted for self-hosted OSRM
        timeout (float): seconds to wait for the server
        api_style (str): 'mapbox' for /directions/v5 or 'osrm' for /route/v1

    Returns:
        RoutedResult with [lon, lat] coordinates and the per-leg maneuver list

    Raises:
        RoutingServiceError: transport failure, non-success status or no route
    """
    if len(points) < 2:
        raise ValueError("At least two points are required to fetch a route.")

    url = _directions_url(host, profile, points, api_style)
    params = {
        "geometries": "geojson",
        "overview": "full",
        "steps": "true",
    }
    if token:
        params["access_token"] = token

    try:
        response = requests.get(url, params=params, timeout=timeout)
    except requests.RequestException as e:
        raise RoutingServiceError(f"Error connecting to directions server: {e}") from e

    if not response.ok:
        raise RoutingServiceError(f"Directions API error: {response.status_code}", status=response.status_code)

    try:
        data = response.json()
    except ValueError as e:
        raise RoutingServiceError(f"Directions API returned invalid JSON: {e}", status=response.status_code) from e

    result = parse_directions_response(data, points)
    logger.debug("[%s] Route fetched | Distance: %.1f m | Waypoints: %d",
                 profile, result.distance_m, len(points))
    return result
