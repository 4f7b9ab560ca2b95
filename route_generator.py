import math
import os
import logging
import threading
from functools import partial
from typing import Any, Dict, Optional

import numpy as np

import config
from routing.directions_api import fetch_directions
from routing.errors import InvalidInput
from routing.instructions import simplify_steps, to_final_steps
from routing.optimizer import RouteFetcher, plan
from utils.geo import GeoPoint
from utils.gmaps_link import generate_gmaps_route_url
from utils.gpx_utils import create_gpx_file

logger = logging.getLogger(__name__)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def validate_request(start_lat, start_lon, target_km) -> None:
    """Raise InvalidInput unless all inputs are finite and target is within bounds."""
    if not (_is_number(start_lat) and _is_number(start_lon) and _is_number(target_km)):
        raise InvalidInput("Invalid params")
    if not -90 <= start_lat <= 90 or not -180 <= start_lon <= 180:
        raise InvalidInput(f"Start point ({start_lat}, {start_lon}) is not a valid coordinate")
    if not config.MIN_TARGET_KM < target_km < config.MAX_TARGET_KM:
        raise InvalidInput(
            f"Target distance must be between {config.MIN_TARGET_KM} and {config.MAX_TARGET_KM} km")


def summarize_route(distance_m: float, duration_s: float) -> str:
    """One-line summary, e.g. '5.02 km • 30 min'."""
    return f"{distance_m / 1000:.2f} km • {round(duration_s / 60)} min"


def default_route_fetcher() -> RouteFetcher:
    """Directions client bound to the configured service."""
    if config.DIRECTIONS_API_STYLE == "mapbox" and not config.MAPBOX_SECRET_TOKEN:
        raise RuntimeError("Missing MAPBOX_SECRET_TOKEN")
    return partial(
        fetch_directions,
        host=config.DIRECTIONS_HOST,
        profile=config.DIRECTIONS_PROFILE,
        token=config.MAPBOX_SECRET_TOKEN,
        timeout=config.REQUEST_TIMEOUT_S,
        api_style=config.DIRECTIONS_API_STYLE,
    )


def generate_loop_route(
    start_lat: float,
    start_lon: float,
    target_km: float,
    fetch_route: Optional[RouteFetcher] = None,
    rng: Optional[np.random.Generator] = None,
    export_gpx: bool = False,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, Any]:
    """
    Master entry point: find a loop of roughly target_km from the start point and describe it.

    Returns a dict with the route as a GeoJSON feature, distance and pace-based duration,
    simplified directions, a summary line, the loop waypoints and a Google Maps link.
    """
    validate_request(start_lat, start_lon, target_km)

    if fetch_route is None:
        fetch_route = default_route_fetcher()

    start = GeoPoint(float(start_lat), float(start_lon))
    logger.info("[Loop Route] Target=%.2f km | Start=(%.5f, %.5f)", target_km, start.lat, start.lon)

    planned = plan(
        start,
        target_km,
        fetch_route,
        rng=rng,
        trials=config.BEARING_TRIES,
        tune_steps=config.TUNE_STEPS,
        tolerance_km=config.TOLERANCE_KM,
        max_workers=config.MAX_WORKERS,
        cancel_event=cancel_event,
    )
    best = planned.route

    steps = simplify_steps(to_final_steps(best, config.RUN_PACE_MIN_PER_KM))

    distance_m = best.distance_m
    duration_s = best.distance_km * config.RUN_PACE_MIN_PER_KM * 60

    feature = {
        "type": "Feature",
        "properties": {},
        "geometry": {
            "type": "LineString",
            "coordinates": [list(c) for c in best.coordinates],
        },
    }

    result = {
        "geojson": feature,
        "distance_m": distance_m,
        "duration_s": duration_s,
        "steps": [s.to_dict() for s in steps],
        "summary": summarize_route(distance_m, duration_s),
        "waypoints": [[p.lat, p.lon] for p in best.waypoints],
        "gmaps_url": generate_gmaps_route_url(best.waypoints, profile="walking") if best.waypoints else None,
    }

    if export_gpx:
        gpx_path = create_gpx_file(best.coordinates, output_dir=config.GPX_DIR)
        result["gpx_file_url"] = f"/gpx/{os.path.basename(gpx_path)}"

    return result
