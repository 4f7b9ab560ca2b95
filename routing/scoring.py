from typing import Iterable, Sequence

import config
from routing.models import RawStep, RoutedResult, Score
from utils.geo import lonlat_distance


def _snap(value: float, precision: float) -> str:
    return f"{round(value / precision) * precision:.5f}"


def segment_key(a: Sequence[float], b: Sequence[float], precision: float = config.OVERLAP_GRID_DEG) -> str:
    """Direction-independent key for the segment a-b on a ~20 m grid."""
    a_key = f"{_snap(a[0], precision)},{_snap(a[1], precision)}"
    b_key = f"{_snap(b[0], precision)},{_snap(b[1], precision)}"
    return f"{a_key}|{b_key}" if a_key < b_key else f"{b_key}|{a_key}"


def overlap_penalty_km(coordinates: Sequence[Sequence[float]],
                       precision: float = config.OVERLAP_GRID_DEG,
                       min_segment_m: float = config.MIN_SEGMENT_M,
                       weight: float = config.OVERLAP_WEIGHT_KM) -> float:
    """
    Penalty proportional to the fraction of the polyline that retraces itself.

    Args:
        coordinates: route polyline as [lon, lat] pairs
        precision: grid size in degrees used to match segments
        min_segment_m: segments shorter than this are ignored
        weight: km-equivalent penalty for a route that is entirely overlap

    Returns:
        overlap fraction scaled by weight
    """
    if len(coordinates) < 3:
        return 0.0

    seen = set()
    total_m = 0.0
    overlap_m = 0.0

    for prev, curr in zip(coordinates[:-1], coordinates[1:]):
        segment_m = lonlat_distance(prev, curr)
        if segment_m < min_segment_m:
            continue

        total_m += segment_m
        key = segment_key(prev, curr, precision)
        if key in seen:
            overlap_m += segment_m
        else:
            seen.add(key)

    if total_m <= 0:
        return 0.0

    return overlap_m / total_m * weight


def is_turn_like(maneuver_type: str) -> bool:
    return "turn" in maneuver_type or maneuver_type in ("fork", "roundabout")


def smoothness_penalty_km(steps: Iterable[RawStep]) -> float:
    """Short turns cost more than turns in general."""
    short_turns = 0
    total_turns = 0

    for step in steps:
        if not is_turn_like(step.type or ""):
            continue
        total_turns += 1
        if (step.distance_m or 0) < config.SHORT_TURN_M:
            short_turns += 1

    return short_turns * config.SHORT_TURN_PENALTY_KM + total_turns * config.TURN_PENALTY_KM


def score_route(route: RoutedResult, target_km: float) -> Score:
    route_km = route.distance_km
    return Score(
        route_km=route_km,
        distance_diff_km=abs(route_km - target_km),
        smoothness_penalty_km=smoothness_penalty_km(route.steps),
        overlap_penalty_km=overlap_penalty_km(route.coordinates),
    )
