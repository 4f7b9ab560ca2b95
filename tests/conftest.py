from typing import List

import numpy as np
import pytest

from routing.models import RawStep, RoutedResult
from utils.geo import GeoPoint, haversine_distance

VANCOUVER = GeoPoint(49.2827, -123.1207)


def leg_sum_km(points: List[GeoPoint]) -> float:
    """Sum of the radial distances from the loop start to each interior waypoint."""
    start = points[0]
    return sum(haversine_distance(start, p) for p in points[1:-1]) / 1000


def make_stub_router(factor: float = 1.0, steps: List[RawStep] = None):
    """Routing stub: routed distance = factor x requested leg sum, straight-line polyline."""
    calls = []

    def fetch(points: List[GeoPoint]) -> RoutedResult:
        calls.append(list(points))
        distance_m = leg_sum_km(points) * factor * 1000
        return RoutedResult(
            coordinates=[(p.lon, p.lat) for p in points],
            distance_m=distance_m,
            duration_s=distance_m / 1.4,
            legs=[list(steps or [])],
            waypoints=tuple(points),
        )

    fetch.calls = calls
    return fetch


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def start():
    return VANCOUVER
