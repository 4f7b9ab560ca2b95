"""
Loop search: tune waypoint radius per loop shape until the routed distance matches the target.
"""
import logging
import math
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np

import config
from routing.errors import InvalidInput, NoRouteFound, RoutingServiceError
from routing.models import PlannedRoute, RoutedResult, Score
from routing.scoring import score_route
from utils.geo import GeoPoint, destination_point

logger = logging.getLogger(__name__)

RouteFetcher = Callable[[List[GeoPoint]], RoutedResult]


@dataclass(frozen=True)
class LoopShape:
    """Bearings and relative leg lengths of the interior waypoints of one trial."""
    bearings: Tuple[float, ...]
    leg_ratios: Tuple[float, ...]


def random_shape(rng: np.random.Generator) -> LoopShape:
    """Spread 2 or 3 waypoints around the compass with uneven legs."""
    b1 = rng.random() * 360
    b2 = (b1 + 95 + rng.random() * 90) % 360
    use_three_waypoints = rng.random() < config.THREE_WAYPOINT_PROB
    b3 = (b2 + 80 + rng.random() * 80) % 360
    leg2_ratio = 0.8 + rng.random() * 0.35
    leg3_ratio = 0.65 + rng.random() * 0.35

    if use_three_waypoints:
        return LoopShape((b1, b2, b3), (1.0, leg2_ratio, leg3_ratio))
    return LoopShape((b1, b2), (1.0, leg2_ratio))


def build_candidate(start: GeoPoint, shape: LoopShape, leg_km: float) -> Tuple[GeoPoint, ...]:
    """Closed loop start -> waypoints -> start."""
    waypoints = [destination_point(start, bearing, leg_km * ratio)
                 for bearing, ratio in zip(shape.bearings, shape.leg_ratios)]
    return (start, *waypoints, start)


class BestRoute:
    """Lowest-scoring route seen during one plan() call. Safe to share between trial threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self.route: Optional[RoutedResult] = None
        self.score: Optional[Score] = None
        self.calls = 0
        self.failures = 0

    def offer(self, route: RoutedResult, score: Score) -> bool:
        with self._lock:
            self.calls += 1
            if self.score is None or score.total < self.score.total:
                self.route, self.score = route, score
                return True
            return False

    def record_failure(self):
        with self._lock:
            self.calls += 1
            self.failures += 1


def tune_leg_length(start: GeoPoint,
                    shape: LoopShape,
                    target_km: float,
                    fetch_route: RouteFetcher,
                    best: BestRoute,
                    tune_steps: int = config.TUNE_STEPS,
                    tolerance_km: float = config.TOLERANCE_KM,
                    cancel_event: Optional[threading.Event] = None) -> int:
    """
    Binary search the leg length for one loop shape.

    Every routed candidate is scored and offered to best. A routing failure ends the
    search for this shape. Returns the number of candidates routed successfully.
    """
    low = target_km * config.LEG_LOW_FRAC
    high = target_km * config.LEG_HIGH_FRAC
    leg = target_km * config.LEG_START_FRAC
    routed = 0

    for step in range(tune_steps):
        if cancel_event is not None and cancel_event.is_set():
            break

        candidate = build_candidate(start, shape, leg)
        try:
            route = fetch_route(list(candidate))
        except RoutingServiceError as e:
            best.record_failure()
            logger.warning("Directions error (status=%s), abandoning shape %s: %s",
                           e.status, [round(b) for b in shape.bearings], e)
            break

        score = score_route(route, target_km)
        if not math.isfinite(score.total):
            best.record_failure()
            logger.warning("Unusable route (score=%s), abandoning shape %s",
                           score.total, [round(b) for b in shape.bearings])
            break

        routed += 1
        improved = best.offer(route, score)
        logger.debug("Step %d | leg=%.3f km | routed=%.2f km | score=%.3f%s",
                     step, leg, score.route_km, score.total, " (best)" if improved else "")

        if score.distance_diff_km <= tolerance_km:
            break

        # If route too long, shrink leg; if too short, expand leg
        if score.route_km > target_km:
            high = leg
        else:
            low = leg
        leg = (low + high) / 2

    return routed


def plan(start: GeoPoint,
         target_km: float,
         fetch_route: RouteFetcher,
         rng: Optional[np.random.Generator] = None,
         trials: int = config.BEARING_TRIES,
         tune_steps: int = config.TUNE_STEPS,
         tolerance_km: float = config.TOLERANCE_KM,
         max_workers: int = 1,
         cancel_event: Optional[threading.Event] = None) -> PlannedRoute:
    """
    Search for a loop from start whose routed length is close to target_km.

    Args:
        start: loop start and end point
        target_km: requested loop length
        fetch_route: routing service call, raises RoutingServiceError on failure
        rng: random source for loop shapes; a fresh unseeded generator if None
        trials: number of loop shapes to try
        tune_steps: max routing calls per shape
        tolerance_km: stop tuning a shape once this close to target
        max_workers: run shapes concurrently when > 1
        cancel_event: once set, no further routing calls are issued

    Returns:
        PlannedRoute holding the lowest-scoring route over all shapes

    Raises:
        InvalidInput: target_km is not a positive finite number
        NoRouteFound: no shape produced a route
    """
    if not (isinstance(target_km, (int, float)) and math.isfinite(target_km) and target_km > 0):
        raise InvalidInput(f"Target distance must be a positive number of km, got {target_km!r}")

    if rng is None:
        rng = np.random.default_rng()

    # Draw every shape before routing so a seeded rng gives the same shapes in any worker order
    shapes = [random_shape(rng) for _ in range(trials)]
    best = BestRoute()

    def run(shape: LoopShape) -> int:
        return tune_leg_length(start, shape, target_km, fetch_route, best,
                               tune_steps=tune_steps, tolerance_km=tolerance_km,
                               cancel_event=cancel_event)

    if max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            list(pool.map(run, shapes))
    else:
        for shape in shapes:
            run(shape)

    if best.route is None:
        logger.warning("No route found after %d shapes (%d failed calls)", trials, best.failures)
        raise NoRouteFound("Could not generate a route")

    logger.info("Best loop: %.2f km for target %.2f km | score=%.3f | calls=%d | failures=%d",
                best.score.route_km, target_km, best.score.total, best.calls, best.failures)

    return PlannedRoute(route=best.route, score=best.score,
                        calls=best.calls, failures=best.failures, trials=trials)
