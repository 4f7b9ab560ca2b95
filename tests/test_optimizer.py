import math
import threading

import numpy as np
import pytest

from conftest import leg_sum_km, make_stub_router
from routing.directions_api import parse_directions_response
from routing.errors import InvalidInput, NoRouteFound, RoutingServiceError
from routing.models import RawStep, RoutedResult
from routing.optimizer import BestRoute, LoopShape, build_candidate, plan, random_shape, tune_leg_length
from routing.scoring import score_route
from utils.geo import haversine_distance


def test_random_shape_spreads_bearings(rng):
    for _ in range(200):
        shape = random_shape(rng)
        assert len(shape.bearings) in (2, 3)
        assert len(shape.leg_ratios) == len(shape.bearings)
        assert shape.leg_ratios[0] == 1.0
        assert 0.8 <= shape.leg_ratios[1] < 1.15
        gap = (shape.bearings[1] - shape.bearings[0]) % 360
        assert 95 <= gap < 185
        if len(shape.bearings) == 3:
            assert 0.65 <= shape.leg_ratios[2] < 1.0
            gap = (shape.bearings[2] - shape.bearings[1]) % 360
            assert 80 <= gap < 160


def test_random_shape_prefers_three_waypoints(rng):
    counts = [len(random_shape(rng).bearings) for _ in range(1000)]
    assert 600 < counts.count(3) < 800


def test_random_shape_reproducible():
    a = [random_shape(np.random.default_rng(7)) for _ in range(3)]
    b = [random_shape(np.random.default_rng(7)) for _ in range(3)]
    assert a == b


def test_candidate_is_closed_loop(start, rng):
    for _ in range(50):
        shape = random_shape(rng)
        candidate = build_candidate(start, shape, 1.2)
        assert candidate[0] == candidate[-1] == start
        assert len(candidate) == len(shape.bearings) + 2


def test_candidate_leg_lengths_follow_ratios(start):
    shape = LoopShape((0.0, 120.0, 240.0), (1.0, 0.9, 0.7))
    candidate = build_candidate(start, shape, 2.0)
    for point, ratio in zip(candidate[1:-1], shape.leg_ratios):
        assert haversine_distance(start, point) == pytest.approx(2000 * ratio, rel=1e-6)


def test_binary_search_converges_or_exhausts_budget(start, rng):
    fetch = make_stub_router(factor=1.3)
    best = BestRoute()
    target_km = 8.0
    for _ in range(20):
        shape = random_shape(rng)
        fetch.calls.clear()
        routed = tune_leg_length(start, shape, target_km, fetch, best, tune_steps=6, tolerance_km=0.5)
        assert routed == len(fetch.calls) <= 6
        last_km = leg_sum_km(fetch.calls[-1]) * 1.3
        if routed < 6:
            assert abs(last_km - target_km) <= 0.5


def test_binary_search_moves_toward_target(start):
    fetch = make_stub_router(factor=1.0)
    shape = LoopShape((0.0, 120.0, 240.0), (1.0, 1.0, 1.0))
    tune_leg_length(start, shape, 6.0, fetch, BestRoute(), tune_steps=6, tolerance_km=0.01)
    legs = [haversine_distance(start, call[1]) / 1000 for call in fetch.calls]
    # first guess 0.22 * 6 = 1.32 km is too short (3 legs x 1.32 < 6), so the next guess grows
    assert legs[0] == pytest.approx(1.32, rel=1e-6)
    assert legs[1] > legs[0]
    assert legs[1] == pytest.approx((1.32 + 0.45 * 6) / 2, rel=1e-6)


def test_end_to_end_hits_target(start, rng):
    fetch = make_stub_router(factor=1.0)
    planned = plan(start, 5.0, fetch, rng=rng)
    assert abs(planned.route.distance_m - 5000) <= 500
    assert planned.failures == 0
    assert planned.calls == len(fetch.calls) <= 9 * 6
    assert planned.route.waypoints[0] == planned.route.waypoints[-1] == start


def test_best_is_lowest_score_across_trials(start, rng):
    fetch = make_stub_router(factor=1.3)
    seen = []

    def recording(points):
        route = fetch(points)
        seen.append(score_route(route, 5.0).total)
        return route

    planned = plan(start, 5.0, recording, rng=rng)
    assert planned.score.total == pytest.approx(min(seen))


def test_smoother_route_beats_closer_distance(start):
    twisty = [RawStep(type="turn", modifier="left", distance_m=10) for _ in range(10)]
    responses = iter([
        RoutedResult([(start.lon, start.lat)], 5050, 0, legs=[twisty]),  # 0.05 off, 1.35 penalty
        RoutedResult([(start.lon, start.lat)], 5400, 0, legs=[[]]),  # 0.4 off, no penalty
    ])
    planned = plan(start, 5.0, lambda points: next(responses), rng=np.random.default_rng(1),
                   trials=2, tune_steps=1)
    assert planned.route.distance_m == 5400


def test_failure_aborts_only_current_trial(start):
    fetch = make_stub_router(factor=1.0)
    attempts = []

    def flaky(points):
        attempts.append(points)
        if len(attempts) == 1:
            raise RoutingServiceError("Directions API error: 503", status=503)
        return fetch(points)

    planned = plan(start, 5.0, flaky, rng=np.random.default_rng(3), trials=3)
    assert planned.failures == 1
    assert planned.route is not None


def test_no_route_found_when_every_trial_fails(start, rng):
    calls = []

    def broken(points):
        calls.append(points)
        raise RoutingServiceError("Directions API error: 500", status=500)

    with pytest.raises(NoRouteFound):
        plan(start, 5.0, broken, rng=rng, trials=4)
    # one call per trial: a failure ends the trial
    assert len(calls) == 4


@pytest.mark.parametrize("target", [0.0, -3.0, float("nan"), float("inf")])
def test_rejects_unusable_target(start, rng, target):
    with pytest.raises(InvalidInput):
        plan(start, target, make_stub_router(), rng=rng)


@pytest.mark.parametrize("target", [0.01, 250.0])
def test_any_positive_target_terminates(start, rng, target):
    fetch = make_stub_router(factor=1.0)
    plan(start, target, fetch, rng=rng, trials=3, tune_steps=6)
    assert len(fetch.calls) <= 3 * 6


def test_concurrent_trials_match_serial(start):
    serial = plan(start, 5.0, make_stub_router(factor=1.3), rng=np.random.default_rng(11))
    threaded = plan(start, 5.0, make_stub_router(factor=1.3), rng=np.random.default_rng(11), max_workers=4)
    assert threaded.score.total == pytest.approx(serial.score.total)
    assert threaded.calls == serial.calls


def test_cancel_stops_further_calls(start, rng):
    cancel = threading.Event()
    fetch = make_stub_router(factor=1.0)

    def cancelling(points):
        cancel.set()
        return fetch(points)

    planned = plan(start, 5.0, cancelling, rng=rng, cancel_event=cancel)
    assert len(fetch.calls) == 1
    assert planned.calls == 1



def test_non_finite_route_never_takes_best_slot(start, rng):
    fetch = make_stub_router(factor=1.0)
    attempts = []

    def nan_first(points):
        attempts.append(points)
        route = fetch(points)
        if len(attempts) == 1:
            route.distance_m = float("nan")
        return route

    planned = plan(start, 5.0, nan_first, rng=rng)
    assert planned.failures == 1
    assert math.isfinite(planned.score.total)
    assert math.isfinite(planned.route.distance_m)
    assert planned.route.distance_m > 0


def test_malformed_directions_body_ends_only_one_trial(start):
    fetch = make_stub_router(factor=1.0)
    route = {"distance": 5000, "duration": 1800, "legs": []}
    bodies = iter([
        {"routes": [dict(route, geometry={"coordinates": [[0], [1], [2]]})]},
        {"routes": [dict(route, geometry={"coordinates": [[0, 0], [1, 1]]}, legs=[{"steps": ["oops"]}])]},
    ])

    def malformed_first(points):
        body = next(bodies, None)
        if body is None:
            return fetch(points)
        return parse_directions_response(body, points)

    planned = plan(start, 5.0, malformed_first, rng=np.random.default_rng(3), trials=3)
    assert planned.failures == 2
    assert planned.route is not None
    assert math.isfinite(planned.score.total)
