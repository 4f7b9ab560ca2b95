"""
Turn the routing service's maneuver list into short, readable directions.
"""
import re
from dataclasses import replace
from typing import List, Optional, Sequence

import config
from routing.models import FinalStep, RawStep, RoutedResult

GENERIC_PATH_TERMS = (
    "walkway",
    "crosswalk",
    "sidewalk",
    "path",
    "trail",
    "footway",
    "pedestrian",
    "steps",
    "stair",
    "bridge",
)

CORE_MANEUVER_TYPES = {
    "depart",
    "arrive",
    "turn",
    "fork",
    "merge",
    "roundabout",
    "rotary",
    "roundabout turn",
    "end of road",
}

ARRIVAL_TEXT = "You have arrived at your destination."
ZIGZAG_TEXT = "Continue straight."

MIN_STEP_M = 8  # connector noise
NAMED_CORE_MIN_M = 20
GENERIC_NAME_MIN_M = 140
UNNAMED_CORE_MIN_M = 45
NON_CORE_MIN_M = 220
ZIGZAG_MAX_M = 70


def is_generic_path_name(name: Optional[str]) -> bool:
    """True for missing names and names that only describe the kind of path."""
    if not name:
        return True
    normalized = name.strip().lower()
    if not normalized:
        return True
    return any(term in normalized for term in GENERIC_PATH_TERMS)


def has_specific_name(name: Optional[str]) -> bool:
    return bool(name) and not is_generic_path_name(name)


def is_core_maneuver(maneuver_type: Optional[str]) -> bool:
    return maneuver_type in CORE_MANEUVER_TYPES


def to_sentence(text: str) -> str:
    trimmed = text.strip()
    if not trimmed:
        return "Continue."
    if re.search(r"[.!?]$", trimmed):
        return trimmed
    return f"{trimmed}."


def format_instruction(step: RawStep) -> str:
    """Prefer wording built from the road name over the provider's text."""
    maneuver_type = step.type
    modifier = step.modifier
    name = (step.name or "").strip() or None
    raw = (step.instruction or "").strip()
    specific = has_specific_name(name)

    if maneuver_type == "arrive":
        return ARRIVAL_TEXT

    if specific and modifier:
        if maneuver_type == "turn":
            return f"Turn {modifier} onto {name}."
        if maneuver_type in ("fork", "merge"):
            return f"Keep {modifier} onto {name}."
        if maneuver_type == "depart":
            return f"Head {modifier} on {name}."

    if specific and raw and name.lower() not in raw.lower():
        return to_sentence(f"{raw} onto {name}")

    return to_sentence(raw or "Continue")


def pace_duration_s(distance_m: float, pace_min_per_km: float = config.RUN_PACE_MIN_PER_KM) -> float:
    return distance_m / 1000 * pace_min_per_km * 60


def to_final_steps(route: RoutedResult, pace_min_per_km: float = config.RUN_PACE_MIN_PER_KM) -> List[FinalStep]:
    """Word every raw step; durations come from pace, not from the provider."""
    return [
        FinalStep(
            instruction=format_instruction(step),
            distance_m=max(step.distance_m or 0.0, 0.0),
            duration_s=pace_duration_s(max(step.distance_m or 0.0, 0.0), pace_min_per_km),
            location=step.location,
            type=step.type,
            modifier=step.modifier,
            name=step.name,
        )
        for step in route.steps
    ]


def _keep_step(step: FinalStep) -> bool:
    """Filter rule for an interior step."""
    if step.type in ("depart", "arrive"):
        return False  # waypoint boundary noise

    if step.distance_m < MIN_STEP_M:
        return False

    core = is_core_maneuver(step.type)
    specific = has_specific_name(step.name)
    generic = bool(step.name) and is_generic_path_name(step.name)

    if specific and core and step.distance_m >= NAMED_CORE_MIN_M:
        return True
    if generic and step.distance_m < GENERIC_NAME_MIN_M:
        return False
    if not specific and core and step.distance_m < UNNAMED_CORE_MIN_M:
        return False
    if not core and step.distance_m < NON_CORE_MIN_M:
        return False
    return True


def filter_steps(steps: Sequence[FinalStep]) -> List[FinalStep]:
    last_idx = len(steps) - 1
    return [step for idx, step in enumerate(steps)
            if idx == 0 or idx == last_idx or _keep_step(step)]


def _direction(modifier: Optional[str]) -> Optional[str]:
    if not modifier:
        return None
    if "left" in modifier:
        return "left"
    if "right" in modifier:
        return "right"
    return None


def _same_instruction(a: FinalStep, b: FinalStep) -> bool:
    return (a.instruction.strip().lower() == b.instruction.strip().lower()
            and a.type == b.type
            and a.modifier == b.modifier)


def _is_opposite_zigzag(prev: FinalStep, curr: FinalStep) -> bool:
    prev_dir = _direction(prev.modifier)
    curr_dir = _direction(curr.modifier)
    return (prev.type == "turn"
            and curr.type == "turn"
            and prev_dir is not None
            and curr_dir is not None
            and prev_dir != curr_dir
            and prev.distance_m <= ZIGZAG_MAX_M
            and curr.distance_m <= ZIGZAG_MAX_M
            and is_generic_path_name(prev.name)
            and is_generic_path_name(curr.name))


def merge_steps(steps: Sequence[FinalStep]) -> List[FinalStep]:
    merged: List[FinalStep] = []
    for step in steps:
        prev = merged[-1] if merged else None

        if prev is not None and _same_instruction(prev, step):
            prev.distance_m += step.distance_m
            prev.duration_s += step.duration_s
            continue

        # Tiny left/right zig-zags on unnamed connectors read as going straight
        if prev is not None and _is_opposite_zigzag(prev, step):
            prev.distance_m += step.distance_m
            prev.duration_s += step.duration_s
            prev.instruction = ZIGZAG_TEXT
            prev.type = None
            prev.modifier = None
            prev.name = None
            continue

        merged.append(replace(step))

    return merged


def simplify_steps(steps: Sequence[FinalStep]) -> List[FinalStep]:
    """
    Drop noise steps and fold redundant ones together.

    The first and last step always survive filtering. Input steps are never modified;
    lists of two or fewer steps come back unchanged.
    """
    if len(steps) <= 2:
        return list(steps)
    return merge_steps(filter_steps(steps))
