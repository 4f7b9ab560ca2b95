from dataclasses import dataclass, field, asdict
from typing import List, Optional, Tuple

from utils.geo import GeoPoint

LonLat = Tuple[float, float]


@dataclass
class RawStep:
    """One maneuver as reported by the routing service."""
    instruction: str = ""
    type: Optional[str] = None
    modifier: Optional[str] = None
    distance_m: float = 0.0
    duration_s: float = 0.0
    name: Optional[str] = None
    location: Optional[LonLat] = None


@dataclass
class RoutedResult:
    """The routing service's answer for one candidate loop."""
    coordinates: List[LonLat]
    distance_m: float
    duration_s: float
    legs: List[List[RawStep]] = field(default_factory=list)
    waypoints: Tuple[GeoPoint, ...] = ()

    @property
    def steps(self) -> List[RawStep]:
        return [step for leg in self.legs for step in leg]

    @property
    def distance_km(self) -> float:
        return self.distance_m / 1000


@dataclass(frozen=True)
class Score:
    route_km: float
    distance_diff_km: float
    smoothness_penalty_km: float
    overlap_penalty_km: float

    @property
    def total(self) -> float:
        return self.distance_diff_km + self.smoothness_penalty_km + self.overlap_penalty_km


@dataclass
class FinalStep:
    """A user-facing direction, possibly covering several raw maneuvers."""
    instruction: str
    distance_m: float
    duration_s: float
    location: Optional[LonLat] = None
    type: Optional[str] = None
    modifier: Optional[str] = None
    name: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PlannedRoute:
    """Winner of a loop search plus how much searching it took."""
    route: RoutedResult
    score: Score
    calls: int = 0
    failures: int = 0
    trials: int = 0
