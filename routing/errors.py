from typing import Optional


class RoutePlannerError(Exception):
    """Base class for loop planning errors."""
    pass


class InvalidInput(RoutePlannerError, ValueError):
    """Start coordinates or target distance are not usable."""
    pass


class RoutingServiceError(RoutePlannerError):
    """The routing service failed to answer, answered with an error, or answered with no route."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NoRouteFound(RoutePlannerError):
    """Every trial of the loop search failed to produce a route."""
    pass
