from typing import Sequence

from utils.geo import GeoPoint

directions_to_gmaps = {
    "mapbox/walking": "walking",
    "mapbox/cycling": "bicycling",
    "foot": "walking",
    "walking": "walking",
    "bike": "bicycling",
    "cycling": "bicycling",
}


def generate_gmaps_route_url(
        waypoints: Sequence[GeoPoint],
        profile: str = "mapbox/walking",
) -> str:
    """Google Maps directions link through the loop's waypoints, start to start."""
    if profile not in directions_to_gmaps:
        raise ValueError(f"Unsupported profile '{profile}'")
    if len(waypoints) < 2:
        raise ValueError("At least two waypoints are required for a directions link.")

    gmaps_mode = directions_to_gmaps[profile]

    origin, *intermediate, destination = waypoints

    # Format for Google Maps
    url = (f"https://www.google.com/maps/dir/?api=1"
           f"&origin={origin.lat:.6f},{origin.lon:.6f}"
           f"&destination={destination.lat:.6f},{destination.lon:.6f}")

    waypoints_param = "|".join(f"{p.lat:.6f},{p.lon:.6f}" for p in intermediate)

    if waypoints_param:
        url += f"&waypoints={waypoints_param}"
    url += f"&travelmode={gmaps_mode}&dir_action=navigate"
    if gmaps_mode != "driving":
        url += "&avoid=highways"

    return url
