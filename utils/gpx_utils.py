import os
import uuid
from typing import Sequence

import gpxpy
import gpxpy.gpx


def create_gpx_file(route_coords: Sequence[Sequence[float]], output_dir: str = "gpx",
                    name: str = "Loop route") -> str:
    """
    Create a GPX file from a list of [lon, lat] pairs and return its file path.
    """
    if not route_coords:
        raise ValueError("Cannot write a GPX track without coordinates.")

    # Ensure output directory exists
    os.makedirs(output_dir, exist_ok=True)

    # Create GPX structure
    gpx = gpxpy.gpx.GPX()
    gpx_track = gpxpy.gpx.GPXTrack(name=name)
    gpx.tracks.append(gpx_track)
    gpx_segment = gpxpy.gpx.GPXTrackSegment()
    gpx_track.segments.append(gpx_segment)

    for lon, lat in (c[:2] for c in route_coords):
        gpx_segment.points.append(gpxpy.gpx.GPXTrackPoint(lat, lon))

    # Generate unique filename
    filename = f"route_{uuid.uuid4().hex[:8]}.gpx"
    filepath = os.path.join(output_dir, filename)

    with open(filepath, "w", encoding="utf-8") as f:
        f.write(gpx.to_xml())

    return filepath
