import os

FALLBACK_START_LAT_LON = (49.2827, -123.1207)  # start point used when the caller has no location
RUN_PACE_MIN_PER_KM = 6  # assumed running pace for all duration estimates
MIN_TARGET_KM = 0.2  # requests must ask for more than this
MAX_TARGET_KM = 100  # ... and less than this

# routing service
DIRECTIONS_HOST = os.environ.get("DIRECTIONS_HOST", "https://api.mapbox.com")
DIRECTIONS_PROFILE = os.environ.get("DIRECTIONS_PROFILE", "mapbox/walking")
DIRECTIONS_API_STYLE = os.environ.get("DIRECTIONS_API_STYLE", "mapbox")  # mapbox or osrm
MAPBOX_SECRET_TOKEN = os.environ.get("MAPBOX_SECRET_TOKEN")
REQUEST_TIMEOUT_S = float(os.environ.get("REQUEST_TIMEOUT_S", "10"))

# loop search
BEARING_TRIES = 9  # number of loop shapes tried per request
TUNE_STEPS = 6  # max leg-length probes per shape
TOLERANCE_KM = 0.5  # stop tuning a shape once routed distance is this close
LEG_LOW_FRAC = 0.12  # leg length bracket, as a fraction of target distance
LEG_HIGH_FRAC = 0.45
LEG_START_FRAC = 0.22  # first probe sits below the midpoint, roads add distance
THREE_WAYPOINT_PROB = 0.7
MAX_WORKERS = int(os.environ.get("MAX_WORKERS", "1"))  # >1 runs shapes concurrently

# scoring
OVERLAP_WEIGHT_KM = 1.2
OVERLAP_GRID_DEG = 0.0002  # ~20 m
MIN_SEGMENT_M = 5
SHORT_TURN_M = 45
SHORT_TURN_PENALTY_KM = 0.12
TURN_PENALTY_KM = 0.015

GPX_DIR = os.environ.get("GPX_DIR", "gpx")
