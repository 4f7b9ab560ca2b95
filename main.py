import asyncio
import logging
import os
import sys
from typing import List, Optional, Tuple

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

import config
from route_generator import generate_loop_route
from routing.errors import InvalidInput, NoRouteFound

logging.basicConfig(
    stream=sys.stdout,
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("loop_route_api")

# --- FastAPI setup ---
app = FastAPI(title="Loop Route API", version="1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # change to your app domain(s) in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Serve GPX files as static files
os.makedirs(config.GPX_DIR, exist_ok=True)
app.mount("/gpx", StaticFiles(directory=config.GPX_DIR), name="gpx")

# --- Data Models ---
LatLon = Tuple[float, float]
LonLat = Tuple[float, float]


class RouteRequest(BaseModel):
    start: LatLon = Field(config.FALLBACK_START_LAT_LON, description="Loop start as [latitude, longitude]")
    target_distance_km: float = Field(..., description="Target loop length in kilometers")
    export_gpx: bool = Field(False, description="Also write a GPX file of the route")


class RouteGeometry(BaseModel):
    type: str = "LineString"
    coordinates: List[LonLat]


class RouteFeature(BaseModel):
    type: str = "Feature"
    properties: dict = Field(default_factory=dict)
    geometry: RouteGeometry


class StepOut(BaseModel):
    instruction: str
    distance_m: float
    duration_s: float
    location: Optional[LonLat] = None
    type: Optional[str] = None
    modifier: Optional[str] = None
    name: Optional[str] = None


class RouteResponse(BaseModel):
    geojson: RouteFeature = Field(..., description="Route polyline as a GeoJSON LineString feature")
    distance_m: float = Field(..., description="Total distance of the route in meters")
    duration_s: float = Field(..., description="Estimated duration at the configured running pace")
    steps: List[StepOut] = Field(..., description="Simplified turn-by-turn directions")
    summary: str = Field(..., description="Distance and time, e.g. '5.02 km • 30 min'")
    waypoints: List[LatLon] = Field(..., description="Loop waypoints sent to the routing service")
    gmaps_url: Optional[str] = Field(None, description="Google Maps URL of the loop")
    gpx_file_url: Optional[str] = Field(None, description="URL to download the GPX file")


def _run(start_lat: float, start_lon: float, target_km: float, export_gpx: bool = False) -> dict:
    try:
        return generate_loop_route(start_lat, start_lon, target_km, export_gpx=export_gpx)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoRouteFound:
        raise HTTPException(status_code=500, detail="Could not generate a route")
    except RuntimeError as e:
        logger.error("Route generation misconfigured: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


# --- API Endpoints ---
@app.get("/route", response_model=RouteResponse)
def route_endpoint(lat: float = Query(...), lng: float = Query(...), km: float = Query(...)):
    """Loop of about km kilometers starting and ending at (lat, lng)."""
    return _run(lat, lng, km)


@app.post("/generate-route", response_model=RouteResponse)
def generate_route_endpoint(req: RouteRequest):
    return _run(req.start[0], req.start[1], req.target_distance_km, export_gpx=req.export_gpx)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/probe")
async def probe():
    """Wake a self-hosted routing server without waiting for it."""
    async def wake_directions_server():
        try:
            async with httpx.AsyncClient(timeout=config.REQUEST_TIMEOUT_S) as client:
                await client.get(config.DIRECTIONS_HOST)
        except httpx.HTTPError as e:
            logger.warning("Routing server probe failed: %s", e)

    asyncio.create_task(wake_directions_server())
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", "8000")))
