"""
EnviroWatch — API Server (Transport Layer)
===========================================
FastAPI transport layer. ZERO computation.
  - Validates coordinates
  - Pulls raw readings from the live data provider
  - Hands readings to the dashboard engine (per-city stabilised sessions)
  - Returns JSON snapshots for the dashboard and report views
"""
import logging
import os
import sys
from datetime import datetime
from typing import Dict, Literal, Optional, Union

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config.settings import (
    SERVER_HOST, SERVER_PORT, RISK_COLORS, THRESHOLD_PROFILE,
    MIN_CONSECUTIVE, MAX_WAIT_MS, READY_MIN_KNOWN, FIRE_RADIUS_KM, MAX_SESSIONS,
)
from dashboard_engine import SessionRegistry, build_raw_bands, serialize_bands
from providers.live import LiveDataProvider
from risk_model.actions import INDICATORS

logger = logging.getLogger(__name__)

app = FastAPI(title="EnviroWatch", version="1.0")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"422 Error! URL: {request.url}")
    logger.error(f"Errors: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": exc.errors()})

# ═══════════════════════════════════════════════════════════════════════════
# GLOBAL STATE — provider + per-city sessions (NOT computed here)
# ═══════════════════════════════════════════════════════════════════════════
provider = LiveDataProvider()
sessions = SessionRegistry(max_sessions=MAX_SESSIONS)
SERVER_STARTED_AT = datetime.now().isoformat()

RawValue = Optional[Union[float, str]]


# ═══════════════════════════════════════════════════════════════════════════
# REQUEST MODELS
# ═══════════════════════════════════════════════════════════════════════════
class Readings(BaseModel):
    aqi: RawValue = None
    pm25: RawValue = None
    temp: RawValue = None
    temp_unit: str = "C"
    rh: RawValue = None
    wind_speed_ms: RawValue = None
    wind_gust_ms: RawValue = None
    rain1h: RawValue = None
    rain24h: RawValue = None
    rain7d: RawValue = None
    flood_intensity3h: RawValue = None
    fire_events: RawValue = None
    vpd: RawValue = None
    water_gauge: RawValue = None
    water_index_pct: RawValue = None
    water_level_label: Optional[str] = None


class Band(BaseModel):
    level: Literal["low", "medium", "high", "na"]
    label: Optional[str] = None
    color: Optional[str] = None


class StabilizeRequest(BaseModel):
    session_id: str
    sample: Dict[str, Band]


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════
def _check_coords(lat: Optional[float], lng: Optional[float]) -> Optional[JSONResponse]:
    """None when coordinates are usable, else the error response."""
    if lat is None or lng is None:
        return JSONResponse(content={"error": "lat/lng required"}, status_code=400)
    if not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
        return JSONResponse(content={"error": f"Invalid coordinates: {lat},{lng}"}, status_code=400)
    return None


# ═══════════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════
@app.get("/health")
async def health_check():
    return JSONResponse(content={
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "started_at": SERVER_STARTED_AT,
        "sessions": len(sessions),
        "cache_entries": len(provider.cache),
    })


@app.get("/api/config")
async def get_config():
    """Palette, indicator titles and stability settings for the frontend."""
    return JSONResponse(content={
        "profile": THRESHOLD_PROFILE,
        "colors": RISK_COLORS,
        "indicators": INDICATORS,
        "stability": {
            "min_consecutive": MIN_CONSECUTIVE,
            "max_wait_ms": MAX_WAIT_MS,
            "ready_min_known": READY_MIN_KNOWN,
        },
        "fire_radius_km": FIRE_RADIUS_KM,
    })


@app.get("/api/live")
def get_live(lat: Optional[float] = None, lng: Optional[float] = None):
    """Raw city readings, unclassified."""
    error = _check_coords(lat, lng)
    if error:
        return error
    readings = provider.fetch_live(lat, lng)
    return JSONResponse(content=readings, headers={"Cache-Control": "no-store"})


@app.get("/api/dashboard")
def get_dashboard(lat: Optional[float] = None, lng: Optional[float] = None):
    """Fetch readings and fold them into this city's stabilised session."""
    error = _check_coords(lat, lng)
    if error:
        return error
    readings = provider.fetch_live(lat, lng)
    session = sessions.get(SessionRegistry.city_key(lat, lng))
    snapshot = session.refresh(readings)
    snapshot["readings"] = readings
    return JSONResponse(content=snapshot, headers={"Cache-Control": "no-store"})


@app.post("/api/classify")
async def classify(readings: Readings):
    """Raw bands for caller-supplied readings. No stabilisation, no network."""
    bands = build_raw_bands(readings.model_dump())
    return JSONResponse(content={"bands": serialize_bands(bands)})


@app.post("/api/stabilize")
async def stabilize(req: StabilizeRequest):
    """Thread a caller-computed sample through the caller's session filter."""
    if not req.session_id.strip():
        return JSONResponse(content={"error": "session_id required"}, status_code=400)
    session = sessions.get(f"client:{req.session_id}")
    sample = {key: band.model_dump() for key, band in req.sample.items()}
    return JSONResponse(content=session.apply(sample))


@app.delete("/api/session/{session_id}")
async def drop_session(session_id: str):
    if not sessions.drop(f"client:{session_id}"):
        return JSONResponse(content={"error": f"Unknown session: {session_id}"}, status_code=404)
    return JSONResponse(content={"status": "dropped", "session_id": session_id})


# ═══════════════════════════════════════════════════════════════════════════
# STARTUP
# ═══════════════════════════════════════════════════════════════════════════
@app.on_event("startup")
async def startup():
    print("═" * 55)
    print("  EnviroWatch — API Server v1.0 (Transport Only)")
    print("═" * 55)
    print(f"  Dashboard API   : http://localhost:{SERVER_PORT}/api/dashboard")
    print(f"  Threshold set   : {THRESHOLD_PROFILE}")
    print(f"  Stability       : {MIN_CONSECUTIVE}x confirm / {MAX_WAIT_MS} ms max wait")
    print(f"  Session limit   : {MAX_SESSIONS}")
    print("═" * 55)


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = int(os.environ.get("PORT", SERVER_PORT))
    uvicorn.run("api.server:app", host=SERVER_HOST, port=port, reload=False)
