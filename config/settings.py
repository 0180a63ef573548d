"""
EnviroWatch — Settings & Thresholds
====================================
Reference threshold profile. One profile, applied everywhere.
Environment overrides are read once at import (after .env is loaded).
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name, default):
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw.strip() else default
    except ValueError:
        return default


# ══════════════════════════════════════════════════════════════════════════════
# RISK PALETTE (level -> color token)
# ══════════════════════════════════════════════════════════════════════════════
RISK_COLORS = {
    "low":    "#10b981",   # green
    "medium": "#f59e0b",   # amber
    "high":   "#ef4444",   # red
    "na":     "#6b7280",   # gray
}
UNKNOWN_LABEL = "Unknown"
THRESHOLD_PROFILE = "reference"

# ══════════════════════════════════════════════════════════════════════════════
# AIR QUALITY (US AQI 0–500, PM2.5 µg/m³)
# ══════════════════════════════════════════════════════════════════════════════
AQI_BANDS = {"low_max": 50, "medium_max": 100}

# US EPA 24-hour PM2.5 breakpoints: (conc_lo, conc_hi, aqi_lo, aqi_hi)
PM25_BREAKPOINTS = [
    (0.0,   12.0,  0,   50),
    (12.1,  35.4,  51,  100),
    (35.5,  55.4,  101, 150),
    (55.5,  150.4, 151, 200),
    (150.5, 250.4, 201, 300),
    (250.5, 350.4, 301, 400),
    (350.5, 500.4, 401, 500),
]
AQI_MAX = 500

# ══════════════════════════════════════════════════════════════════════════════
# WEATHER INDICATORS (inclusive upper bounds)
# ══════════════════════════════════════════════════════════════════════════════
TEMPERATURE_BANDS_C = {"low_max": 12, "medium_max": 30}
HUMIDITY_BANDS_PCT  = {"low_max": 40, "medium_max": 65}
WIND_BANDS_MS       = {"low_max": 5,  "medium_max": 10}

# ══════════════════════════════════════════════════════════════════════════════
# RAIN & FLOOD (mm, "gte" thresholds)
# ══════════════════════════════════════════════════════════════════════════════
RAIN_THRESHOLDS = {
    "high":   {"last1h": 10, "last24h": 50},
    "medium": {"last1h": 2,  "last24h": 10},
}
FLOOD_THRESHOLDS = {
    "high":   {"intensity3h": 30, "last24h": 80},
    "medium": {"intensity3h": 10, "last24h": 30},
}

# ══════════════════════════════════════════════════════════════════════════════
# FIRE (active events within FIRE_RADIUS_KM, fallback on dryness)
# ══════════════════════════════════════════════════════════════════════════════
FIRE_RADIUS_KM = 250
FIRE_EVENT_HIGH_MIN = 5          # 1..4 events = medium, 0 = low
FIRE_DRYNESS = {
    "high":   {"vpd_gt": 2.2, "rh_lt": 25},
    "medium": {"vpd_gte": 1.2, "rh_lt": 35},
}

# ══════════════════════════════════════════════════════════════════════════════
# LAND HEALTH & DROUGHT (VPD kPa, 7-day rain mm)
# ══════════════════════════════════════════════════════════════════════════════
LAND_HEALTH = {
    "high_vpd": 2.0,
    "dry_rain7d": 1, "dry_vpd": 1.6,
    "medium_vpd": 1.0, "medium_rain7d": 5,
    "wet_rain7d": 10, "wet_vpd_lt": 1.2,
}
DROUGHT = {
    "high_rain7d": 2, "high_vpd": 2.0,
    "zero_rain_vpd": 1.6,
    "medium_rain7d": 10, "medium_vpd_lo": 1.2, "medium_vpd_hi": 2.0,
}

# ══════════════════════════════════════════════════════════════════════════════
# WATER LEVEL (gauge reading, or provider percentage index)
# ══════════════════════════════════════════════════════════════════════════════
WATER_GAUGE_BANDS = {"low_lt": 30, "medium_lt": 70}
WATER_INDEX_BANDS_PCT = {"low_lt": 30, "medium_lt": 45}

# ══════════════════════════════════════════════════════════════════════════════
# STABILITY FILTER (per-key debounce)
# ══════════════════════════════════════════════════════════════════════════════
MIN_CONSECUTIVE = _env_int("ENVIROWATCH_MIN_CONSECUTIVE", 2)
MAX_WAIT_MS     = _env_int("ENVIROWATCH_MAX_WAIT_MS", 30000)
READY_MIN_KNOWN = 3              # non-na keys before leaving "loading"

# ══════════════════════════════════════════════════════════════════════════════
# UPSTREAM DATA SOURCES
# ══════════════════════════════════════════════════════════════════════════════
OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
OPEN_METEO_AIR_URL      = "https://air-quality-api.open-meteo.com/v1/air-quality"
FIRMS_CSV_URLS = [
    "https://firms.modaps.eosdis.nasa.gov/active_fire/c7/csv/VIIRS_SNPP_NRT_Global_24h.csv",
    "https://firms.modaps.eosdis.nasa.gov/active_fire/c7/csv/VIIRS_NOAA20_NRT_Global_24h.csv",
    "https://firms.modaps.eosdis.nasa.gov/active_fire/c7/csv/MODIS_C6_1_Global_24h.csv",
]
HTTP_TIMEOUT_SEC = 10

# Cache TTLs (seconds)
WEATHER_CACHE_TTL_SEC = 5 * 60
AIR_CACHE_TTL_SEC     = 10 * 60
FIRE_CACHE_TTL_SEC    = 30 * 60
COORD_CACHE_PRECISION = 3        # decimals used in cache / session keys
CACHE_MAX_ENTRIES     = 512

# ══════════════════════════════════════════════════════════════════════════════
# SERVER
# ══════════════════════════════════════════════════════════════════════════════
SERVER_HOST  = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT  = _env_int("SERVER_PORT", 8000)
MAX_SESSIONS = 64
