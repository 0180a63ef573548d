"""
EnviroWatch — Indicator Classifier
Maps raw, possibly missing or non-numeric readings to a Low/Medium/High band.
Every function is total: unparseable input yields the "na" band, never an error.
"""
import math
from enum import Enum
from typing import NamedTuple, Optional

from config.settings import (
    RISK_COLORS, UNKNOWN_LABEL,
    AQI_BANDS, PM25_BREAKPOINTS, AQI_MAX,
    TEMPERATURE_BANDS_C, HUMIDITY_BANDS_PCT, WIND_BANDS_MS,
    RAIN_THRESHOLDS, FLOOD_THRESHOLDS,
    FIRE_EVENT_HIGH_MIN, FIRE_DRYNESS,
    LAND_HEALTH, DROUGHT,
    WATER_GAUGE_BANDS, WATER_INDEX_BANDS_PCT,
)


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    NA = "na"


class RiskInfo(NamedTuple):
    level: RiskLevel
    label: str
    color: str

    def as_dict(self):
        return {"level": self.level.value, "label": self.label, "color": self.color}


def risk_info(level) -> RiskInfo:
    """Wrap a level into {level, label, color}. Anything unrecognised is "na"."""
    try:
        lvl = RiskLevel(level) if level else RiskLevel.NA
    except ValueError:
        lvl = RiskLevel.NA
    if lvl is RiskLevel.NA:
        return RiskInfo(lvl, UNKNOWN_LABEL, RISK_COLORS["na"])
    return RiskInfo(lvl, lvl.value.capitalize(), RISK_COLORS[lvl.value])


UNKNOWN_INFO = risk_info(RiskLevel.NA)


def parse_number(value) -> Optional[float]:
    """Coerce a number or numeric string to a finite float. None otherwise."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def _banded(value, bands):
    """Inclusive upper-bound banding: <= low_max → low, <= medium_max → medium."""
    if value is None:
        return UNKNOWN_INFO
    if value <= bands["low_max"]:
        return risk_info(RiskLevel.LOW)
    if value <= bands["medium_max"]:
        return risk_info(RiskLevel.MEDIUM)
    return risk_info(RiskLevel.HIGH)


# ──────────────────────────────────────────────────────────────────────────────
# AIR QUALITY (US EPA)
# ──────────────────────────────────────────────────────────────────────────────
def pm25_to_aqi(pm25) -> Optional[int]:
    """
    Convert a PM2.5 concentration (µg/m³) to US AQI via the 24-hour
    breakpoint table. Concentrations are truncated to 0.1 µg/m³ first.
    Above the top breakpoint the index clamps to 500.
    """
    conc = parse_number(pm25)
    if conc is None or conc < 0:
        return None
    conc = math.floor(round(conc * 10, 6)) / 10
    for c_lo, c_hi, a_lo, a_hi in PM25_BREAKPOINTS:
        if c_lo <= conc <= c_hi:
            return int(round((a_hi - a_lo) / (c_hi - c_lo) * (conc - c_lo) + a_lo))
    return AQI_MAX


def aqi_level(aqi, pm25=None) -> RiskInfo:
    """
    Worst of the reported AQI and the PM2.5-derived AQI.
    A single bad signal is never hidden by a better one.
    """
    candidates = [v for v in (parse_number(aqi), pm25_to_aqi(pm25)) if v is not None]
    if not candidates:
        return UNKNOWN_INFO
    return _banded(max(candidates), AQI_BANDS)


# ──────────────────────────────────────────────────────────────────────────────
# TEMPERATURE / HUMIDITY / WIND
# ──────────────────────────────────────────────────────────────────────────────
def temperature_level(temp_c) -> RiskInfo:
    """Temperature in °C. Unit conversion happens before this point."""
    return _banded(parse_number(temp_c), TEMPERATURE_BANDS_C)


def humidity_level(rh) -> RiskInfo:
    return _banded(parse_number(rh), HUMIDITY_BANDS_PCT)


def wind_level(speed, gust=None) -> RiskInfo:
    """Gust-first: the gust reading wins whenever it parses."""
    g = parse_number(gust)
    return _banded(g if g is not None else parse_number(speed), WIND_BANDS_MS)


# ──────────────────────────────────────────────────────────────────────────────
# RAIN / FLOOD
# ──────────────────────────────────────────────────────────────────────────────
def rain_level(last24h, last1h=None) -> RiskInfo:
    r24, r1 = parse_number(last24h), parse_number(last1h)
    if r24 is None and r1 is None:
        return UNKNOWN_INFO
    r24, r1 = r24 or 0.0, r1 or 0.0

    high, medium = RAIN_THRESHOLDS["high"], RAIN_THRESHOLDS["medium"]
    if r1 >= high["last1h"] or r24 >= high["last24h"]:
        return risk_info(RiskLevel.HIGH)
    if r1 >= medium["last1h"] or r24 >= medium["last24h"]:
        return risk_info(RiskLevel.MEDIUM)
    return risk_info(RiskLevel.LOW)


def flood_level(last24h, intensity3h=None) -> RiskInfo:
    r24, r3 = parse_number(last24h), parse_number(intensity3h)
    if r24 is None and r3 is None:
        return UNKNOWN_INFO
    r24, r3 = r24 or 0.0, r3 or 0.0

    high, medium = FLOOD_THRESHOLDS["high"], FLOOD_THRESHOLDS["medium"]
    if r3 >= high["intensity3h"] or r24 >= high["last24h"]:
        return risk_info(RiskLevel.HIGH)
    if r3 >= medium["intensity3h"] or r24 >= medium["last24h"]:
        return risk_info(RiskLevel.MEDIUM)
    return risk_info(RiskLevel.LOW)


# ──────────────────────────────────────────────────────────────────────────────
# FIRE (event count first, dryness fallback)
# ──────────────────────────────────────────────────────────────────────────────
def fire_level(active_event_count, rh=None, vpd=None) -> RiskInfo:
    """
    Active wildfire detections within the fixed search radius decide the band.
    Without a count, fall back to relative humidity and VPD.
    """
    events = parse_number(active_event_count)
    if events is not None:
        if events <= 0:
            return risk_info(RiskLevel.LOW)
        if events < FIRE_EVENT_HIGH_MIN:
            return risk_info(RiskLevel.MEDIUM)
        return risk_info(RiskLevel.HIGH)

    h, v = parse_number(rh), parse_number(vpd)
    if h is None and v is None:
        return UNKNOWN_INFO

    high, medium = FIRE_DRYNESS["high"], FIRE_DRYNESS["medium"]
    if (v is not None and v > high["vpd_gt"]) or (h is not None and h < high["rh_lt"]):
        return risk_info(RiskLevel.HIGH)
    if (v is not None and v >= medium["vpd_gte"]) or (h is not None and h < medium["rh_lt"]):
        return risk_info(RiskLevel.MEDIUM)
    return risk_info(RiskLevel.LOW)


# ──────────────────────────────────────────────────────────────────────────────
# LAND HEALTH / DROUGHT (VPD + 7-day rain)
# ──────────────────────────────────────────────────────────────────────────────
def land_health_level(vpd, rain7d) -> RiskInfo:
    v, r = parse_number(vpd), parse_number(rain7d)
    if v is None and r is None:
        return UNKNOWN_INFO
    p = LAND_HEALTH

    if v is not None and (v >= p["high_vpd"] or (r is not None and r <= p["dry_rain7d"] and v >= p["dry_vpd"])):
        return risk_info(RiskLevel.HIGH)

    wet = r is not None and v is not None and r >= p["wet_rain7d"] and v < p["wet_vpd_lt"]
    stressed = (v is not None and v >= p["medium_vpd"]) or (r is not None and r <= p["medium_rain7d"])
    if stressed and not wet:
        return risk_info(RiskLevel.MEDIUM)
    return risk_info(RiskLevel.LOW)


def drought_level(rain7d, vpd) -> RiskInfo:
    r, v = parse_number(rain7d), parse_number(vpd)
    if r is None and v is None:
        return UNKNOWN_INFO
    p = DROUGHT

    if r is not None and v is not None:
        if (r <= p["high_rain7d"] and v >= p["high_vpd"]) or (r == 0 and v >= p["zero_rain_vpd"]):
            return risk_info(RiskLevel.HIGH)

    if (r is not None and r <= p["medium_rain7d"]) or (
        v is not None and p["medium_vpd_lo"] <= v < p["medium_vpd_hi"]
    ):
        return risk_info(RiskLevel.MEDIUM)
    return risk_info(RiskLevel.LOW)


# ──────────────────────────────────────────────────────────────────────────────
# WATER LEVEL
# ──────────────────────────────────────────────────────────────────────────────
_WATER_LABELS = {
    "low": RiskLevel.LOW,
    "moderate": RiskLevel.MEDIUM,
    "medium": RiskLevel.MEDIUM,
    "high": RiskLevel.HIGH,
}


def water_level_status(gauge=None, index_pct=None, label=None) -> RiskInfo:
    """
    No live source by default, so this is usually "na".
    Priority: explicit provider label, then percentage index, then gauge.
    """
    if isinstance(label, str) and label.strip().lower() in _WATER_LABELS:
        return risk_info(_WATER_LABELS[label.strip().lower()])

    pct = parse_number(index_pct)
    if pct is not None:
        if pct < WATER_INDEX_BANDS_PCT["low_lt"]:
            return risk_info(RiskLevel.LOW)
        if pct < WATER_INDEX_BANDS_PCT["medium_lt"]:
            return risk_info(RiskLevel.MEDIUM)
        return risk_info(RiskLevel.HIGH)

    reading = parse_number(gauge)
    if reading is None:
        return UNKNOWN_INFO
    if reading < WATER_GAUGE_BANDS["low_lt"]:
        return risk_info(RiskLevel.LOW)
    if reading < WATER_GAUGE_BANDS["medium_lt"]:
        return risk_info(RiskLevel.MEDIUM)
    return risk_info(RiskLevel.HIGH)
