"""
EnviroWatch — Dashboard Engine
===============================
ALL computation between the data provider and the transport layer.

Responsibilities:
  - Raw readings → ten raw indicator bands (recomputed every refresh)
  - Per-city stability filter → committed bands (debounced)
  - Display policy (air/wind track latest, rest committed)
  - Recommended action plan
  - Output JSON-ready dashboard snapshot
"""
import threading
from collections import OrderedDict
from datetime import datetime

from config.settings import COORD_CACHE_PRECISION, MAX_SESSIONS
from risk_model.actions import build_action_plan, display_bands
from risk_model.derived import to_celsius
from risk_model.indicators import (
    RiskInfo, aqi_level, temperature_level, humidity_level, wind_level,
    rain_level, flood_level, fire_level, land_health_level, drought_level,
    water_level_status,
)
from risk_model.stability import StabilityFilter, is_info


def _first(readings, *names):
    """First non-None value among alias field names."""
    for name in names:
        value = readings.get(name)
        if value is not None:
            return value
    return None


def build_raw_bands(readings):
    """
    Raw readings → {band key: RiskInfo}. Temperature is normalised to °C
    from the declared `temp_unit` (default C) before classification.
    """
    r = readings or {}
    temp_c = to_celsius(r.get("temp"), r.get("temp_unit") or "C")
    rh, vpd, rain7d = r.get("rh"), r.get("vpd"), r.get("rain7d")

    return {
        "airInfo": aqi_level(
            _first(r, "aqi", "aqi_pm25"),
            _first(r, "pm25", "pm2_5", "pm25_ugm3"),
        ),
        "rainInfo": rain_level(r.get("rain24h"), r.get("rain1h")),
        "floodInfo": flood_level(r.get("rain24h"), r.get("flood_intensity3h")),
        "fireInfo": fire_level(r.get("fire_events"), rh, vpd),
        "tempInfo": temperature_level(temp_c),
        "humidInfo": humidity_level(rh),
        "windInfo": wind_level(r.get("wind_speed_ms"), r.get("wind_gust_ms")),
        "landInfo": land_health_level(vpd, rain7d),
        "droughtInfo": drought_level(rain7d, vpd),
        "waterInfo": water_level_status(
            gauge=r.get("water_gauge"),
            index_pct=r.get("water_index_pct"),
            label=r.get("water_level_label"),
        ),
    }


def serialize_bands(bands):
    """RiskInfo values → plain dicts. Malformed entries are dropped."""
    out = {}
    for key, info in (bands or {}).items():
        if isinstance(info, RiskInfo):
            out[key] = info.as_dict()
        elif is_info(info):
            out[key] = {"level": info["level"], "label": info.get("label"), "color": info.get("color")}
    return out


class DashboardSession:
    """One city's view: a stability filter plus the latest raw sample."""

    def __init__(self, stability_filter=None):
        self.filter = stability_filter or StabilityFilter()
        self.raw = {}
        self.refreshes = 0

    def refresh(self, readings):
        return self.apply(build_raw_bands(readings))

    def apply(self, raw_bands):
        """Fold precomputed bands into the session and build the snapshot."""
        self.raw = dict(raw_bands or {})
        committed = self.filter.update(self.raw)
        self.refreshes += 1

        shown = display_bands(self.raw, committed)
        return {
            "raw": serialize_bands(self.raw),
            "committed": serialize_bands(committed),
            "display": serialize_bands(shown),
            "known": self.filter.known_count(),
            "ready": self.filter.ready,
            "actions": build_action_plan(shown),
            "refreshes": self.refreshes,
            "timestamp": datetime.now().isoformat(),
        }


class SessionRegistry:
    """Per-key sessions, least recently used evicted beyond `max_sessions`."""

    def __init__(self, max_sessions=MAX_SESSIONS, factory=DashboardSession):
        self.max_sessions = max_sessions
        self._factory = factory
        self._sessions = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def city_key(lat, lng):
        return f"{lat:.{COORD_CACHE_PRECISION}f},{lng:.{COORD_CACHE_PRECISION}f}"

    def get(self, key):
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = self._factory()
                self._sessions[key] = session
            self._sessions.move_to_end(key)
            while len(self._sessions) > self.max_sessions:
                self._sessions.popitem(last=False)
            return session

    def drop(self, key):
        with self._lock:
            return self._sessions.pop(key, None) is not None

    def __contains__(self, key):
        return key in self._sessions

    def __len__(self):
        return len(self._sessions)
