"""
EnviroWatch — Live Data Provider
=================================
Fetches raw city readings from public APIs. No classification here.
  - Open-Meteo forecast: temperature, humidity, wind (m/s), precipitation
  - Open-Meteo air quality: US AQI, PM2.5, NO2, O3
  - NASA FIRMS 24h CSV: active fire detections within FIRE_RADIUS_KM
Upstream failures degrade to None fields; nothing is raised to the caller.
"""
import csv
import io
import logging
import threading
import time
from collections import OrderedDict

import requests

from config.settings import (
    OPEN_METEO_FORECAST_URL, OPEN_METEO_AIR_URL, FIRMS_CSV_URLS,
    HTTP_TIMEOUT_SEC, FIRE_RADIUS_KM,
    WEATHER_CACHE_TTL_SEC, AIR_CACHE_TTL_SEC, FIRE_CACHE_TTL_SEC,
    COORD_CACHE_PRECISION, CACHE_MAX_ENTRIES,
)
from risk_model.derived import haversine_km, vpd_kpa
from risk_model.indicators import parse_number

logger = logging.getLogger(__name__)

FIRMS_CACHE_KEY = "firms:global24h"

EMPTY_AIR = {"aqi": None, "pm25": None, "no2": None, "o3": None}
EMPTY_WEATHER = {
    "temp": None, "rh": None,
    "wind_speed_ms": None, "wind_gust_ms": None,
    "rain1h": None, "rain24h": None, "rain7d": None,
    "flood_intensity3h": None, "vpd": None,
}


# ═══════════════════════════════════════════════════════════════════════════
# CACHE (explicit object, owned by whoever owns the provider)
# ═══════════════════════════════════════════════════════════════════════════
class TTLCache:
    """
    Small key → value cache with per-entry expiry.
    Expired entries are pruned on every write; beyond `maxsize` the oldest
    write is evicted.
    """

    def __init__(self, ttl_sec=300, maxsize=CACHE_MAX_ENTRIES, clock=time.monotonic):
        self.ttl_sec = ttl_sec
        self.maxsize = maxsize
        self._clock = clock
        self._data = OrderedDict()
        self._lock = threading.Lock()

    def _prune(self, now):
        expired = [k for k, (_, expiry) in self._data.items() if now > expiry]
        for k in expired:
            del self._data[k]

    def get(self, key):
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expiry = entry
            if self._clock() > expiry:
                del self._data[key]
                return None
            return value

    def set(self, key, value, ttl_sec=None):
        ttl = self.ttl_sec if ttl_sec is None else ttl_sec
        with self._lock:
            now = self._clock()
            self._prune(now)
            self._data.pop(key, None)
            self._data[key] = (value, now + ttl)
            while len(self._data) > self.maxsize:
                self._data.popitem(last=False)

    def clear(self):
        with self._lock:
            self._data.clear()

    def __len__(self):
        with self._lock:
            now = self._clock()
            return sum(1 for _, expiry in self._data.values() if now <= expiry)


def coord_key(prefix, lat, lng, precision=COORD_CACHE_PRECISION):
    return f"{prefix}:{lat:.{precision}f},{lng:.{precision}f}"


# ═══════════════════════════════════════════════════════════════════════════
# PARSERS (pure, testable without network)
# ═══════════════════════════════════════════════════════════════════════════
def _sum(values):
    return sum(v for v in (parse_number(x) for x in values) if v is not None)


def _current_hour_index(times, current_time):
    """Index of the last hourly slot not after `current_time` (ISO strings)."""
    if not times:
        return -1
    if not current_time:
        return len(times) - 1
    idx = -1
    for i, t in enumerate(times):
        if isinstance(t, str) and t <= current_time:
            idx = i
    return idx


def parse_weather(weather):
    """Open-Meteo forecast JSON → weather readings (°C, %, m/s, mm, kPa)."""
    out = dict(EMPTY_WEATHER)
    if not isinstance(weather, dict):
        return out

    current = weather.get("current") or {}
    hourly = weather.get("hourly") or {}
    daily = weather.get("daily") or {}

    out["temp"] = parse_number(current.get("temperature_2m"))
    out["rh"] = parse_number(current.get("relative_humidity_2m"))
    out["wind_speed_ms"] = parse_number(current.get("wind_speed_10m"))
    out["wind_gust_ms"] = parse_number(current.get("wind_gusts_10m"))
    out["rain1h"] = parse_number(current.get("precipitation"))

    now_idx = _current_hour_index(hourly.get("time") or [], current.get("time"))
    h_precip = hourly.get("precipitation") or []
    if h_precip and now_idx >= 0:
        upto = h_precip[: now_idx + 1]
        out["rain24h"] = round(_sum(upto[-24:]), 2)
        out["flood_intensity3h"] = round(_sum(upto[-3:]), 2)

    if out["wind_gust_ms"] is None:
        gusts = hourly.get("wind_gusts_10m") or []
        if gusts and 0 <= now_idx < len(gusts):
            out["wind_gust_ms"] = parse_number(gusts[now_idx])

    d_precip = daily.get("precipitation_sum") or []
    if d_precip:
        d_times = daily.get("time") or []
        today = (current.get("time") or "")[:10]
        if today and len(d_times) == len(d_precip):
            d_precip = [p for t, p in zip(d_times, d_precip) if t <= today]
        out["rain7d"] = round(_sum(d_precip[-7:]), 2)

    out["vpd"] = vpd_kpa(out["temp"], out["rh"])
    return out


def parse_air_quality(air):
    """Open-Meteo air-quality JSON → latest common hourly sample."""
    if not isinstance(air, dict):
        return dict(EMPTY_AIR)
    hourly = air.get("hourly") or {}
    series = {
        "aqi": hourly.get("us_aqi") or [],
        "pm25": hourly.get("pm2_5") or [],
        "no2": hourly.get("nitrogen_dioxide") or [],
        "o3": hourly.get("ozone") or [],
    }
    lengths = [len(v) for v in series.values() if v]
    if not lengths:
        return dict(EMPTY_AIR)
    idx = min(lengths) - 1
    return {k: (parse_number(v[idx]) if v else None) for k, v in series.items()}


def parse_csv(text):
    """FIRMS CSV text → list of row dicts."""
    if not text or not text.strip():
        return []
    return list(csv.DictReader(io.StringIO(text.strip())))


def summarise_fires(rows, lat, lng, radius_km=FIRE_RADIUS_KM):
    """Count detections within radius; nearest distance and latest acquisition date."""
    count = 0
    nearest_km = None
    last_date = None
    for row in rows:
        la, lo = parse_number(row.get("latitude")), parse_number(row.get("longitude"))
        if la is None or lo is None:
            continue
        d = haversine_km(lat, lng, la, lo)
        if d > radius_km:
            continue
        count += 1
        if nearest_km is None or d < nearest_km:
            nearest_km = d
        acq = row.get("acq_date")
        if acq and (last_date is None or acq > last_date):
            last_date = acq
    return {
        "count": count,
        "nearest_km": round(nearest_km, 1) if nearest_km is not None else None,
        "last_date": last_date,
    }


# ═══════════════════════════════════════════════════════════════════════════
# PROVIDER
# ═══════════════════════════════════════════════════════════════════════════
class LiveDataProvider:
    """Fetches and caches raw readings per coordinate."""

    def __init__(self, session=None, cache=None, timeout=HTTP_TIMEOUT_SEC):
        self.session = session or requests.Session()
        self.cache = cache if cache is not None else TTLCache(WEATHER_CACHE_TTL_SEC)
        self.timeout = timeout

    def _get(self, url, params=None):
        resp = self.session.get(url, params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp

    def fetch_weather(self, lat, lng):
        key = coord_key("wx", lat, lng)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        params = {
            "latitude": lat,
            "longitude": lng,
            "current": "temperature_2m,relative_humidity_2m,precipitation,wind_speed_10m,wind_gusts_10m",
            "hourly": "precipitation,wind_speed_10m,wind_gusts_10m",
            "daily": "precipitation_sum",
            "wind_speed_unit": "ms",
            "past_days": 7,
            "forecast_days": 1,
            "timezone": "auto",
        }
        try:
            out = parse_weather(self._get(OPEN_METEO_FORECAST_URL, params).json())
        except (requests.RequestException, ValueError) as e:
            logger.error(f"[Weather] fetch failed for {lat},{lng}: {e}")
            return dict(EMPTY_WEATHER)
        self.cache.set(key, out, WEATHER_CACHE_TTL_SEC)
        return out

    def fetch_air_quality(self, lat, lng):
        key = coord_key("aq", lat, lng)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        params = {
            "latitude": lat,
            "longitude": lng,
            "hourly": "us_aqi,pm2_5,nitrogen_dioxide,ozone",
            "past_days": 1,
            "timezone": "auto",
        }
        try:
            out = parse_air_quality(self._get(OPEN_METEO_AIR_URL, params).json())
        except (requests.RequestException, ValueError) as e:
            logger.error(f"[AQ] fetch failed for {lat},{lng}: {e}")
            return dict(EMPTY_AIR)
        self.cache.set(key, out, AIR_CACHE_TTL_SEC)
        return out

    def _firms_rows(self):
        """
        Parsed rows of the first FIRMS feed that answers, shared by every
        coordinate for FIRE_CACHE_TTL_SEC. None when no feed answers.
        """
        rows = self.cache.get(FIRMS_CACHE_KEY)
        if rows is not None:
            return rows
        for url in FIRMS_CSV_URLS:
            try:
                rows = parse_csv(self._get(url).text)
            except requests.RequestException as e:
                logger.warning(f"[Fire] feed failed {url}: {e}")
                continue
            if rows:
                logger.info(f"[Fire] {len(rows)} detections from {url}")
                self.cache.set(FIRMS_CACHE_KEY, rows, FIRE_CACHE_TTL_SEC)
                return rows
        return None

    def fetch_fire_summary(self, lat, lng):
        """Fire detections around one coordinate. None when no FIRMS feed answers."""
        rows = self._firms_rows()
        if rows is None:
            logger.error(f"[Fire] all FIRMS feeds failed for {lat},{lng}")
            return None
        return summarise_fires(rows, lat, lng)

    def fetch_live(self, lat, lng):
        """Combined raw readings for one city."""
        weather = self.fetch_weather(lat, lng)
        air = self.fetch_air_quality(lat, lng)
        fires = self.fetch_fire_summary(lat, lng)

        readings = {**air, **weather, "temp_unit": "C"}
        readings["fire_events"] = fires["count"] if fires else None
        readings["nearest_fire_km"] = fires["nearest_km"] if fires else None
        readings["last_fire_date"] = fires["last_date"] if fires else None
        # No reliable live water gauge source
        readings["water_index_pct"] = None
        readings["water_level_label"] = None
        logger.info(
            f"[Live] {lat:.3f},{lng:.3f} aqi={readings['aqi']} temp={readings['temp']} "
            f"rain24h={readings['rain24h']} fires={readings['fire_events']}"
        )
        return readings
