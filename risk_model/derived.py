"""
EnviroWatch — Derived Quantities
Simple illustrative formulas used to prepare classifier inputs.
Unit conversion is explicit: the caller states the unit, nothing is guessed.
"""
import math

from risk_model.indicators import parse_number

EARTH_RADIUS_KM = 6371.0


def to_celsius(value, unit="C"):
    """Convert a temperature in C, F or K to °C. Unknown unit → None."""
    t = parse_number(value)
    if t is None or not isinstance(unit, str):
        return None
    u = unit.strip().upper().lstrip("°")
    if u == "C":
        return t
    if u == "F":
        return (t - 32) * 5 / 9
    if u == "K":
        return t - 273.15
    return None


def vpd_kpa(temp_c, rh):
    """
    Vapor pressure deficit (kPa) from air temperature and relative humidity.
    Tetens saturation pressure; rounded to 2 decimals, never negative.
    """
    t, h = parse_number(temp_c), parse_number(rh)
    if t is None or h is None:
        return None
    es = 0.6108 * math.exp((17.27 * t) / (t + 237.3))
    return round(max(0.0, es * (1 - h / 100)), 2)


def haversine_km(lat1, lng1, lat2, lng2):
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lam = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))
