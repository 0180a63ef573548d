"""
EnviroWatch — Recommended Actions
Per-indicator municipal actions for each risk level.
Every indicator must cover every RiskLevel; checked at import.
"""
from risk_model.indicators import RiskInfo, RiskLevel, UNKNOWN_INFO, risk_info
from risk_model.stability import is_info

LOW, MEDIUM, HIGH, NA = RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.NA

# band key -> display title (report order)
INDICATORS = {
    "rainInfo":    "Rain",
    "airInfo":     "Air Quality",
    "fireInfo":    "Fire",
    "floodInfo":   "Flood",
    "tempInfo":    "Heat/Temperature",
    "humidInfo":   "Humidity & Mold",
    "windInfo":    "Wind & Comfort",
    "landInfo":    "Land Health",
    "droughtInfo": "Drought",
    "waterInfo":   "Water Level",
}

_WATER_BASELINE = [
    "Integrate river/tide gauges to dashboard",
    "Maintain pumps & backup power",
    "Wayfinding for low-lying areas",
]

ACTIONS = {
    "rainInfo": {
        LOW:    ["Routine drain desilting", "Culvert inspections", "No-garbage-in-drain messaging"],
        MEDIUM: ["Pre-position pumps & sandbags", "Clear chokepoints within 6h", "SMS waterlogging alerts"],
        HIGH:   ["Deploy pumps; close underpasses", "Open shelters & evacuation routes",
                 "Suspend school in affected zones"],
        NA:     [],
    },
    "airInfo": {
        LOW:    ["Maintain low-emission transport rules", "Routine ambient monitoring",
                 "Enforce dust control at sites"],
        MEDIUM: ["Low Emission Zones near schools/hospitals",
                 "Replace diesel gensets with solar+storage at municipal sites",
                 "Real-time AQ displays; trees along traffic corridors"],
        HIGH:   ["Health alert + mask distribution (N95)", "Restrict/highly regulate traffic in hotspots",
                 "Suspend top-emitting industrial activity"],
        NA:     [],
    },
    "fireInfo": {
        LOW:    ["Community drills & hydrant mapping", "Maintain fire lanes", "Remove dead vegetation swiftly"],
        MEDIUM: ["Ban open burning during drought alerts", "Add watchtowers & signage",
                 "Increase patrols/enforcement"],
        HIGH:   ["Clear 30 m defensible space", "Stage water tankers & crews",
                 "Emergency alerts & evacuation readiness"],
        NA:     [],
    },
    "floodInfo": {
        LOW:    ["Maintain/update flood maps", "Inspect levees/embankments", "Keep outfalls unobstructed"],
        MEDIUM: ["Protect wetlands; retention parks", "Pre-position barriers & mobile pumps",
                 "Elevate power/telecom cabinets"],
        HIGH:   ["Activate red-zone evacuation", "Close underpasses/low crossings", "24/7 EOC & shelters active"],
        NA:     [],
    },
    "tempInfo": {
        LOW:    ["Expand cool roofs & shade canopy", "Maintain heat early-warning systems",
                 "Promote green courtyards"],
        MEDIUM: ["Shift outdoor work/school hours", "Open cooling centers at peak",
                 "Hydration stations at markets & hubs"],
        HIGH:   ["Activate heat emergency response", "Checks for vulnerable households",
                 "24/7 cooling & misting in hotspots"],
        NA:     [],
    },
    "humidInfo": {
        LOW:    ["Maintain ventilation systems", "Moisture guidance for households",
                 "Track RH complaints dashboard"],
        MEDIUM: ["Moisture audits (schools/clinics)", "Dehumidifier subsidies for hotspots",
                 "Repair roof/wall leaks quickly"],
        HIGH:   ["Temporary relocation for severe cases", "Rapid mold remediation teams",
                 "Ventilation retrofits in public housing"],
        NA:     [],
    },
    "windInfo": {
        LOW:    ["Plan ventilation corridors (prevailing wind)", "Shade trees on pedestrian spines",
                 "Orient seating for comfort"],
        MEDIUM: ["Windbreak rows near plazas", "Shielded bus stops in gusty districts",
                 "Adjust event layouts for wind flows"],
        HIGH:   ["Temporarily close high-wind plazas", "Install temporary barriers/netting",
                 "Postpone outdoor events if unsafe"],
        NA:     [],
    },
    "landInfo": {
        LOW:    ["Green vacant lots; micro-forests", "Mulch/compost for moisture retention",
                 "Plant native resilient species"],
        MEDIUM: ["Erosion control on bare slopes", "Rainwater harvesting for parks", "Targeted soil remediation"],
        HIGH:   ["Dust suppression & cover stockpiles", "Restrict earthworks in peak dust/wind",
                 "Emergency replanting degraded plots"],
        NA:     [],
    },
    "droughtInfo": {
        LOW:    ["Leak detection & repairs", "Water-efficient fixtures incentives", "Recharge pit upkeep & audits"],
        MEDIUM: ["Odd-even non-essential use", "Greywater & drip irrigation incentives",
                 "Tiered pricing to curb overuse"],
        HIGH:   ["Ration non-essential supply", "Tankers to critical zones", "Rehab borewells & new sources"],
        NA:     [],
    },
    "waterInfo": {
        LOW:    list(_WATER_BASELINE),
        MEDIUM: ["Elevate power/telecom cabinets", "Pre-position barriers at outfalls",
                 "Clear silt at key choke points"],
        HIGH:   ["Activate evacuation routes & signage", "Close underpasses/low bridges",
                 "Open shelters; coordinate relief"],
        NA:     list(_WATER_BASELINE),
    },
}


def _check_exhaustive():
    for key in INDICATORS:
        missing = set(RiskLevel) - set(ACTIONS.get(key, {}))
        if missing:
            raise RuntimeError(f"Actions for {key} missing levels: {sorted(m.value for m in missing)}")


_check_exhaustive()


def actions_for(indicator, level):
    """Action list for one indicator at one level. Unknown indicator → KeyError."""
    table = ACTIONS[indicator]
    try:
        lvl = RiskLevel(level)
    except ValueError:
        lvl = NA
    return list(table[lvl])


def _as_info(value):
    if not is_info(value):
        return UNKNOWN_INFO
    if not isinstance(value, RiskInfo):
        return risk_info(value["level"])
    return value


def display_bands(raw, committed):
    """
    Bands as shown to users: air quality always tracks the latest sample,
    wind tracks latest then committed, everything else is committed.
    """
    raw, committed = raw or {}, committed or {}
    shown = {}
    for key in INDICATORS:
        if key == "airInfo":
            value = raw.get(key)
        elif key == "windInfo":
            value = raw.get(key) if is_info(raw.get(key)) else committed.get(key)
        else:
            value = committed.get(key)
        shown[key] = _as_info(value)
    return shown


def build_action_plan(bands):
    """Ordered action plan rows for the report."""
    plan = []
    for key, title in INDICATORS.items():
        info = _as_info(bands.get(key))
        plan.append({
            "indicator": key,
            "title": title,
            "level": info.level.value,
            "label": info.label,
            "color": info.color,
            "actions": actions_for(key, info.level),
        })
    return plan
