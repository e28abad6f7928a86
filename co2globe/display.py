"""
Per-feature display functions consumed by the globe: altitude, cap color
and hover label for a (year, emissions type) pair.

Missing data policy: a country with no series, no record for the year, or
a missing/non-numeric metric is "unknown" and renders at ALTITUDE_FLOOR.
Non-positive values on a log-scale type are treated the same way.
"""
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd
from matplotlib.colors import LinearSegmentedColormap, to_hex

from .schema import ALTITUDE_FLOOR, LOG_BASE, PROPS, get_emissions_type

Feature = Dict[str, Any]

CAP_COLORS = LinearSegmentedColormap.from_list(
    "co2_cap", [(1.0, 1.0, 0.0, 0.5), (1.0, 0.0, 0.0, 1.0)]
)
SIDE_COLOR = "rgba(128,128,128, 0.15)"
EXCLUDED_ISO_A2 = {"AQ"}


def lookup_emissions(feat: Feature, year: int, emissions_type: str, default: Optional[float] = None) -> Optional[float]:
    props = feat.get("properties") or {}
    by_year = props.get(PROPS["by_year"]) or {}
    record = by_year.get(year)
    if not isinstance(record, dict):
        return default
    value = record.get(emissions_type)
    if value is None or isinstance(value, bool):
        return default
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    if not np.isfinite(value):
        return default
    return value


def base_log(base: float, x: float) -> float:
    return float(np.log(x) / np.log(base))


def altitude_for(value: Optional[float], emissions_type: str) -> float:
    etype = get_emissions_type(emissions_type)
    if value is None:
        return ALTITUDE_FLOOR
    if etype.use_log_scale:
        if value <= 0:
            return ALTITUDE_FLOOR
        value = base_log(LOG_BASE, value)
    return max(ALTITUDE_FLOOR, value * etype.coefficient)


def altitude_function(year: int, emissions_type: str) -> Callable[[Feature], float]:
    get_emissions_type(emissions_type)

    def altitude(feat: Feature) -> float:
        return altitude_for(lookup_emissions(feat, year, emissions_type), emissions_type)

    altitude.year = year
    altitude.emissions_type = emissions_type
    return altitude


def flat_altitude(feat: Feature) -> float:
    return ALTITUDE_FLOOR


def cap_color(altitude: float) -> str:
    x = min(1.0, max(0.0, float(altitude)))
    return to_hex(CAP_COLORS(x), keep_alpha=True)


def color_function(altitude_fn: Callable[[Feature], float]) -> Callable[[Feature], str]:
    def color(feat: Feature) -> str:
        return cap_color(altitude_fn(feat))

    return color


def format_value(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    rounded = round(value, 3)
    return str(int(rounded)) if rounded.is_integer() else str(rounded)


def format_label(feat: Feature, year: int, emissions_type: str) -> str:
    props = feat.get("properties") or {}
    etype = get_emissions_type(emissions_type)
    value = lookup_emissions(feat, year, emissions_type)
    return (
        f"<b>{props.get(PROPS['name'], '')} ({props.get(PROPS['iso_a2'], '')})</b> <br />"
        f"{etype.name}: <i>{format_value(value)} (tons)</i>"
    )


def renderable_features(countries: Dict[str, Any]) -> List[Feature]:
    return [
        f for f in countries.get("features", [])
        if (f.get("properties") or {}).get(PROPS["iso_a2"]) not in EXCLUDED_ISO_A2
    ]


def snapshot_frame(countries: Dict[str, Any], year: int, emissions_type: str) -> pd.DataFrame:
    """One row per renderable feature with the value, altitude and color for a year."""
    altitude = altitude_function(year, emissions_type)
    rows = []
    for feat in renderable_features(countries):
        props = feat.get("properties") or {}
        value = lookup_emissions(feat, year, emissions_type)
        alt = altitude(feat)
        rows.append({
            "country": props.get(PROPS["name"]),
            "iso_a2": props.get(PROPS["iso_a2"]),
            "iso_a3": props.get(PROPS["iso_a3"]),
            "year": year,
            "emissions_type": emissions_type,
            "value": value,
            "altitude": alt,
            "color": cap_color(alt),
        })
    columns = ["country", "iso_a2", "iso_a3", "year", "emissions_type", "value", "altitude", "color"]
    df = pd.DataFrame(rows, columns=columns)
    return df.sort_values("altitude", ascending=False, kind="mergesort").reset_index(drop=True)
