import os
from typing import Any, Dict, Iterable, List, Optional

from .schema import PROPS
from .io_utils import ensure_output_dirs, write_text
from .logger import get_logger


def _iter_entries(emissions_dataset) -> Iterable[Any]:
    if isinstance(emissions_dataset, dict):
        return emissions_dataset.values()
    return emissions_dataset or []


def _to_year(v) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(float(v))
    except (TypeError, ValueError, OverflowError):
        return None


def build_code_index(emissions_dataset) -> Dict[str, List[dict]]:
    """ISO alpha-3 -> ordered year-records, skipping entries without a code."""
    index: Dict[str, List[dict]] = {}
    for entry in _iter_entries(emissions_dataset):
        if not isinstance(entry, dict):
            continue
        code = entry.get("iso_code")
        if not code:
            continue
        records = entry.get("data")
        index[code] = list(records) if isinstance(records, list) else []
    return index


def series_by_year(records: List[dict]) -> Dict[int, dict]:
    by_year: Dict[int, dict] = {}
    for record in records:
        if not isinstance(record, dict):
            continue
        year = _to_year(record.get("year"))
        if year is None:
            continue
        by_year[year] = record
    return by_year


def join_emissions(countries: Dict[str, Any], emissions_dataset) -> Dict[str, Any]:
    """
    Attach each country's emissions series to its GeoJSON feature.

    Every feature gets CO2_RAW_DATA (the ordered record list) and
    CO2_DATA_BY_YEAR (records keyed by int year); both are empty when the
    feature's ISO_A3 has no match. Entries without an iso_code, or whose
    code matches no feature, are dropped.

    The collection is mutated in place and returned.
    """
    logger = get_logger()
    index = build_code_index(emissions_dataset)

    matched = 0
    for feat in countries.get("features", []):
        props = feat.get("properties") or {}
        feat["properties"] = props
        code = props.get(PROPS["iso_a3"])
        records = index.get(code, []) if code else []
        props[PROPS["raw"]] = records
        props[PROPS["by_year"]] = series_by_year(records)
        if records:
            matched += 1

    logger.info(
        f"Joined emissions onto {len(countries.get('features', []))} features "
        f"({matched} with data, {len(index)} coded emissions entries)."
    )
    return countries


def coverage_summary(countries: Dict[str, Any], emissions_dataset) -> Dict[str, List[str]]:
    """Which feature codes matched, which have no data, and which emissions codes are orphans."""
    index = build_code_index(emissions_dataset)
    feature_codes = set()
    matched, unmatched = [], []
    for feat in countries.get("features", []):
        props = feat.get("properties") or {}
        code = props.get(PROPS["iso_a3"])
        label = code or props.get(PROPS["name"]) or "?"
        if code:
            feature_codes.add(code)
        if code and code in index:
            matched.append(code)
        else:
            unmatched.append(label)
    orphans = sorted(c for c in index if c not in feature_codes)
    return {"matched": sorted(matched), "unmatched": sorted(unmatched), "orphans": orphans}


def write_coverage_report(summary: Dict[str, List[str]], out_dir: str) -> str:
    logger = get_logger()
    ensure_output_dirs(out_dir)
    path = os.path.join(out_dir, "debug_coverage.txt")
    lines = [
        f"Features with emissions: {len(summary['matched']):,}",
        f"Features without emissions: {len(summary['unmatched']):,}",
        f"Orphan emissions codes: {len(summary['orphans']):,}",
        "",
        "Without emissions: " + ", ".join(summary["unmatched"]),
        "Orphans: " + ", ".join(summary["orphans"]),
    ]
    write_text(path, "\n".join(lines) + "\n")
    if summary["unmatched"]:
        logger.warning(f"{len(summary['unmatched'])} features have no emissions data; see {path}")
    return path
