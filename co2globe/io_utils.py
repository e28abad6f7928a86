import csv
import json
import os
import re
import time
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .schema import fuzzy_detect, CO2
from .logger import get_logger


class AssetsUnavailableError(RuntimeError):
    """Raised when a startup asset cannot be read or has the wrong shape."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Asset unavailable: {path} ({reason})")
        self.path = path
        self.reason = reason


def ensure_output_dirs(out_dir: str) -> None:
    os.makedirs(out_dir, exist_ok=True)


def timestamp_suffix() -> str:
    return time.strftime("%Y%m%d_%H%M%S")


def write_parquet(df: pd.DataFrame, path: str) -> None:
    df.to_parquet(path, engine="pyarrow", index=False)


def write_csv(df: pd.DataFrame, path: str) -> None:
    df.to_csv(path, index=False)


def write_excel(df: pd.DataFrame, path: str, sheet_name: str = "Sheet1") -> None:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)


def write_text(path: str, text: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def write_table(df: pd.DataFrame, path: str) -> str:
    """Write a table, picking the format from the file extension."""
    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        write_csv(df, path)
    elif ext == ".xlsx":
        write_excel(df, path, sheet_name="snapshot")
    elif ext == ".parquet":
        write_parquet(df, path)
    else:
        raise ValueError(f"Unsupported output format '{ext}' (use .csv, .xlsx or .parquet).")
    return path


def safe_overwrite(path: str) -> str:
    if not os.path.exists(path):
        return path
    root, ext = os.path.splitext(path)
    return f"{root}_{timestamp_suffix()}{ext}"


# ------------------ startup assets ------------------

def load_json(path: str) -> Any:
    if not path or not os.path.exists(path):
        raise AssetsUnavailableError(path, "file not found")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise AssetsUnavailableError(path, f"{type(e).__name__}: {e}") from e


def load_geometry(path: str) -> Dict[str, Any]:
    countries = load_json(path)
    if not isinstance(countries, dict) or not isinstance(countries.get("features"), list):
        raise AssetsUnavailableError(path, "expected a GeoJSON FeatureCollection with a 'features' list")
    for feat in countries["features"]:
        if isinstance(feat, dict) and feat.get("properties") is None:
            feat["properties"] = {}
    get_logger().info(f"Loaded {len(countries['features'])} country features from {path}")
    return countries


def load_emissions_dataset(path: str) -> Any:
    """Load the emissions dataset: OWID JSON, or a wide CSV with one column per year."""
    ext = os.path.splitext(path or "")[1].lower()
    if ext == ".csv":
        if not os.path.exists(path):
            raise AssetsUnavailableError(path, "file not found")
        try:
            data = load_wide_emissions_csv(path)
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise AssetsUnavailableError(path, f"{type(e).__name__}: {e}") from e
    else:
        data = load_json(path)
    if not isinstance(data, (dict, list)):
        raise AssetsUnavailableError(path, "expected a mapping or a list of country objects")
    get_logger().info(f"Loaded emissions for {len(data)} entries from {path}")
    return data


def load_assets(countries_path: str, co2_path: str) -> Tuple[Dict[str, Any], Any]:
    return load_geometry(countries_path), load_emissions_dataset(co2_path)


# ------------------ wide CSV (World Bank layout) ------------------

def _detect_header_and_year_cols(df: pd.DataFrame) -> Tuple[int, Dict[int, int]]:
    """Return (header_row_index, mapping of column position->year)."""
    header_row = None
    for i in range(min(len(df), 50)):
        year_like = 0
        for v in df.iloc[i].tolist():
            if re.fullmatch(r"\d{4}(\.0)?", str(v).strip()):
                year_like += 1
        if year_like >= 5:
            header_row = i
            break
    if header_row is None:
        raise ValueError("Unable to identify a header row with year columns.")
    col_to_year: Dict[int, int] = {}
    for pos, h in enumerate(df.iloc[header_row].tolist()):
        s = str(h).strip()
        if re.fullmatch(r"\d{4}(\.0)?", s):
            y = int(float(s))
            if 1700 <= y <= 2100:
                col_to_year[pos] = y
    return header_row, col_to_year


def _to_float(v) -> Optional[float]:
    if v is None:
        return None
    s = str(v).replace(",", "").strip()
    if not s or s.lower() in {"nan", "none", ".."}:
        return None
    try:
        return float(s)
    except ValueError:
        return None


def load_wide_emissions_csv(path: str, value_field: str = CO2) -> Dict[str, Dict[str, Any]]:
    """
    Parse a wide emissions CSV (metadata rows, then a header row with one
    column per year) into the same shape as the OWID JSON dataset:
    {code: {"iso_code": code, "country": name, "data": [{"year": y, value_field: v}, ...]}}.
    The country code column is detected from its header, falling back to
    the second column.
    """
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        width = max((len(r) for r in csv.reader(f)), default=0)
    if width == 0:
        raise ValueError("Empty CSV")
    raw = pd.read_csv(
        path, header=None, names=list(range(width)), dtype=str,
        encoding="utf-8-sig", skip_blank_lines=True,
    )
    header_row, col_to_year = _detect_header_and_year_cols(raw)
    headers = raw.iloc[header_row].fillna("").tolist()
    detected = fuzzy_detect(headers)
    code_col = detected.get("iso_code", 1)
    name_col = detected.get("country")

    out: Dict[str, Dict[str, Any]] = {}
    body = raw.iloc[header_row + 1 :]
    for _, row in body.iterrows():
        code = str(row[code_col]).strip() if pd.notna(row[code_col]) else ""
        if not code:
            continue
        records: List[Dict[str, Any]] = []
        for pos, year in sorted(col_to_year.items(), key=lambda kv: kv[1]):
            value = _to_float(row[pos])
            if value is None:
                continue
            records.append({"year": year, value_field: value})
        entry = {"iso_code": code, "data": records}
        if name_col is not None and pd.notna(row[name_col]):
            entry["country"] = str(row[name_col]).strip()
        out[code] = entry
    return out
