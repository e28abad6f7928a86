import os
from dataclasses import dataclass, replace

from dotenv import load_dotenv

from .schema import MIN_YEAR, MAX_YEAR, TIMELAPSE_INTERVAL


@dataclass
class Settings:
    countries_path: str = "data/countries.geojson"
    co2_path: str = "data/owid-co2-data.json"
    out_dir: str = "out"
    min_year: int = MIN_YEAR
    max_year: int = MAX_YEAR
    # milliseconds between timelapse ticks
    interval: int = TIMELAPSE_INTERVAL

    def __post_init__(self):
        if self.min_year > self.max_year:
            raise ValueError(f"MIN_YEAR ({self.min_year}) is after MAX_YEAR ({self.max_year}).")
        if self.interval <= 0:
            raise ValueError(f"TIMELAPSE_INTERVAL must be positive, got {self.interval}.")


def load_settings(dotenv: bool = True) -> Settings:
    if dotenv:
        load_dotenv()
    return Settings(
        countries_path=os.getenv("COUNTRIES_GEOJSON", "data/countries.geojson"),
        co2_path=os.getenv("CO2_JSON", "data/owid-co2-data.json"),
        out_dir=os.getenv("OUT_DIR", "out"),
        min_year=int(os.getenv("MIN_YEAR", str(MIN_YEAR))),
        max_year=int(os.getenv("MAX_YEAR", str(MAX_YEAR))),
        interval=int(os.getenv("TIMELAPSE_INTERVAL", str(TIMELAPSE_INTERVAL))),
    )


def with_overrides(settings: Settings, **changes) -> Settings:
    """Copy of settings with the non-None changes applied; re-runs validation."""
    return replace(settings, **{k: v for k, v in changes.items() if v is not None})
