from dataclasses import dataclass
from typing import Dict, List

MIN_YEAR = 1820
MAX_YEAR = 2020
DEFAULT_YEAR = 2020

# milliseconds
TIMELAPSE_INTERVAL = 500
SHORT_TRANSITION = 100
INITIAL_TRANSITION = 1000
INITIAL_RENDER_DELAY = 1000

ALTITUDE_FLOOR = 0.1
LOG_BASE = 3

# GeoJSON feature property keys
PROPS = {
	"iso_a2": "ISO_A2",
	"iso_a3": "ISO_A3",
	"name": "ADMIN",
	"raw": "CO2_RAW_DATA",
	"by_year": "CO2_DATA_BY_YEAR",
}

CO2 = "co2"
CO2_PER_CAPITA = "co2_per_capita"


@dataclass(frozen=True)
class EmissionsType:
	id: str
	name: str
	button_name: str
	coefficient: float
	use_log_scale: bool


EMISSIONS_TYPES: Dict[str, EmissionsType] = {
	CO2: EmissionsType(
		id=CO2,
		name="CO2 Emissions",
		button_name="Annual",
		coefficient=10e-2,
		use_log_scale=True,
	),
	CO2_PER_CAPITA: EmissionsType(
		id=CO2_PER_CAPITA,
		name="CO2 Emissions Per Capita",
		button_name="Per Capita",
		coefficient=7e-2,
		use_log_scale=False,
	),
}


def get_emissions_type(type_id: str) -> EmissionsType:
	try:
		return EMISSIONS_TYPES[type_id]
	except KeyError:
		raise KeyError(
			f"Unknown emissions type '{type_id}'. Expected one of {sorted(EMISSIONS_TYPES)}."
		) from None


# header candidates for wide (one column per year) emissions tables
CANDIDATES: Dict[str, List[str]] = {
	"iso_code": ["country_code", "iso_code", "iso3", "iso_a3", "code"],
	"country": ["country_name", "country", "name", "entity"],
}

NORMALIZE_MAP = str.maketrans({" ": "", "-": "", "_": "", "/": ""})


def normalize_header(s: str) -> str:
	return (s or "").strip().lower().translate(NORMALIZE_MAP)


def fuzzy_detect(header_row: List[str]) -> Dict[str, int]:
	norm_headers = [normalize_header(str(h)) for h in header_row]
	out: Dict[str, int] = {}
	for key, opts in CANDIDATES.items():
		opts_norm = [normalize_header(o) for o in opts]
		for idx, h in enumerate(norm_headers):
			if h in opts_norm:
				out[key] = idx
				break
	return out
