from enum import Enum
from typing import Any, Dict, Optional

from .config import Settings
from .display import color_function, format_label, renderable_features, SIDE_COLOR
from .io_utils import AssetsUnavailableError, load_assets
from .join import join_emissions
from .logger import get_logger
from .timelapse import Listener, TimelapseScheduler


class AssetStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    UNAVAILABLE = "unavailable"


class GlobeApp:
    """Holds the enriched countries and maps user input events onto the timelapse scheduler."""

    def __init__(self, settings: Settings, loop=None):
        self.settings = settings
        self.logger = get_logger()
        self.status = AssetStatus.LOADING
        self.error: Optional[str] = None
        self.countries: Dict[str, Any] = {"type": "FeatureCollection", "features": []}
        self.scheduler = TimelapseScheduler(
            min_year=settings.min_year,
            max_year=settings.max_year,
            interval=settings.interval,
            year=settings.max_year,
            loop=loop,
        )

    def load(self, defer_render: bool = True) -> AssetStatus:
        try:
            countries, co2_data = load_assets(self.settings.countries_path, self.settings.co2_path)
        except AssetsUnavailableError as e:
            self.status = AssetStatus.UNAVAILABLE
            self.error = str(e)
            self.logger.error(self.error)
            return self.status
        self.countries = join_emissions(countries, co2_data)
        self.status = AssetStatus.READY
        if defer_render:
            self.scheduler.defer_initial_render()
        return self.status

    def add_listener(self, listener: Listener) -> None:
        self.scheduler.add_listener(listener)

    # ---------- user input surface ----------

    def on_year_changed(self, year: int) -> None:
        self.scheduler.change_year(year)

    def on_emissions_type_changed(self, emissions_type: Optional[str]) -> None:
        self.scheduler.change_emissions_type(emissions_type)

    def on_play_pressed(self) -> None:
        self.scheduler.toggle()

    def on_stop_pressed(self) -> None:
        self.scheduler.stop()

    # ---------- rendering surface ----------

    def render_inputs(self) -> Dict[str, Any]:
        state = self.scheduler.snapshot()
        year, emissions_type = state.year, state.emissions_type

        def label(feat) -> str:
            return format_label(feat, year, emissions_type)

        return {
            "status": self.status.value,
            "error": self.error,
            "polygons": renderable_features(self.countries),
            "altitude": state.altitude,
            "cap_color": color_function(state.altitude),
            "side_color": SIDE_COLOR,
            "label": label,
            "transition_duration": state.transition_duration,
            "year": year,
            "emissions_type": emissions_type,
            "is_playing": state.is_playing,
        }

    def close(self) -> None:
        self.scheduler.close()
