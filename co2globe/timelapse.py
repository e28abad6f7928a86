"""
Timelapse playback over the year range.

A running timelapse is a TimelapsePlan: the ordered (year, offset) steps
plus one terminal step, an index and a cancelled flag. One timer handle is
armed at a time; each fire advances the plan by a step and arms the next.
Stopping cancels that handle and flags the plan, so no later step of it
can run. Cancelling does not preempt a callback that is already running.

All mutating calls belong on the loop thread, since they arm loop timers.
The lock makes them re-entrant, so a listener may call stop() or
change_year() from inside a notification, and lets other threads read
snapshot() consistently.

Listeners receive (state, event) where state is a copy of GlobeState and
event is one of: "start", "tick", "finish", "stop", "year",
"emissions_type", "init".
"""
import asyncio
import numbers
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Tuple

from .display import altitude_function, flat_altitude
from .logger import get_logger
from .schema import (
    CO2,
    DEFAULT_YEAR,
    INITIAL_RENDER_DELAY,
    INITIAL_TRANSITION,
    MAX_YEAR,
    MIN_YEAR,
    SHORT_TRANSITION,
    TIMELAPSE_INTERVAL,
    get_emissions_type,
)


@dataclass
class GlobeState:
    year: int
    emissions_type: str
    # milliseconds
    transition_duration: int = INITIAL_TRANSITION
    altitude: Callable = flat_altitude
    is_playing: bool = False


@dataclass
class TimelapsePlan:
    # (year, offset in seconds); year None marks the terminal step
    steps: List[Tuple[Optional[int], float]]
    index: int = 0
    cancelled: bool = False
    started_at: float = 0.0
    years: List[int] = field(default_factory=list)

    @classmethod
    def build(cls, start_year: int, end_year: int, interval: int) -> "TimelapsePlan":
        step = interval / 1000.0
        years = list(range(start_year, end_year + 1))
        steps: List[Tuple[Optional[int], float]] = [(y, k * step) for k, y in enumerate(years)]
        steps.append((None, len(years) * step))
        return cls(steps=steps, years=years)

    @property
    def done(self) -> bool:
        return self.index >= len(self.steps)

    @property
    def remaining(self) -> int:
        return 0 if self.cancelled else len(self.steps) - self.index

    def next_step(self) -> Tuple[Optional[int], float]:
        return self.steps[self.index]


Listener = Callable[[GlobeState, str], None]


class TimelapseScheduler:
    def __init__(
        self,
        min_year: int = MIN_YEAR,
        max_year: int = MAX_YEAR,
        interval: int = TIMELAPSE_INTERVAL,
        year: int = DEFAULT_YEAR,
        emissions_type: str = CO2,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        if min_year > max_year:
            raise ValueError(f"min_year {min_year} is after max_year {max_year}")
        get_emissions_type(emissions_type)
        self.min_year = min_year
        self.max_year = max_year
        self.interval = interval
        self.state = GlobeState(year=self._clamp(year), emissions_type=emissions_type)
        self._loop = loop
        self._lock = threading.RLock()
        self._plan: Optional[TimelapsePlan] = None
        self._handle = None
        self._init_handle = None
        self._listeners: List[Listener] = []
        self.logger = get_logger()

    # ---------- listeners ----------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> GlobeState:
        with self._lock:
            return replace(self.state)

    def _notify(self, event: str) -> None:
        state = replace(self.state)
        for listener in list(self._listeners):
            listener(state, event)

    # ---------- helpers ----------

    @property
    def is_playing(self) -> bool:
        return self.state.is_playing

    @property
    def plan(self) -> Optional[TimelapsePlan]:
        return self._plan

    @property
    def pending_ticks(self) -> int:
        plan = self._plan
        return plan.remaining if plan is not None else 0

    def _get_loop(self):
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _clamp(self, year: int) -> int:
        return max(self.min_year, min(self.max_year, year))

    def _apply(self, year: int, emissions_type: str, transition: int) -> None:
        self.state.year = year
        self.state.emissions_type = emissions_type
        self.state.transition_duration = transition
        self.state.altitude = altitude_function(year, emissions_type)

    def _cancel_plan(self) -> int:
        """Flag the running plan and drop its armed handle; returns the steps it had left."""
        plan, self._plan = self._plan, None
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if plan is None:
            return 0
        left = plan.remaining
        plan.cancelled = True
        return left

    def _arm(self, plan: TimelapsePlan) -> None:
        _, offset = plan.next_step()
        self._handle = self._get_loop().call_at(plan.started_at + offset, self._fire, plan)

    # ---------- playback ----------

    def start(self) -> TimelapsePlan:
        with self._lock:
            loop = self._get_loop()
            self._cancel_plan()
            start_year = self.min_year if self.state.year == self.max_year else self.state.year
            plan = TimelapsePlan.build(start_year, self.max_year, self.interval)
            plan.started_at = loop.time()
            self._plan = plan
            self.state.is_playing = True
            self._arm(plan)
            self.logger.info(
                f"Timelapse started at {start_year} ({len(plan.years)} years, {self.interval} ms per tick)."
            )
            self._notify("start")
            return plan

    def _fire(self, plan: TimelapsePlan) -> None:
        with self._lock:
            if plan.cancelled or plan is not self._plan or plan.done:
                return
            year, _ = plan.next_step()
            plan.index += 1
            self._handle = None
            if year is None:
                self._plan = None
                self.state.is_playing = False
                self.logger.info("Timelapse finished.")
                self._notify("finish")
                return
            self._apply(year, self.state.emissions_type, self.interval)
            self._arm(plan)
            self.logger.debug(f"Timelapse tick {year}")
            self._notify("tick")

    def stop(self) -> int:
        with self._lock:
            cancelled = self._cancel_plan()
            was_playing = self.state.is_playing
            self.state.is_playing = False
            if was_playing:
                self.logger.info(f"Timelapse stopped at {self.state.year} ({cancelled} pending ticks cancelled).")
            self._notify("stop")
            return cancelled

    def toggle(self) -> bool:
        """Play when idle, stop when playing. Returns the new playing flag."""
        with self._lock:
            if self.state.is_playing:
                self.stop()
            else:
                self.start()
            return self.state.is_playing

    # ---------- interrupts ----------

    def change_year(self, year: int) -> None:
        if isinstance(year, bool) or not isinstance(year, numbers.Integral):
            raise ValueError(f"Year must be an integer, got {year!r}")
        with self._lock:
            self._cancel_plan()
            self.state.is_playing = False
            self._apply(self._clamp(int(year)), self.state.emissions_type, SHORT_TRANSITION)
            self._notify("year")

    def change_emissions_type(self, emissions_type: Optional[str]) -> None:
        # a toggle group reports None when the active button is clicked again
        if emissions_type is None:
            return
        get_emissions_type(emissions_type)
        with self._lock:
            self._cancel_plan()
            self.state.is_playing = False
            self._apply(self.state.year, emissions_type, SHORT_TRANSITION)
            self._notify("emissions_type")

    # ---------- startup ----------

    def apply_initial(self, state: GlobeState) -> None:
        with self._lock:
            self._apply(state.year, state.emissions_type, state.transition_duration)
            self._notify("init")

    def _deferred_init(self) -> None:
        self._init_handle = None
        self.apply_initial(self.snapshot())

    def defer_initial_render(self, delay: int = INITIAL_RENDER_DELAY) -> None:
        """After `delay` ms, apply the altitude for whatever year/type is current at that moment."""
        with self._lock:
            if self._init_handle is not None:
                self._init_handle.cancel()
            self._init_handle = self._get_loop().call_later(delay / 1000.0, self._deferred_init)

    def close(self) -> None:
        with self._lock:
            self._cancel_plan()
            self.state.is_playing = False
            if self._init_handle is not None:
                self._init_handle.cancel()
                self._init_handle = None
