"""Simulated clock — accelerated time derived from a real-time base.

  now = start_instant + (real_now − real_start) × speed_multiplier

Ticks fire on a fixed *real* interval (``polling_interval_ms``); the
multiplier only changes how much simulated time passes between two ticks:

  simulated_step = polling_interval × speed_multiplier

The real-time source is injectable so tests (and replays) can drive the
clock with fixed instants instead of the wall clock.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from pile_simulator.config.clock import ClockConfig

RealTimeSource = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SimulatedClock:
    """Read-only view of simulated time, shared by every component that needs ``now()``.

    Parameters
    ----------
    config : ClockConfig
        Zone, speed multiplier, polling interval and optional explicit start.
    real_time : callable
        Returns the current real instant (timezone-aware).  Defaults to the wall clock.
    """

    def __init__(self, config: ClockConfig, real_time: RealTimeSource = utc_now) -> None:
        self._config = config
        self._zone = config.zone
        self._real_time = real_time
        self._real_start = real_time()
        start = config.start_time if config.start_time is not None else self._real_start
        self._start_instant = start.astimezone(timezone.utc)

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    @property
    def speed_multiplier(self) -> float:
        return self._config.speed_multiplier

    @property
    def start_instant(self) -> datetime:
        """Simulated instant at which the clock was created, in the configured zone."""
        return self._start_instant.astimezone(self._zone)

    @property
    def tick_interval(self) -> timedelta:
        """Real time between two ticks."""
        return timedelta(milliseconds=self._config.polling_interval_ms)

    @property
    def simulated_step(self) -> timedelta:
        """Simulated time that elapses between two ticks."""
        return self.tick_interval * self._config.speed_multiplier

    def now(self) -> datetime:
        """Current simulated instant, rendered in the configured zone."""
        elapsed = self._real_time() - self._real_start
        return (self._start_instant + elapsed * self._config.speed_multiplier).astimezone(self._zone)

    def to_real_seconds(self, simulated: timedelta) -> float:
        """Real seconds needed for ``simulated`` to elapse on this clock."""
        return simulated.total_seconds() / self._config.speed_multiplier
