"""Shared test fixtures — a fake real-time source, the default tariff and a pile factory."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from pile_simulator.config import ClockConfig, PileConfig, PriceFile
from pile_simulator.engine.clock import SimulatedClock
from pile_simulator.engine.pile import Pile
from pile_simulator.engine.tariff import TariffTable

SHANGHAI = ZoneInfo("Asia/Shanghai")


def at(hour: int, minute: int = 0, second: int = 0, day: int = 1) -> datetime:
    """Simulated instant on 2025-06-<day> in Shanghai local time."""
    return datetime(2025, 6, day, hour, minute, second, tzinfo=SHANGHAI)


class FakeRealTime:
    """Manually advanced real-time source for ``SimulatedClock``."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, tzinfo=timezone.utc)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 0.0, **kwargs: float) -> None:
        self.current += timedelta(seconds=seconds, **kwargs)


@pytest.fixture
def real_time() -> FakeRealTime:
    return FakeRealTime()


@pytest.fixture
def clock(real_time: FakeRealTime) -> SimulatedClock:
    """Real-time-speed clock starting at 06:30 simulated."""
    return SimulatedClock(ClockConfig(start_time=at(6, 30)), real_time=real_time)


@pytest.fixture
def tariff() -> TariffTable:
    """Valley 00–07 @0.4, flat 07–10 @0.7, peak 10–15 @1.0 … service fee 0.8."""
    return TariffTable.from_price_file(PriceFile.default(), SHANGHAI)


@pytest.fixture
def make_pile(clock: SimulatedClock, tariff: TariffTable):
    """Factory: ``make_pile(queue_capacity=2, allow_interruption=False, ...)``."""

    def _make(**overrides) -> Pile:
        fields = {"pile_id": "pile-1", "rated_power_kw": 30.0, "queue_capacity": 2}
        fields.update(overrides)
        return Pile(PileConfig(**fields), clock, tariff)

    return _make

