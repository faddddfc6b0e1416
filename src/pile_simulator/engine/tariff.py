"""Time-of-day tariff — unit price lookup and boundary splitting.

The price file lists half-open ``[start, end)`` periods; at most one of them
may wrap past midnight (``end < start``).  ``normalize_periods`` turns that
list into the canonical form the table works with:

  1. the wrapping period is split into ``[start, 24:00)`` and ``[00:00, end)``
  2. periods are sorted by start; overlapping periods with the same price
     merge, overlapping periods with different prices are rejected
  3. uncovered parts of the day are rejected, or priced 0 with ``fill_gaps``

After normalization the periods partition ``[00:00, 24:00)`` exactly, so
``price_at`` is a single bisect over the period starts and every instant of
every day has exactly one price.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Iterator, Sequence
from zoneinfo import ZoneInfo

from pile_simulator.config.tariff import PriceFile, TariffPeriodConfig
from pile_simulator.errors import ConfigurationError

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400


def _second_of(moment: time) -> float:
    return moment.hour * 3600 + moment.minute * 60 + moment.second + moment.microsecond / 1e6


def _format_second(second: float) -> str:
    whole = int(second)
    return f"{whole // 3600:02d}:{whole % 3600 // 60:02d}:{whole % 60:02d}"


# ═══════════════════════════════════════════════════════════════════════════
# Periods
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TariffPeriod:
    """One normalized period, as seconds since local midnight."""

    start_second: float
    """Inclusive start (0 ≤ start < 86 400)."""

    end_second: float
    """Exclusive end (start < end ≤ 86 400); 86 400 is the next midnight."""

    price: float
    """Unit energy price per kWh."""

    @property
    def start(self) -> time:
        return time.fromisoformat(_format_second(self.start_second))

    @property
    def end(self) -> time:
        return time.fromisoformat(_format_second(self.end_second % SECONDS_PER_DAY))

    def contains(self, second: float) -> bool:
        return self.start_second <= second < self.end_second


def normalize_periods(
    periods: Sequence[TariffPeriodConfig],
    fill_gaps: bool = False,
) -> list[TariffPeriod]:
    """Validate configured periods and return a sorted partition of the day.

    Raises
    ------
    ConfigurationError
        Zero-length period, more than one midnight-wrapping period,
        conflicting overlap, or a gap while ``fill_gaps`` is off.
    """
    if not periods:
        raise ConfigurationError("price file defines no periods")

    pieces: list[TariffPeriod] = []
    wrapping = 0
    for period in periods:
        start = _second_of(period.start)
        end = _second_of(period.end) or SECONDS_PER_DAY
        if start == end:
            raise ConfigurationError(f"period starting {period.start} has zero length")
        if end < start:
            wrapping += 1
            pieces.append(TariffPeriod(start, SECONDS_PER_DAY, period.price))
            pieces.append(TariffPeriod(0.0, end, period.price))
        else:
            pieces.append(TariffPeriod(start, end, period.price))

    if wrapping > 1:
        raise ConfigurationError(f"{wrapping} periods cross midnight, at most one may")

    pieces.sort(key=lambda piece: (piece.start_second, piece.end_second))

    merged: list[TariffPeriod] = []
    for piece in pieces:
        if merged and piece.start_second < merged[-1].end_second:
            last = merged[-1]
            if piece.price != last.price:
                raise ConfigurationError(
                    f"periods overlap with different prices around "
                    f"{_format_second(piece.start_second)} ({last.price} vs {piece.price})"
                )
            merged[-1] = TariffPeriod(last.start_second, max(last.end_second, piece.end_second), last.price)
            continue
        covered_until = merged[-1].end_second if merged else 0.0
        if piece.start_second > covered_until:
            merged.append(_gap(covered_until, piece.start_second, fill_gaps))
        merged.append(piece)

    if merged[-1].end_second < SECONDS_PER_DAY:
        merged.append(_gap(merged[-1].end_second, SECONDS_PER_DAY, fill_gaps))

    return merged


def _gap(start: float, end: float, fill_gaps: bool) -> TariffPeriod:
    if not fill_gaps:
        raise ConfigurationError(
            f"no price covers {_format_second(start)}-{_format_second(end % SECONDS_PER_DAY)}"
        )
    logger.warning(
        "no price covers %s-%s, charging 0 there",
        _format_second(start), _format_second(end % SECONDS_PER_DAY),
    )
    return TariffPeriod(start, end, 0.0)


# ═══════════════════════════════════════════════════════════════════════════
# Table
# ═══════════════════════════════════════════════════════════════════════════

class TariffTable:
    """Immutable tariff shared read-only by every session of every pile.

    Build it with ``from_price_file``; the constructor expects periods that
    already partition the day (the output of ``normalize_periods``).
    """

    def __init__(self, periods: Sequence[TariffPeriod], service_fee: float, zone: ZoneInfo) -> None:
        self._periods = tuple(periods)
        self._starts = [period.start_second for period in self._periods]
        self._service_fee = service_fee
        self._zone = zone

    @classmethod
    def from_price_file(cls, price_file: PriceFile, zone: ZoneInfo) -> TariffTable:
        periods = normalize_periods(price_file.periods, fill_gaps=price_file.fill_gaps)
        return cls(periods, price_file.service_fee, zone)

    @property
    def periods(self) -> tuple[TariffPeriod, ...]:
        return self._periods

    @property
    def service_fee(self) -> float:
        """Flat fee per kWh delivered, on top of the period price."""
        return self._service_fee

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    def period_at(self, instant: datetime) -> TariffPeriod:
        local = instant.astimezone(self._zone)
        index = bisect_right(self._starts, _second_of(local.time())) - 1
        return self._periods[index]

    def price_at(self, instant: datetime) -> float:
        """Unit price of the period containing the instant's local time of day."""
        return self.period_at(instant).price

    def segments(self, start: datetime, end: datetime) -> Iterator[tuple[datetime, datetime, float]]:
        """Split ``[start, end)`` at every period boundary it crosses.

        Yields ``(segment_start, segment_end, price)`` with UTC instants; the
        segments are contiguous and cover the interval exactly.
        """
        cursor = start.astimezone(timezone.utc)
        end = end.astimezone(timezone.utc)
        while cursor < end:
            local = cursor.astimezone(self._zone)
            period = self.period_at(local)
            midnight = datetime.combine(local.date(), time(0), tzinfo=self._zone)
            boundary = (midnight + timedelta(seconds=period.end_second)).astimezone(timezone.utc)
            if boundary <= cursor:
                # nonexistent local time around a DST transition
                boundary = cursor + timedelta(seconds=1)
            segment_end = min(end, boundary)
            yield cursor, segment_end, period.price
            cursor = segment_end

    def cost_between(self, start: datetime, end: datetime, power_kw: float) -> float:
        """Tariff cost (service fee excluded) of drawing ``power_kw`` over ``[start, end)``."""
        cost = 0.0
        for segment_start, segment_end, price in self.segments(start, end):
            hours = (segment_end - segment_start).total_seconds() / 3600
            cost += power_kw * hours * price
        return cost
