"""Price file — time-of-day tariff periods plus a flat per-kWh service fee."""

from __future__ import annotations

from datetime import time

from pydantic import BaseModel, Field


class PriceConf(BaseModel):
    """Where the price file lives."""

    path: str = Field(default="prices.json", description="Path of the JSON price file")


class TariffPeriodConfig(BaseModel):
    """One ``[start, end)`` time-of-day interval.

    ``end`` earlier than ``start`` wraps past midnight; ``end`` of 00:00:00
    means end of day.
    """

    start: time = Field(description="Period start, HH:MM:SS")
    end: time = Field(description="Period end (exclusive), HH:MM:SS")
    price: float = Field(ge=0, description="Unit energy price per kWh")


class PriceFile(BaseModel):
    """Contents of the price file."""

    periods: list[TariffPeriodConfig] = Field(min_length=1)
    service_fee: float = Field(default=0.0, ge=0, description="Flat fee per kWh delivered")
    fill_gaps: bool = Field(
        default=False,
        description="Fill uncovered parts of the day with price 0 instead of rejecting the file",
    )

    @classmethod
    def default(cls) -> PriceFile:
        """Valley / flat / peak tariff used when no price file exists."""
        return cls(
            periods=[
                TariffPeriodConfig(start=time(0), end=time(7), price=0.4),     # valley
                TariffPeriodConfig(start=time(7), end=time(10), price=0.7),    # flat
                TariffPeriodConfig(start=time(10), end=time(15), price=1.0),   # peak
                TariffPeriodConfig(start=time(15), end=time(18), price=0.7),   # flat
                TariffPeriodConfig(start=time(18), end=time(21), price=1.0),   # peak
                TariffPeriodConfig(start=time(21), end=time(23), price=0.7),   # flat
                TariffPeriodConfig(start=time(23), end=time(0), price=0.4),    # valley
            ],
            service_fee=0.8,
        )
