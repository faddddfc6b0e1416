"""Simulated clock settings — time zone, acceleration and polling interval."""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator


class ClockConfig(BaseModel):
    """How simulated time is derived from real time."""

    polling_interval_ms: int = Field(
        default=5_000, ge=1,
        description="Real milliseconds between ticks.  Not scaled by speed_multiplier.",
    )
    time_zone: str = Field(default="Asia/Shanghai", description="IANA zone used for tariff lookups")
    speed_multiplier: float = Field(
        default=1.0, ge=1.0,
        description="Simulated seconds elapsing per real second (1 = real time)",
    )
    start_time: datetime | None = Field(
        default=None,
        description="Explicit simulated start instant (timezone-aware). "
                    "None = the real instant the clock is created.",
    )

    @field_validator("time_zone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown time zone {value!r}") from exc
        return value

    @field_validator("start_time")
    @classmethod
    def _aware_start(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.utcoffset() is None:
            raise ValueError("start_time must carry a UTC offset")
        return value

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)
