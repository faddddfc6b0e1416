"""Pile hardware & queue settings."""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, Field


class ChargeType(str, Enum):
    """Charging mode a pile offers and a request asks for."""

    FAST = "fast"
    SLOW = "slow"


class PileConfig(BaseModel):
    """One simulated charging pile."""

    pile_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Identifier reported to the remote peer on registration",
    )
    charge_type: ChargeType = Field(default=ChargeType.FAST, description="Charging mode of this pile")
    rated_power_kw: float = Field(default=30.0, gt=0, description="Rated charging power (kW)")
    queue_capacity: int = Field(
        default=2, ge=1,
        description="Maximum sessions held by the pile, the charging one included",
    )
    allow_interruption: bool = Field(
        default=False,
        description="Whether a simulated hardware fault may interrupt the charging session",
    )
    enforce_charge_type: bool = Field(
        default=False,
        description="Reject requests whose charge type differs from the pile's own",
    )
