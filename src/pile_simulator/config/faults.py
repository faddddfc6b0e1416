"""Simulated hardware-fault settings."""

from pydantic import BaseModel, Field


class FaultConfig(BaseModel):
    """Probability-driven interruption of the charging session."""

    interruption_rate_per_hour: float = Field(
        default=0.0, ge=0,
        description="Expected faults per simulated charging hour (0 = never). "
                    "Only acts when the pile allows interruption.",
    )
    random_seed: int | None = Field(
        default=None,
        description="Optional RNG seed for reproducible fault draws. None = non-deterministic.",
    )
