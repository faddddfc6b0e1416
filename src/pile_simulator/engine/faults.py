"""Fault injector — probability-driven trigger for simulated hardware faults.

Faults arrive as a Poisson process with rate λ per simulated charging hour,
so the chance that at least one fault lands inside a tick of simulated
length Δt is

  p = 1 − exp(−λ × Δt_hours)

The injector only *decides*; the driver turns a positive draw into a
``Pile.interrupt()`` call.  Billing never sees any randomness.
"""

from __future__ import annotations

from datetime import timedelta

import numpy as np

from pile_simulator.config.faults import FaultConfig


class FaultInjector:
    """Draws fault decisions from a seeded numpy generator.

    Usage::

        injector = FaultInjector(FaultConfig(interruption_rate_per_hour=0.5, random_seed=7))
        if pile.active is not None and injector.should_interrupt(clock.simulated_step):
            pile.interrupt()
    """

    def __init__(self, config: FaultConfig, rng: np.random.Generator | None = None) -> None:
        self._rate = config.interruption_rate_per_hour
        self._rng = rng if rng is not None else np.random.default_rng(config.random_seed)

    @property
    def enabled(self) -> bool:
        return self._rate > 0

    def probability(self, elapsed: timedelta) -> float:
        """Chance of at least one fault within ``elapsed`` simulated time."""
        hours = elapsed.total_seconds() / 3600
        if not self.enabled or hours <= 0:
            return 0.0
        return float(-np.expm1(-self._rate * hours))

    def should_interrupt(self, elapsed: timedelta) -> bool:
        p = self.probability(elapsed)
        if p == 0.0:
            return False
        return bool(self._rng.random() < p)
