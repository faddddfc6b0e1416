"""Pile engine — clock, tariff, admission queue, session state machine and billing."""

from pile_simulator.engine.billing import BillingEngine, BillingStepResult
from pile_simulator.engine.clock import SimulatedClock
from pile_simulator.engine.faults import FaultInjector
from pile_simulator.engine.pile import EventKind, Pile, PileEvent, PileStatus
from pile_simulator.engine.queue import AdmissionQueue
from pile_simulator.engine.session import ChargeRequest, ChargeSession, SessionSnapshot, SessionStatus
from pile_simulator.engine.tariff import TariffPeriod, TariffTable, normalize_periods

__all__ = [
    "AdmissionQueue",
    "BillingEngine",
    "BillingStepResult",
    "ChargeRequest",
    "ChargeSession",
    "EventKind",
    "FaultInjector",
    "Pile",
    "PileEvent",
    "PileStatus",
    "SessionSnapshot",
    "SessionStatus",
    "SimulatedClock",
    "TariffPeriod",
    "TariffTable",
    "normalize_periods",
]
