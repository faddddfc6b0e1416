"""Configuration models and loaders."""

from pile_simulator.config.clock import ClockConfig
from pile_simulator.config.pile import ChargeType, PileConfig
from pile_simulator.config.tariff import PriceConf, PriceFile, TariffPeriodConfig
from pile_simulator.config.faults import FaultConfig
from pile_simulator.config.transport import ApiConfig, WebSocketConfig
from pile_simulator.config.simulator import SimulatorConfig

__all__ = [
    "ApiConfig",
    "ChargeType",
    "ClockConfig",
    "FaultConfig",
    "PileConfig",
    "PriceConf",
    "PriceFile",
    "SimulatorConfig",
    "TariffPeriodConfig",
    "WebSocketConfig",
]
