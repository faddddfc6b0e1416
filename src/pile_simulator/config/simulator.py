"""Top-level configuration — bundles every section of the config file."""

from pydantic import BaseModel, Field

from pile_simulator.config.clock import ClockConfig
from pile_simulator.config.pile import PileConfig
from pile_simulator.config.tariff import PriceConf
from pile_simulator.config.faults import FaultConfig
from pile_simulator.config.transport import ApiConfig, WebSocketConfig


class SimulatorConfig(BaseModel):
    """Complete, fully-populated configuration for one pile process."""

    price: PriceConf = Field(default_factory=PriceConf)
    pile: PileConfig = Field(default_factory=PileConfig)
    clock: ClockConfig = Field(default_factory=ClockConfig)
    websocket: WebSocketConfig = Field(default_factory=WebSocketConfig)
    faults: FaultConfig = Field(default_factory=FaultConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
