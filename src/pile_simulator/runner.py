"""Process entry point — load config, build the pile, connect, drive.

    pile-simulator --config config.toml --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import logging

import uvicorn

from pile_simulator.api.server import create_app
from pile_simulator.config.loader import load_config, load_prices
from pile_simulator.config.simulator import SimulatorConfig
from pile_simulator.config.tariff import PriceFile
from pile_simulator.engine.clock import SimulatedClock
from pile_simulator.engine.faults import FaultInjector
from pile_simulator.engine.pile import Pile
from pile_simulator.engine.tariff import TariffTable
from pile_simulator.errors import ConfigurationError
from pile_simulator.protocol.adapter import ProtocolAdapter
from pile_simulator.protocol.transport import PileDriver, run_websocket

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())


def build_driver(
    config: SimulatorConfig,
    prices: PriceFile,
    clock: SimulatedClock | None = None,
) -> tuple[PileDriver, TariffTable]:
    """Wire clock → tariff → pile → adapter → driver from validated configuration."""
    clock = clock if clock is not None else SimulatedClock(config.clock)
    tariff = TariffTable.from_price_file(prices, clock.zone)
    pile = Pile(config.pile, clock, tariff)
    injector = FaultInjector(config.faults) if config.faults.interruption_rate_per_hour > 0 else None
    return PileDriver(ProtocolAdapter(pile), injector=injector), tariff


async def serve(config: SimulatorConfig, driver: PileDriver, tariff: TariffTable) -> None:
    """Run the WebSocket client, plus the control API when enabled, until the connection ends."""
    pile_config = config.pile
    logger.info(
        "pile %s: %s, %.1f kW, queue of %d, interruption %s",
        pile_config.pile_id, pile_config.charge_type.value, pile_config.rated_power_kw,
        pile_config.queue_capacity, "allowed" if pile_config.allow_interruption else "disabled",
    )

    if not config.api.enabled:
        await run_websocket(driver, config.websocket)
        return

    server = uvicorn.Server(uvicorn.Config(
        create_app(driver, tariff, manage_driver=False),
        host=config.api.host, port=config.api.port, log_config=None,
    ))
    api_task = asyncio.create_task(server.serve())
    try:
        await run_websocket(driver, config.websocket)
    finally:
        server.should_exit = True
        await api_task


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Simulated EV charging pile")
    parser.add_argument("--config", default="config.toml", help="TOML config file (default: config.toml)")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    try:
        config = load_config(args.config)
        driver, tariff = build_driver(config, load_prices(config.price.path))
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 2

    try:
        asyncio.run(serve(config, driver, tariff))
    except KeyboardInterrupt:
        logger.info("stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
