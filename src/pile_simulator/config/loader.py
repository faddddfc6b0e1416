"""Config & price file loaders.

``load_config`` reads a TOML file whose sections mirror ``SimulatorConfig``
(``[price]``, ``[pile]``, ``[clock]``, ``[websocket]``, ``[faults]``, ``[api]``).
Missing sections and fields take the model defaults, so a partial file is
merged onto the defaults by pydantic itself.

``load_prices`` reads the JSON price file.  A missing file falls back to
``PriceFile.default()``; a file that exists but is broken is fatal.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path

from pydantic import ValidationError

from pile_simulator.config.simulator import SimulatorConfig
from pile_simulator.config.tariff import PriceFile
from pile_simulator.errors import ConfigurationError

logger = logging.getLogger(__name__)


def load_config(path: str | Path) -> SimulatorConfig:
    """Load ``SimulatorConfig`` from a TOML file, defaults for anything absent."""
    path = Path(path)
    if not path.exists():
        logger.debug("config file %s not found, using defaults", path)
        return SimulatorConfig()

    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"cannot read config file {path}: {exc}") from exc

    try:
        config = SimulatorConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid config file {path}:\n{exc}") from exc

    logger.info("loaded config file %s", path)
    _warn_on_risky_clock(config)
    return config


def load_prices(path: str | Path) -> PriceFile:
    """Load the JSON price file, or the built-in default tariff when it does not exist."""
    path = Path(path)
    if not path.exists():
        logger.warning("price file %s not found, using the default tariff", path)
        return PriceFile.default()

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"cannot read price file {path}: {exc}") from exc

    try:
        return PriceFile.model_validate_json(content)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid price file {path}:\n{exc}") from exc


def _warn_on_risky_clock(config: SimulatorConfig) -> None:
    clock = config.clock
    if clock.start_time is not None:
        logger.info("simulated clock starts at %s", clock.start_time.isoformat())
    if clock.polling_interval_ms < 100:
        logger.warning("polling interval of %d ms is very short", clock.polling_interval_ms)
    if clock.speed_multiplier > 1:
        logger.warning("simulated time runs %gx faster than real time", clock.speed_multiplier)
