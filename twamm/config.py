"""Engine configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from twamm.errors import ConfigError

# Defaults used when no environment override is present
DEFAULT_TOKEN0 = "token0"
DEFAULT_TOKEN1 = "token1"
DEFAULT_ORDER_BLOCK_INTERVAL = 5
DEFAULT_BLOCK_TIME_SECONDS = 12.0


@dataclass(frozen=True)
class EngineConfig:
    """Construction parameters for one TWAMM engine instance.

    Attributes:
        token0: Identifier of the first pool token
        token1: Identifier of the second pool token
        order_block_interval: Time steps between possible order expiries
        block_time_seconds: Wall-clock seconds per time step (BlockClock only)

    Raises:
        ConfigError: On an empty or repeated token, or a non-positive interval
            or block time
    """

    token0: str = DEFAULT_TOKEN0
    token1: str = DEFAULT_TOKEN1
    order_block_interval: int = DEFAULT_ORDER_BLOCK_INTERVAL
    block_time_seconds: float = DEFAULT_BLOCK_TIME_SECONDS

    def __post_init__(self) -> None:
        if not self.token0 or not self.token1:
            raise ConfigError("Token identifiers must be non-empty")
        if self.token0 == self.token1:
            raise ConfigError(f"Pool tokens must differ, got {self.token0} twice")
        if self.order_block_interval <= 0:
            raise ConfigError(
                f"order_block_interval must be positive, got {self.order_block_interval}"
            )
        if self.block_time_seconds <= 0:
            raise ConfigError(
                f"block_time_seconds must be positive, got {self.block_time_seconds}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineConfig:
        """Build a config from TWAMM_* environment variables.

        Variables: TWAMM_TOKEN0, TWAMM_TOKEN1, TWAMM_ORDER_BLOCK_INTERVAL,
        TWAMM_BLOCK_TIME_SECONDS. Missing variables fall back to defaults.
        """
        env = os.environ if environ is None else environ
        try:
            interval = int(env.get("TWAMM_ORDER_BLOCK_INTERVAL", DEFAULT_ORDER_BLOCK_INTERVAL))
            block_time = float(env.get("TWAMM_BLOCK_TIME_SECONDS", DEFAULT_BLOCK_TIME_SECONDS))
        except ValueError as err:
            raise ConfigError(f"Invalid numeric TWAMM setting: {err}") from err
        return cls(
            token0=env.get("TWAMM_TOKEN0", DEFAULT_TOKEN0),
            token1=env.get("TWAMM_TOKEN1", DEFAULT_TOKEN1),
            order_block_interval=interval,
            block_time_seconds=block_time,
        )


# Default configuration instance
DEFAULT_ENGINE_CONFIG = EngineConfig()
