"""Virtual order executor.

Catches the pool up from the last processed time step to the current one.
Instead of touching every time step it settles once per elapsed order block
interval (the only time steps at which orders can expire), using the
closed-form trade for each settlement step:

    last=13, interval=5, current=27  ->  steps to 15, 20, 25, 27

The number of settlement steps is bounded by elapsed intervals, never by the
number of orders.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from twamm.amm.virtual_trade import VirtualTrade, compute_virtual_balances
from twamm.errors import ConfigError
from twamm.interfaces import ReserveStore
from twamm.orders.order_pool import OrderPool

logger = structlog.get_logger()


@dataclass(frozen=True)
class SettlementStep:
    """Record of one settlement step, as returned by advance_to()."""

    time: int
    token0_sold: int
    token1_sold: int
    trade: VirtualTrade


class VirtualOrderExecutor:
    """Advances reserves and both order pools through time.

    Args:
        order_block_interval: Time steps between possible order expiries
        token0: First pool token
        token1: Second pool token
        pools: Order pools keyed by the token they sell
        reserves: Reserve store shared with the surrounding AMM
        start_time: Initial value of last_virtual_order_time

    Raises:
        ConfigError: If the interval is not positive or pools are missing
    """

    def __init__(
        self,
        order_block_interval: int,
        token0: str,
        token1: str,
        pools: dict[str, OrderPool],
        reserves: ReserveStore,
        start_time: int = 0,
    ) -> None:
        if order_block_interval <= 0:
            raise ConfigError(f"order_block_interval must be positive, got {order_block_interval}")
        if token0 not in pools or token1 not in pools:
            raise ConfigError("Executor needs an order pool for each token")
        self.order_block_interval = order_block_interval
        self.token0 = token0
        self.token1 = token1
        self.pools = pools
        self.reserves = reserves
        self.last_virtual_order_time = start_time

    def next_boundary(self, time: int) -> int:
        """Smallest multiple of the interval strictly greater than `time`."""
        return time - time % self.order_block_interval + self.order_block_interval

    def step_times(self, current_time: int) -> list[int]:
        """Time steps advance_to(current_time) would settle at, in order."""
        times: list[int] = []
        if current_time <= self.last_virtual_order_time:
            return times
        boundary = self.next_boundary(self.last_virtual_order_time)
        while boundary < current_time:
            times.append(boundary)
            boundary += self.order_block_interval
        times.append(current_time)
        return times

    def advance_to(self, current_time: int) -> list[SettlementStep]:
        """Settle every step up to `current_time`.

        Idempotent: a time at or before last_virtual_order_time does nothing.

        Returns:
            The settlement steps applied, oldest first
        """
        steps = [self._settle(time) for time in self.step_times(current_time)]
        if steps:
            logger.debug(
                "virtual_orders_executed",
                to_time=current_time,
                steps=len(steps),
                reserve0=self.reserves.get(self.token0),
                reserve1=self.reserves.get(self.token1),
            )
        return steps

    def simulate_to(self, current_time: int) -> tuple[int, int]:
        """Reserves advance_to(current_time) would produce, without mutating state."""
        pool0 = self.pools[self.token0]
        pool1 = self.pools[self.token1]
        reserve0 = self.reserves.get(self.token0)
        reserve1 = self.reserves.get(self.token1)
        rate0 = pool0.current_sale_rate
        rate1 = pool1.current_sale_rate
        last = self.last_virtual_order_time

        for time in self.step_times(current_time):
            trade = compute_virtual_balances(
                reserve0, reserve1, rate0 * (time - last), rate1 * (time - last)
            )
            reserve0, reserve1 = trade.reserve0, trade.reserve1
            rate0 -= pool0.sale_rate_ending_at.get(time, 0)
            rate1 -= pool1.sale_rate_ending_at.get(time, 0)
            last = time

        return reserve0, reserve1

    def _settle(self, time: int) -> SettlementStep:
        pool0 = self.pools[self.token0]
        pool1 = self.pools[self.token1]
        elapsed = time - self.last_virtual_order_time
        token0_sold = pool0.current_sale_rate * elapsed
        token1_sold = pool1.current_sale_rate * elapsed

        trade = compute_virtual_balances(
            self.reserves.get(self.token0),
            self.reserves.get(self.token1),
            token0_sold,
            token1_sold,
        )

        # Token0 sellers are paid in token1 and vice versa
        if pool0.current_sale_rate:
            pool0.distribute_payment(trade.token1_out)
        if pool1.current_sale_rate:
            pool1.distribute_payment(trade.token0_out)
        pool0.update_state_from_block_expiry(time)
        pool1.update_state_from_block_expiry(time)

        self.reserves.set(self.token0, trade.reserve0)
        self.reserves.set(self.token1, trade.reserve1)
        self.last_virtual_order_time = time

        return SettlementStep(
            time=time,
            token0_sold=token0_sold,
            token1_sold=token1_sold,
            trade=trade,
        )


__all__ = ["SettlementStep", "VirtualOrderExecutor"]
