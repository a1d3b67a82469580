"""Long-term order registry.

Orchestration layer over the two order pools and the executor: assigns order
ids, maps ids to owners and pools, and catches virtual orders up to the
current time before every state change.

Every public operation is all-or-nothing: the registry checkpoints its
state (pools, orders, executor time, reserves) before running and restores
it if anything raises.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import structlog

from twamm.errors import (
    AuthorizationError,
    ConfigError,
    InvalidAmountError,
    LiquidityError,
    NoProceedsError,
    NotFoundError,
)
from twamm.interfaces import Clock, ReserveStore
from twamm.orders.executor import SettlementStep, VirtualOrderExecutor
from twamm.orders.order_pool import OrderPool, PoolCheckpoint
from twamm.orders.types import CancelResult, Order, OrderStatus

logger = structlog.get_logger()


@dataclass(frozen=True)
class RegistryCheckpoint:
    """Copy of everything a registry operation can mutate."""

    pools: dict[str, PoolCheckpoint]
    orders: dict[int, Order]
    order_id_counter: int
    last_virtual_order_time: int
    reserves: tuple[int, int]


class LongTermOrderRegistry:
    """Creates, cancels and settles long-term orders for a two-token pool.

    Args:
        token0: First pool token
        token1: Second pool token
        order_block_interval: Time steps between possible order expiries
        reserves: Reserve store shared with the surrounding AMM
        clock: Source of the current time step
        start_time: Initial virtual order time (default: clock's current time)

    Raises:
        ConfigError: If the tokens are equal or the interval is not positive
    """

    def __init__(
        self,
        token0: str,
        token1: str,
        order_block_interval: int,
        reserves: ReserveStore,
        clock: Clock,
        start_time: int | None = None,
    ) -> None:
        if token0 == token1:
            raise ConfigError(f"Pool tokens must differ, got {token0} twice")
        start = clock.current_time() if start_time is None else start_time
        self.token0 = token0
        self.token1 = token1
        self.reserves = reserves
        self.clock = clock
        self.executor = VirtualOrderExecutor(
            order_block_interval=order_block_interval,
            token0=token0,
            token1=token1,
            pools={token0: OrderPool(token0, start), token1: OrderPool(token1, start)},
            reserves=reserves,
            start_time=start,
        )
        self.orders: dict[int, Order] = {}
        self._order_id_counter = 0

    # --- Properties ---

    @property
    def order_block_interval(self) -> int:
        return self.executor.order_block_interval

    @property
    def last_virtual_order_time(self) -> int:
        return self.executor.last_virtual_order_time

    def pool(self, token: str) -> OrderPool:
        """Order pool selling `token`.

        Raises:
            InvalidAmountError: If the token is not one of the pool tokens
        """
        try:
            return self.executor.pools[token]
        except KeyError:
            raise InvalidAmountError(f"Token {token} not in pool") from None

    def other_token(self, token: str) -> str:
        if token == self.token0:
            return self.token1
        if token == self.token1:
            return self.token0
        raise InvalidAmountError(f"Token {token} not in pool")

    # --- Virtual order execution ---

    def execute_virtual_orders(self) -> list[SettlementStep]:
        """Advance virtual orders to the clock's current time."""
        with self.atomic():
            return self.executor.advance_to(self.clock.current_time())

    def last_expiry_boundary(self, time: int) -> int:
        """Latest interval-aligned time step at or before `time`."""
        return time - time % self.order_block_interval

    # --- Order operations ---

    def create_order(
        self,
        sell_token: str,
        total_amount: int,
        number_of_intervals: int,
        owner: str,
    ) -> Order:
        """Submit a long-term order selling `total_amount` of `sell_token`.

        The order sells until the end of the interval `number_of_intervals`
        boundaries after the current one. The committed amount is
        `order.deposit` (sale_rate * duration), which can be slightly less than
        `total_amount` because the sale rate is rounded down.

        Raises:
            InvalidAmountError: Bad token, non-positive amount, negative interval
                count, or an amount too small for a non-zero sale rate
            LiquidityError: If the pool has no reserves yet
        """
        buy_token = self.other_token(sell_token)
        if total_amount <= 0:
            raise InvalidAmountError(f"Order amount must be positive, got {total_amount}")
        if number_of_intervals < 0:
            raise InvalidAmountError(
                f"Number of intervals cannot be negative, got {number_of_intervals}"
            )
        if self.reserves.get(self.token0) == 0 or self.reserves.get(self.token1) == 0:
            raise LiquidityError("Cannot place long-term orders before liquidity is provided")

        now = self.clock.current_time()
        expiry = self.order_block_interval * (number_of_intervals + 1) + self.last_expiry_boundary(
            now
        )
        sale_rate = total_amount // (expiry - now)
        if sale_rate == 0:
            raise InvalidAmountError(
                f"Amount {total_amount} too small to sell over {expiry - now} time steps"
            )

        with self.atomic():
            self.executor.advance_to(now)
            order = Order(
                id=self._order_id_counter,
                owner=owner,
                sell_token=sell_token,
                buy_token=buy_token,
                sale_rate=sale_rate,
                start_time=now,
                expiry=expiry,
            )
            self.pool(sell_token).deposit_order(order.id, sale_rate, expiry)
            self.orders[order.id] = order
            self._order_id_counter += 1

        logger.info(
            "long_term_order_created",
            order_id=order.id,
            owner=owner,
            sell_token=sell_token,
            sale_rate=sale_rate,
            expiry=expiry,
            deposit=order.deposit,
        )
        return order

    def cancel_order(self, order_id: int, caller: str) -> CancelResult:
        """Cancel an active order, returning its unsold amount and proceeds.

        Raises:
            NotFoundError: Unknown, settled or expired order
            AuthorizationError: Caller is not the owner
            NoProceedsError: Nothing to pay out
        """
        order = self._owned_order(order_id, caller)

        with self.atomic():
            self.executor.advance_to(self.clock.current_time())
            result = self.pool(order.sell_token).cancel_order(order_id)
            if result.is_empty:
                raise NoProceedsError(f"Cancelling order {order_id} pays out nothing")

        logger.info(
            "long_term_order_cancelled",
            order_id=order_id,
            unsold=result.unsold,
            purchased=result.purchased,
        )
        return result

    def withdraw_proceeds(self, order_id: int, caller: str) -> int:
        """Withdraw proceeds earned by an order so far.

        Raises:
            NotFoundError: Unknown or cancelled order
            AuthorizationError: Caller is not the owner
            NoProceedsError: Nothing earned since the last withdrawal
        """
        order = self._owned_order(order_id, caller)

        with self.atomic():
            self.executor.advance_to(self.clock.current_time())
            proceeds = self.pool(order.sell_token).withdraw_proceeds(order_id)
            if proceeds == 0:
                raise NoProceedsError(f"Order {order_id} has no proceeds to withdraw")

        logger.info("proceeds_withdrawn", order_id=order_id, proceeds=proceeds)
        return proceeds

    # --- Views ---

    def get_order(self, order_id: int) -> Order:
        try:
            return self.orders[order_id]
        except KeyError:
            raise NotFoundError(f"Order {order_id} not found") from None

    def orders_of(self, owner: str) -> list[Order]:
        return [order for order in self.orders.values() if order.owner == owner]

    def order_status(self, order_id: int) -> OrderStatus:
        order = self.get_order(order_id)
        return self.pool(order.sell_token).order_status(order_id)

    def withdrawable_proceeds(self, order_id: int) -> int:
        """Proceeds claimable as of the last virtual order time."""
        order = self.get_order(order_id)
        return self.pool(order.sell_token).withdrawable_proceeds(order_id)

    # --- Atomicity ---

    def checkpoint(self) -> RegistryCheckpoint:
        return RegistryCheckpoint(
            pools={token: pool.checkpoint() for token, pool in self.executor.pools.items()},
            orders=dict(self.orders),
            order_id_counter=self._order_id_counter,
            last_virtual_order_time=self.executor.last_virtual_order_time,
            reserves=(self.reserves.get(self.token0), self.reserves.get(self.token1)),
        )

    def restore(self, checkpoint: RegistryCheckpoint) -> None:
        for token, pool_checkpoint in checkpoint.pools.items():
            self.executor.pools[token].restore(pool_checkpoint)
        self.orders = dict(checkpoint.orders)
        self._order_id_counter = checkpoint.order_id_counter
        self.executor.last_virtual_order_time = checkpoint.last_virtual_order_time
        self.reserves.set(self.token0, checkpoint.reserves[0])
        self.reserves.set(self.token1, checkpoint.reserves[1])

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Run a block with all-or-nothing semantics."""
        checkpoint = self.checkpoint()
        try:
            yield
        except Exception as err:
            self.restore(checkpoint)
            logger.warning("registry_operation_rolled_back", error=str(err))
            raise

    # --- Internals ---

    def _owned_order(self, order_id: int, caller: str) -> Order:
        order = self.get_order(order_id)
        if caller != order.owner:
            raise AuthorizationError(f"{caller} does not own order {order_id}")
        return order


__all__ = ["LongTermOrderRegistry", "RegistryCheckpoint"]
