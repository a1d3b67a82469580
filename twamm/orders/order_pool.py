"""Order pool: aggregate sell side for one token.

All long-term orders selling the same token share one pool. The pool sells
at the sum of their sale rates and receives the proceeds of every settlement
step. Proceeds are attributed with a reward-per-unit-rate accumulator:

    reward_factor += proceeds / current_sale_rate        (every step)
    entitlement    = sale_rate * (factor_now - factor_at_submission)

so paying out one order is O(1) no matter how many orders share the pool.
At every time step where orders expire, the accumulator value is frozen so
expired orders stop earning even if they withdraw much later.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

import structlog

from twamm.errors import InvalidAmountError, NotFoundError
from twamm.math.fixed_point import Fixed
from twamm.orders.types import CancelResult, OrderStatus, PoolOrder
from twamm.safe_int import S

logger = structlog.get_logger()


@dataclass(frozen=True)
class PoolCheckpoint:
    """Shallow copy of an OrderPool's state (entries are immutable)."""

    current_sale_rate: int
    reward_factor: int
    sale_rate_ending_at: dict[int, int]
    reward_factor_at_expiry: dict[int, int]
    last_update_time: int
    total_distributed: int
    orders: dict[int, PoolOrder]


class OrderPool:
    """Sell-side pool of long-term orders for one token.

    Attributes:
        token: Token sold by every order in this pool
        current_sale_rate: Sum of sale rates of orders still selling
        reward_factor: Raw 18-decimal proceeds-per-unit-sale-rate accumulator
        sale_rate_ending_at: Expiry time step -> sale rate that stops there
        reward_factor_at_expiry: Expiry time step -> reward_factor frozen there
        last_update_time: Latest settlement time step this pool has seen
        total_distributed: Total proceeds ever passed to distribute_payment()
    """

    def __init__(self, token: str, start_time: int = 0) -> None:
        self.token = token
        self.current_sale_rate = 0
        self.reward_factor = 0
        self.sale_rate_ending_at: dict[int, int] = {}
        self.reward_factor_at_expiry: dict[int, int] = {}
        self.last_update_time = start_time
        self.total_distributed = 0
        self._orders: dict[int, PoolOrder] = {}

    def __contains__(self, order_id: object) -> bool:
        return order_id in self._orders

    def __len__(self) -> int:
        return len(self._orders)

    # --- Settlement hooks (called by the executor) ---

    def distribute_payment(self, amount: int) -> None:
        """Credit proceeds of one settlement step to every active order.

        Raises:
            InvalidAmountError: If amount is negative, or positive while nobody sells
        """
        if amount < 0:
            raise InvalidAmountError(f"Cannot distribute negative proceeds: {amount}")
        if amount == 0:
            return
        if self.current_sale_rate == 0:
            raise InvalidAmountError(
                f"Pool {self.token} received {amount} proceeds with no active sellers"
            )

        increment = Fixed.from_int(amount).div(Fixed.from_int(self.current_sale_rate))
        self.reward_factor = (Fixed(self.reward_factor) + increment).value
        self.total_distributed += amount

    def update_state_from_block_expiry(self, time: int) -> None:
        """Retire orders expiring at `time` and freeze the accumulator for them.

        Must run after distribute_payment() for the same step: orders expiring
        at `time` are still entitled to that step's proceeds.
        """
        ending = self.sale_rate_ending_at.pop(time, 0)
        if ending:
            self.current_sale_rate = (S(self.current_sale_rate) - ending).value
            self.reward_factor_at_expiry[time] = self.reward_factor
            logger.debug(
                "order_pool_expiry",
                token=self.token,
                time=time,
                sale_rate_ended=ending,
                current_sale_rate=self.current_sale_rate,
            )
        self.last_update_time = time

    # --- Order operations ---

    def deposit_order(self, order_id: int, sale_rate: int, expiry: int) -> None:
        """Start selling `sale_rate` per time step for a new order.

        Raises:
            InvalidAmountError: If sale_rate is not positive, expiry is not in
                the future, or the id is already in use
        """
        if sale_rate <= 0:
            raise InvalidAmountError(f"Sale rate must be positive, got {sale_rate}")
        if expiry <= self.last_update_time:
            raise InvalidAmountError(
                f"Order expiry {expiry} is not after pool time {self.last_update_time}"
            )
        if order_id in self._orders:
            raise InvalidAmountError(f"Order {order_id} already exists in pool {self.token}")

        self.current_sale_rate += sale_rate
        self.sale_rate_ending_at[expiry] = self.sale_rate_ending_at.get(expiry, 0) + sale_rate
        self._orders[order_id] = PoolOrder(
            sale_rate=sale_rate,
            expiry=expiry,
            reward_factor_at_submission=self.reward_factor,
        )

    def cancel_order(self, order_id: int) -> CancelResult:
        """Stop an active order and settle it in full.

        Returns:
            CancelResult with the unsold deposit and the unwithdrawn proceeds

        Raises:
            NotFoundError: If the order is unknown, already settled, or expired
        """
        order = self._open_order(order_id)
        if order.expiry <= self.last_update_time:
            raise NotFoundError(
                f"Order {order_id} expired at {order.expiry}; nothing left to cancel"
            )

        unsold = order.sale_rate * (order.expiry - self.last_update_time)
        purchased = self._unclaimed(order)

        self.current_sale_rate = (S(self.current_sale_rate) - order.sale_rate).value
        remaining = (S(self.sale_rate_ending_at[order.expiry]) - order.sale_rate).value
        if remaining:
            self.sale_rate_ending_at[order.expiry] = remaining
        else:
            del self.sale_rate_ending_at[order.expiry]
        self._orders[order_id] = replace(
            order,
            proceeds_withdrawn=order.proceeds_withdrawn + purchased,
            settled=True,
        )

        return CancelResult(unsold=unsold, purchased=purchased)

    def withdraw_proceeds(self, order_id: int) -> int:
        """Pay out proceeds earned since the last withdrawal.

        Raises:
            NotFoundError: If the order is unknown or was cancelled
        """
        order = self._open_order(order_id)
        purchased = self._unclaimed(order)
        if purchased:
            self._orders[order_id] = replace(
                order, proceeds_withdrawn=order.proceeds_withdrawn + purchased
            )
        return purchased

    # --- Views ---

    def withdrawable_proceeds(self, order_id: int) -> int:
        """Proceeds withdraw_proceeds() would pay right now (0 once settled)."""
        order = self._get(order_id)
        if order.settled:
            return 0
        return self._unclaimed(order)

    def proceeds_withdrawn(self, order_id: int) -> int:
        return self._get(order_id).proceeds_withdrawn

    def order_status(self, order_id: int) -> OrderStatus:
        order = self._get(order_id)
        if order.settled:
            return OrderStatus.SETTLED
        if order.expiry > self.last_update_time:
            return OrderStatus.ACTIVE
        if self._entitlement(order) == order.proceeds_withdrawn:
            return OrderStatus.SETTLED
        return OrderStatus.EXPIRED

    # --- Atomicity ---

    def checkpoint(self) -> PoolCheckpoint:
        return PoolCheckpoint(
            current_sale_rate=self.current_sale_rate,
            reward_factor=self.reward_factor,
            sale_rate_ending_at=dict(self.sale_rate_ending_at),
            reward_factor_at_expiry=dict(self.reward_factor_at_expiry),
            last_update_time=self.last_update_time,
            total_distributed=self.total_distributed,
            orders=dict(self._orders),
        )

    def restore(self, checkpoint: PoolCheckpoint) -> None:
        self.current_sale_rate = checkpoint.current_sale_rate
        self.reward_factor = checkpoint.reward_factor
        self.sale_rate_ending_at = dict(checkpoint.sale_rate_ending_at)
        self.reward_factor_at_expiry = dict(checkpoint.reward_factor_at_expiry)
        self.last_update_time = checkpoint.last_update_time
        self.total_distributed = checkpoint.total_distributed
        self._orders = dict(checkpoint.orders)

    # --- Internals ---

    def _get(self, order_id: int) -> PoolOrder:
        order = self._orders.get(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found in pool {self.token}")
        return order

    def _open_order(self, order_id: int) -> PoolOrder:
        order = self._get(order_id)
        if order.settled:
            raise NotFoundError(f"Order {order_id} is already settled")
        return order

    def _settlement_factor(self, order: PoolOrder) -> int:
        if order.expiry > self.last_update_time:
            return self.reward_factor
        return self.reward_factor_at_expiry[order.expiry]

    def _entitlement(self, order: PoolOrder) -> int:
        """Total proceeds the order has earned so far, rounded down."""
        earned = Fixed(self._settlement_factor(order) - order.reward_factor_at_submission)
        return earned.mul(Fixed.from_int(order.sale_rate)).to_int()

    def _unclaimed(self, order: PoolOrder) -> int:
        return (S(self._entitlement(order)) - order.proceeds_withdrawn).value


__all__ = ["OrderPool", "PoolCheckpoint"]
