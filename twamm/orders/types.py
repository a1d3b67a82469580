"""Value types for long-term orders."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OrderStatus(str, Enum):
    """Lifecycle stage of a long-term order."""

    ACTIVE = "active"
    EXPIRED = "expired"
    SETTLED = "settled"


@dataclass(frozen=True)
class Order:
    """A long-term order: sells sale_rate of sell_token per time step until expiry.

    Attributes:
        id: Monotonically increasing order id
        owner: Identity allowed to cancel the order and withdraw proceeds
        sell_token: Token being sold (selects the order pool)
        buy_token: Token received as proceeds
        sale_rate: Amount of sell_token sold per time step
        start_time: Time step the order was submitted at
        expiry: Interval-aligned time step at which selling stops
    """

    id: int
    owner: str
    sell_token: str
    buy_token: str
    sale_rate: int
    start_time: int
    expiry: int

    @property
    def duration(self) -> int:
        """Number of time steps the order sells for."""
        return self.expiry - self.start_time

    @property
    def deposit(self) -> int:
        """Total sell_token committed to the order."""
        return self.sale_rate * self.duration


@dataclass(frozen=True)
class PoolOrder:
    """Per-order bookkeeping kept by an OrderPool."""

    sale_rate: int
    expiry: int
    # Raw 18-decimal reward factor when the order started earning
    reward_factor_at_submission: int
    # Proceeds already paid out to the owner
    proceeds_withdrawn: int = 0
    settled: bool = False


@dataclass(frozen=True)
class CancelResult:
    """Amounts returned to the owner when an order is cancelled."""

    unsold: int
    purchased: int

    @property
    def is_empty(self) -> bool:
        return self.unsold == 0 and self.purchased == 0
