"""Long-term orders: order pools, the virtual order executor and the registry."""

from twamm.orders.executor import SettlementStep, VirtualOrderExecutor
from twamm.orders.order_pool import OrderPool
from twamm.orders.registry import LongTermOrderRegistry
from twamm.orders.types import CancelResult, Order, OrderStatus

__all__ = [
    # Types
    "Order",
    "OrderStatus",
    "CancelResult",
    # Components
    "OrderPool",
    "VirtualOrderExecutor",
    "SettlementStep",
    "LongTermOrderRegistry",
]
