"""AMM math: instant constant product swaps and virtual-order settlement."""

from twamm.amm.constant_product import ConstantProduct, constant_product
from twamm.amm.virtual_trade import (
    VirtualTrade,
    compute_virtual_balances,
    integrate_virtual_trade,
)

__all__ = [
    # Constant product
    "ConstantProduct",
    "constant_product",
    # Virtual orders
    "VirtualTrade",
    "compute_virtual_balances",
    "integrate_virtual_trade",
]
