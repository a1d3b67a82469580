"""Pydantic models for engine snapshots and HTTP payloads.

Amounts travel as uint256 decimal strings; field names are camelCase on the
wire and snake_case in Python.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field

from twamm.interfaces import Transfer, TransferDirection
from twamm.orders.types import CancelResult, Order, OrderStatus
from twamm.safe_int import UINT256_MAX


def validate_uint256(value: Any) -> str:
    """Validate that a value is a valid uint256 decimal string.

    Args:
        value: Value to validate (string or int)

    Returns:
        Valid uint256 as decimal string

    Raises:
        ValueError: If value is not a non-negative integer within uint256 range
    """
    if isinstance(value, bool):
        raise ValueError("Uint256 must be string or int, got bool")

    if isinstance(value, int):
        int_value = value
    elif isinstance(value, str):
        try:
            int_value = int(value)
        except ValueError as err:
            raise ValueError(f"Uint256 must be a decimal integer string: '{value}'") from err
    else:
        raise ValueError(f"Uint256 must be string or int, got {type(value).__name__}")

    if int_value < 0:
        raise ValueError(f"Uint256 cannot be negative: {value}")
    if int_value > UINT256_MAX:
        raise ValueError(f"Uint256 overflow: {value} > 2^256-1")

    return str(int_value)


# 256-bit unsigned integer as decimal string (validated)
Uint256 = Annotated[
    str,
    BeforeValidator(validate_uint256),
    Field(description="256-bit unsigned integer as decimal string"),
]

# Opaque caller identity
Identity = Annotated[str, Field(min_length=1, max_length=256)]


class _Model(BaseModel):
    model_config = {"populate_by_name": True}


# =============================================================================
# Requests
# =============================================================================


class InitialLiquidityRequest(_Model):
    provider: Identity
    amount0: Uint256
    amount1: Uint256


class LiquidityRequest(_Model):
    provider: Identity
    shares: Uint256


class SwapRequest(_Model):
    trader: Identity
    sell_token: str = Field(alias="sellToken")
    amount_in: Uint256 = Field(alias="amountIn")


class LongTermOrderRequest(_Model):
    owner: Identity
    sell_token: str = Field(alias="sellToken")
    amount: Uint256
    intervals: int = Field(ge=0, description="Interval boundaries to sell across")


class OrderActionRequest(_Model):
    caller: Identity


# =============================================================================
# Responses
# =============================================================================


class TransferModel(_Model):
    """A token movement the custodian must execute."""

    direction: TransferDirection
    token: str
    account: str
    amount: Uint256

    @classmethod
    def from_transfer(cls, transfer: Transfer) -> TransferModel:
        return cls(
            direction=transfer.direction,
            token=transfer.token,
            account=transfer.account,
            amount=str(transfer.amount),
        )


class LiquidityResponse(_Model):
    shares: Uint256
    amount0: Uint256
    amount1: Uint256
    transfers: list[TransferModel] = Field(default_factory=list)


class SwapResponse(_Model):
    sell_token: str = Field(alias="sellToken")
    buy_token: str = Field(alias="buyToken")
    amount_in: Uint256 = Field(alias="amountIn")
    amount_out: Uint256 = Field(alias="amountOut")
    transfers: list[TransferModel] = Field(default_factory=list)


class OrderResponse(_Model):
    id: int
    owner: str
    sell_token: str = Field(alias="sellToken")
    buy_token: str = Field(alias="buyToken")
    sale_rate: Uint256 = Field(alias="saleRate")
    start_time: int = Field(alias="startTime")
    expiry: int
    deposit: Uint256
    status: OrderStatus
    withdrawable: Uint256 = Field(description="Proceeds claimable at the last virtual order time")
    transfers: list[TransferModel] = Field(default_factory=list)

    @classmethod
    def from_order(
        cls,
        order: Order,
        status: OrderStatus,
        withdrawable: int,
        transfers: list[Transfer] | None = None,
    ) -> OrderResponse:
        return cls(
            id=order.id,
            owner=order.owner,
            sell_token=order.sell_token,
            buy_token=order.buy_token,
            sale_rate=str(order.sale_rate),
            start_time=order.start_time,
            expiry=order.expiry,
            deposit=str(order.deposit),
            status=status,
            withdrawable=str(withdrawable),
            transfers=[TransferModel.from_transfer(t) for t in transfers or []],
        )


class CancelResponse(_Model):
    order_id: int = Field(alias="orderId")
    unsold: Uint256
    purchased: Uint256
    transfers: list[TransferModel] = Field(default_factory=list)

    @classmethod
    def from_result(
        cls, order_id: int, result: CancelResult, transfers: list[Transfer]
    ) -> CancelResponse:
        return cls(
            order_id=order_id,
            unsold=str(result.unsold),
            purchased=str(result.purchased),
            transfers=[TransferModel.from_transfer(t) for t in transfers],
        )


class WithdrawResponse(_Model):
    order_id: int = Field(alias="orderId")
    proceeds: Uint256
    transfers: list[TransferModel] = Field(default_factory=list)


# =============================================================================
# Snapshots
# =============================================================================


class PoolSnapshot(_Model):
    """State of one order pool."""

    token: str
    current_sale_rate: Uint256 = Field(alias="currentSaleRate")
    reward_factor: str = Field(alias="rewardFactor", description="Decimal proceeds per unit rate")
    total_distributed: Uint256 = Field(alias="totalDistributed")
    order_count: int = Field(alias="orderCount")


class EngineSnapshot(_Model):
    """Point-in-time view of an engine instance."""

    token0: str
    token1: str
    reserve0: Uint256
    reserve1: Uint256
    projected_reserve0: Uint256 = Field(alias="projectedReserve0")
    projected_reserve1: Uint256 = Field(alias="projectedReserve1")
    total_shares: Uint256 = Field(alias="totalShares")
    order_block_interval: int = Field(alias="orderBlockInterval")
    last_virtual_order_time: int = Field(alias="lastVirtualOrderTime")
    current_time: int = Field(alias="currentTime")
    pools: list[PoolSnapshot]


__all__ = [
    "Uint256",
    "validate_uint256",
    "InitialLiquidityRequest",
    "LiquidityRequest",
    "SwapRequest",
    "LongTermOrderRequest",
    "OrderActionRequest",
    "TransferModel",
    "LiquidityResponse",
    "SwapResponse",
    "OrderResponse",
    "CancelResponse",
    "WithdrawResponse",
    "PoolSnapshot",
    "EngineSnapshot",
]
