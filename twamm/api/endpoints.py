"""API endpoints for the TWAMM engine."""

import threading
from collections.abc import Callable
from typing import TypeVar

import structlog
from fastapi import APIRouter, Depends, status

from twamm.engine import TwammEngine, get_default_engine
from twamm.errors import AuthorizationError, NotFoundError, TwammError
from twamm.interfaces import Transfer, TransferJournal
from twamm.models import (
    CancelResponse,
    EngineSnapshot,
    InitialLiquidityRequest,
    LiquidityRequest,
    LiquidityResponse,
    LongTermOrderRequest,
    OrderActionRequest,
    OrderResponse,
    SwapRequest,
    SwapResponse,
    TransferModel,
    WithdrawResponse,
)

logger = structlog.get_logger()

router = APIRouter()

# Engine operations are not reentrant; FastAPI runs sync endpoints in a threadpool
_engine_lock = threading.Lock()

T = TypeVar("T")


def get_engine() -> TwammEngine:
    """Dependency provider for the engine instance.

    Override this in tests to inject an engine with a manual clock:
        app.dependency_overrides[get_engine] = lambda: engine

    Returns:
        The engine instance to serve requests with.
    """
    return get_default_engine()


def status_for_error(err: TwammError) -> int:
    """HTTP status code for an engine error."""
    if isinstance(err, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(err, AuthorizationError):
        return status.HTTP_403_FORBIDDEN
    return status.HTTP_400_BAD_REQUEST


def _drain(engine: TwammEngine) -> list[Transfer]:
    if isinstance(engine.transfers, TransferJournal):
        return engine.transfers.drain()
    return []


def _run(engine: TwammEngine, operation: Callable[[], T]) -> tuple[T, list[Transfer]]:
    """Run one engine operation under the lock.

    Returns the operation's result and the transfers it recorded. Transfers
    recorded by an operation that raised are discarded with it.
    """
    with _engine_lock:
        try:
            result = operation()
        except Exception:
            _drain(engine)
            raise
        return result, _drain(engine)


# =============================================================================
# State
# =============================================================================


@router.get("/state")
def get_state(engine: TwammEngine = Depends(get_engine)) -> EngineSnapshot:
    """Reserves, shares and order pools as of the last virtual order time."""
    with _engine_lock:
        return engine.snapshot()


@router.post("/virtual-orders/execute")
def execute_virtual_orders(engine: TwammEngine = Depends(get_engine)) -> EngineSnapshot:
    """Catch virtual orders up to the current time and return the new state."""
    steps, _ = _run(engine, engine.execute_virtual_orders)
    logger.info("virtual_orders_executed_via_api", steps=len(steps))
    with _engine_lock:
        return engine.snapshot()


# =============================================================================
# Liquidity
# =============================================================================


@router.post("/liquidity/initial")
def provide_initial_liquidity(
    request: InitialLiquidityRequest,
    engine: TwammEngine = Depends(get_engine),
) -> LiquidityResponse:
    result, transfers = _run(
        engine,
        lambda: engine.provide_initial_liquidity(
            request.provider, int(request.amount0), int(request.amount1)
        ),
    )
    return LiquidityResponse(
        shares=str(result.shares),
        amount0=str(result.amount0),
        amount1=str(result.amount1),
        transfers=[TransferModel.from_transfer(t) for t in transfers],
    )


@router.post("/liquidity/provide")
def provide_liquidity(
    request: LiquidityRequest,
    engine: TwammEngine = Depends(get_engine),
) -> LiquidityResponse:
    result, transfers = _run(
        engine, lambda: engine.provide_liquidity(request.provider, int(request.shares))
    )
    return LiquidityResponse(
        shares=str(result.shares),
        amount0=str(result.amount0),
        amount1=str(result.amount1),
        transfers=[TransferModel.from_transfer(t) for t in transfers],
    )


@router.post("/liquidity/remove")
def remove_liquidity(
    request: LiquidityRequest,
    engine: TwammEngine = Depends(get_engine),
) -> LiquidityResponse:
    result, transfers = _run(
        engine, lambda: engine.remove_liquidity(request.provider, int(request.shares))
    )
    return LiquidityResponse(
        shares=str(result.shares),
        amount0=str(result.amount0),
        amount1=str(result.amount1),
        transfers=[TransferModel.from_transfer(t) for t in transfers],
    )


# =============================================================================
# Instant swaps
# =============================================================================


@router.post("/swap")
def swap(request: SwapRequest, engine: TwammEngine = Depends(get_engine)) -> SwapResponse:
    result, transfers = _run(
        engine, lambda: engine.swap(request.trader, request.sell_token, int(request.amount_in))
    )
    return SwapResponse(
        sell_token=result.sell_token,
        buy_token=result.buy_token,
        amount_in=str(result.amount_in),
        amount_out=str(result.amount_out),
        transfers=[TransferModel.from_transfer(t) for t in transfers],
    )


# =============================================================================
# Long-term orders
# =============================================================================


@router.post("/orders")
def create_order(
    request: LongTermOrderRequest,
    engine: TwammEngine = Depends(get_engine),
) -> OrderResponse:
    """Place a long-term order selling `amount` across `intervals` boundaries."""
    order, transfers = _run(
        engine,
        lambda: engine.long_term_swap(
            request.owner, request.sell_token, int(request.amount), request.intervals
        ),
    )
    with _engine_lock:
        order_status = engine.registry.order_status(order.id)
        withdrawable = engine.registry.withdrawable_proceeds(order.id)
    return OrderResponse.from_order(order, order_status, withdrawable, transfers)


@router.get("/orders/{order_id}")
def get_order(order_id: int, engine: TwammEngine = Depends(get_engine)) -> OrderResponse:
    """Order details; status and proceeds are as of the last virtual order time."""
    with _engine_lock:
        order = engine.registry.get_order(order_id)
        order_status = engine.registry.order_status(order_id)
        withdrawable = engine.registry.withdrawable_proceeds(order_id)
    return OrderResponse.from_order(order, order_status, withdrawable)


@router.post("/orders/{order_id}/cancel")
def cancel_order(
    order_id: int,
    request: OrderActionRequest,
    engine: TwammEngine = Depends(get_engine),
) -> CancelResponse:
    result, transfers = _run(
        engine, lambda: engine.cancel_long_term_swap(request.caller, order_id)
    )
    return CancelResponse.from_result(order_id, result, transfers)


@router.post("/orders/{order_id}/withdraw")
def withdraw_proceeds(
    order_id: int,
    request: OrderActionRequest,
    engine: TwammEngine = Depends(get_engine),
) -> WithdrawResponse:
    proceeds, transfers = _run(engine, lambda: engine.withdraw_proceeds(request.caller, order_id))
    return WithdrawResponse(
        order_id=order_id,
        proceeds=str(proceeds),
        transfers=[TransferModel.from_transfer(t) for t in transfers],
    )
