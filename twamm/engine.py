"""TWAMM engine: constant product pool plus long-term orders.

Imperative shell around the order registry. Every operation follows the same
discipline:

1. catch virtual orders up to the clock's current time
2. validate and compute everything
3. mutate reserves, shares and order bookkeeping
4. ask the Transfers collaborator to move tokens (in before out)

If any step raises, reserves, shares and registry are restored to their
state before the operation and the error propagates to the caller.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import structlog

from twamm.amm.constant_product import constant_product
from twamm.config import EngineConfig
from twamm.errors import InvalidAmountError, LiquidityError
from twamm.interfaces import (
    BlockClock,
    Clock,
    InMemoryReserves,
    InMemoryShareLedger,
    ReserveStore,
    ShareLedger,
    TransferJournal,
    Transfers,
)
from twamm.math.fixed_point import Fixed
from twamm.models import EngineSnapshot, PoolSnapshot
from twamm.orders.executor import SettlementStep
from twamm.orders.registry import LongTermOrderRegistry
from twamm.orders.types import CancelResult, Order
from twamm.safe_int import S

logger = structlog.get_logger()


@dataclass(frozen=True)
class LiquidityResult:
    """Shares minted or burned and the token amounts moved."""

    shares: int
    amount0: int
    amount1: int


@dataclass(frozen=True)
class SwapResult:
    """Result of an instant swap against the pool."""

    sell_token: str
    buy_token: str
    amount_in: int
    amount_out: int


class TwammEngine:
    """One two-token TWAMM instance.

    Args:
        config: Tokens and order block interval
        clock: Source of the current time step
        reserves: Reserve store (default: in-memory)
        transfers: Token custody collaborator (default: TransferJournal)
        shares: Liquidity share ledger (default: in-memory)
    """

    def __init__(
        self,
        config: EngineConfig,
        clock: Clock,
        reserves: ReserveStore | None = None,
        transfers: Transfers | None = None,
        shares: ShareLedger | None = None,
    ) -> None:
        self.config = config
        self.clock = clock
        if reserves is None:
            reserves = InMemoryReserves((config.token0, config.token1))
        self.reserves = reserves
        self.transfers = transfers if transfers is not None else TransferJournal()
        self.shares = shares if shares is not None else InMemoryShareLedger()
        self.registry = LongTermOrderRegistry(
            token0=config.token0,
            token1=config.token1,
            order_block_interval=config.order_block_interval,
            reserves=self.reserves,
            clock=clock,
        )

    @property
    def token0(self) -> str:
        return self.config.token0

    @property
    def token1(self) -> str:
        return self.config.token1

    def get_reserves(self) -> tuple[int, int]:
        """Reserves as of the last virtual order time."""
        return self.reserves.get(self.token0), self.reserves.get(self.token1)

    # --- Virtual orders ---

    def execute_virtual_orders(self) -> list[SettlementStep]:
        """Catch virtual orders up to the current time."""
        return self.registry.execute_virtual_orders()

    # --- Liquidity ---

    def provide_initial_liquidity(
        self, provider: str, amount0: int, amount1: int
    ) -> LiquidityResult:
        """Seed the pool; shares minted are the geometric mean of the amounts.

        Raises:
            LiquidityError: If shares already exist
            InvalidAmountError: If an amount is not positive
        """
        if self.shares.total_supply() != 0:
            raise LiquidityError("Liquidity has already been provided, use provide_liquidity")
        minted = constant_product.initial_shares(amount0, amount1)

        with self._atomic("provide_initial_liquidity"):
            self.registry.executor.advance_to(self.clock.current_time())
            reserve0, reserve1 = self.get_reserves()
            self.reserves.set(self.token0, (S(reserve0) + amount0).value)
            self.reserves.set(self.token1, (S(reserve1) + amount1).value)
            self.shares.mint(provider, minted)
            self.transfers.transfer_in(self.token0, provider, amount0)
            self.transfers.transfer_in(self.token1, provider, amount1)

        logger.info(
            "liquidity_provided",
            provider=provider,
            shares=minted,
            amount0=amount0,
            amount1=amount1,
            initial=True,
        )
        return LiquidityResult(shares=minted, amount0=amount0, amount1=amount1)

    def provide_liquidity(self, provider: str, shares: int) -> LiquidityResult:
        """Mint `shares`, charging the provider proportional reserve amounts.

        Raises:
            LiquidityError: If the pool has not been seeded
            InvalidAmountError: If shares is not positive or the deposit rounds to 0
        """
        with self._atomic("provide_liquidity"):
            self.registry.executor.advance_to(self.clock.current_time())
            reserve0, reserve1 = self.get_reserves()
            amount0, amount1 = constant_product.shares_to_amounts(
                shares, reserve0, reserve1, self.shares.total_supply()
            )
            if amount0 == 0 or amount1 == 0:
                raise InvalidAmountError(f"{shares} shares is too small to deposit against")
            self.reserves.set(self.token0, reserve0 + amount0)
            self.reserves.set(self.token1, reserve1 + amount1)
            self.shares.mint(provider, shares)
            self.transfers.transfer_in(self.token0, provider, amount0)
            self.transfers.transfer_in(self.token1, provider, amount1)

        logger.info(
            "liquidity_provided",
            provider=provider,
            shares=shares,
            amount0=amount0,
            amount1=amount1,
            initial=False,
        )
        return LiquidityResult(shares=shares, amount0=amount0, amount1=amount1)

    def remove_liquidity(self, provider: str, shares: int) -> LiquidityResult:
        """Burn `shares` and pay out the proportional reserves.

        The pool always keeps some liquidity: burning the entire share
        supply, or draining either reserve, is refused.

        Raises:
            LiquidityError: If the provider holds fewer shares or the burn would
                empty the pool
            InvalidAmountError: If shares is not positive
        """
        with self._atomic("remove_liquidity"):
            self.registry.executor.advance_to(self.clock.current_time())
            reserve0, reserve1 = self.get_reserves()
            total_supply = self.shares.total_supply()
            amount0, amount1 = constant_product.shares_to_amounts(
                shares, reserve0, reserve1, total_supply
            )
            self.shares.burn(provider, shares)
            if shares == total_supply or amount0 == reserve0 or amount1 == reserve1:
                raise LiquidityError("Cannot remove the last of the pool's liquidity")
            self.reserves.set(self.token0, (S(reserve0) - amount0).value)
            self.reserves.set(self.token1, (S(reserve1) - amount1).value)
            if amount0:
                self.transfers.transfer_out(self.token0, provider, amount0)
            if amount1:
                self.transfers.transfer_out(self.token1, provider, amount1)

        logger.info(
            "liquidity_removed",
            provider=provider,
            shares=shares,
            amount0=amount0,
            amount1=amount1,
        )
        return LiquidityResult(shares=shares, amount0=amount0, amount1=amount1)

    # --- Instant swaps ---

    def swap(self, trader: str, sell_token: str, amount_in: int) -> SwapResult:
        """Swap `amount_in` of `sell_token` against the pool immediately.

        Raises:
            InvalidAmountError: Unknown token, non-positive amount, or zero output
        """
        buy_token = self.registry.other_token(sell_token)
        if amount_in <= 0:
            raise InvalidAmountError(f"Swap amount must be positive, got {amount_in}")

        with self._atomic("swap"):
            self.registry.executor.advance_to(self.clock.current_time())
            reserve_in = self.reserves.get(sell_token)
            reserve_out = self.reserves.get(buy_token)
            amount_out = constant_product.get_amount_out(amount_in, reserve_in, reserve_out)
            if amount_out == 0:
                raise InvalidAmountError(f"Swapping {amount_in} {sell_token} yields nothing")
            self.reserves.set(sell_token, reserve_in + amount_in)
            self.reserves.set(buy_token, (S(reserve_out) - amount_out).value)
            self.transfers.transfer_in(sell_token, trader, amount_in)
            self.transfers.transfer_out(buy_token, trader, amount_out)

        logger.info(
            "instant_swap",
            trader=trader,
            sell_token=sell_token,
            amount_in=amount_in,
            amount_out=amount_out,
        )
        return SwapResult(
            sell_token=sell_token,
            buy_token=buy_token,
            amount_in=amount_in,
            amount_out=amount_out,
        )

    # --- Long-term orders ---

    def long_term_swap(
        self,
        owner: str,
        sell_token: str,
        amount: int,
        number_of_intervals: int,
    ) -> Order:
        """Place a long-term order; the owner is charged order.deposit."""
        with self._atomic("long_term_swap"):
            order = self.registry.create_order(sell_token, amount, number_of_intervals, owner)
            self.transfers.transfer_in(sell_token, owner, order.deposit)
        return order

    def cancel_long_term_swap(self, caller: str, order_id: int) -> CancelResult:
        """Cancel an order, refunding the unsold amount and paying proceeds."""
        with self._atomic("cancel_long_term_swap"):
            order = self.registry.get_order(order_id)
            result = self.registry.cancel_order(order_id, caller)
            if result.unsold:
                self.transfers.transfer_out(order.sell_token, caller, result.unsold)
            if result.purchased:
                self.transfers.transfer_out(order.buy_token, caller, result.purchased)
        return result

    def withdraw_proceeds(self, caller: str, order_id: int) -> int:
        """Pay out an order's proceeds earned so far."""
        with self._atomic("withdraw_proceeds"):
            order = self.registry.get_order(order_id)
            proceeds = self.registry.withdraw_proceeds(order_id, caller)
            self.transfers.transfer_out(order.buy_token, caller, proceeds)
        return proceeds

    # --- Views ---

    def snapshot(self) -> EngineSnapshot:
        """Point-in-time view of reserves, shares and order pools.

        Reserves and pools are as of the last virtual order time; the projected
        reserves are what catching up to the current time would produce.
        """
        reserve0, reserve1 = self.get_reserves()
        current_time = self.clock.current_time()
        projected0, projected1 = self.registry.executor.simulate_to(current_time)
        pools = [
            PoolSnapshot(
                token=pool.token,
                current_sale_rate=str(pool.current_sale_rate),
                reward_factor=str(Fixed(pool.reward_factor)),
                total_distributed=str(pool.total_distributed),
                order_count=len(pool),
            )
            for pool in (self.registry.pool(self.token0), self.registry.pool(self.token1))
        ]
        return EngineSnapshot(
            token0=self.token0,
            token1=self.token1,
            reserve0=str(reserve0),
            reserve1=str(reserve1),
            projected_reserve0=str(projected0),
            projected_reserve1=str(projected1),
            total_shares=str(self.shares.total_supply()),
            order_block_interval=self.registry.order_block_interval,
            last_virtual_order_time=self.registry.last_virtual_order_time,
            current_time=current_time,
            pools=pools,
        )

    # --- Internals ---

    @contextmanager
    def _atomic(self, operation: str) -> Iterator[None]:
        registry_checkpoint = self.registry.checkpoint()
        shares_checkpoint = self.shares.checkpoint()
        journal = self.transfers if isinstance(self.transfers, TransferJournal) else None
        journal_checkpoint = journal.checkpoint() if journal is not None else 0
        try:
            yield
        except Exception as err:
            self.registry.restore(registry_checkpoint)
            self.shares.restore(shares_checkpoint)
            if journal is not None:
                journal.restore(journal_checkpoint)
            logger.warning(
                "engine_operation_rolled_back",
                operation=operation,
                error_type=type(err).__name__,
                error=str(err),
            )
            raise


_default_engine: TwammEngine | None = None


def _create_default_engine() -> TwammEngine:
    """Create the engine served by the HTTP API.

    Configured from TWAMM_* environment variables, timed by a BlockClock and
    recording token movements in a TransferJournal.
    """
    config = EngineConfig.from_env()
    logger.info(
        "engine_created",
        token0=config.token0,
        token1=config.token1,
        order_block_interval=config.order_block_interval,
        block_time_seconds=config.block_time_seconds,
    )
    return TwammEngine(config, BlockClock(config.block_time_seconds), transfers=TransferJournal())


def get_default_engine() -> TwammEngine:
    """Process-wide engine instance, created on first use."""
    global _default_engine
    if _default_engine is None:
        _default_engine = _create_default_engine()
    return _default_engine


__all__ = ["LiquidityResult", "SwapResult", "TwammEngine", "get_default_engine"]
