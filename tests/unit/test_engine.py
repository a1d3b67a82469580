"""Tests for the TwammEngine facade."""

import pytest

from tests.helpers import ALICE, BOB, TOKEN0, TOKEN1, make_engine
from twamm.errors import InvalidAmountError, LiquidityError, NotFoundError, TransferError
from twamm.interfaces import Transfer, TransferDirection, TransferJournal
from twamm.orders.types import OrderStatus


def _in(token: str, account: str, amount: int) -> Transfer:
    return Transfer(TransferDirection.IN, token, account, amount)


def _out(token: str, account: str, amount: int) -> Transfer:
    return Transfer(TransferDirection.OUT, token, account, amount)


class _RefusingJournal(TransferJournal):
    """Journal whose custodian refuses every payout."""

    def transfer_out(self, token: str, recipient: str, amount: int) -> None:
        raise TransferError("custodian refused payout")


class TestLiquidity:
    """Tests for providing and removing liquidity."""

    def test_initial_liquidity(self, clock, journal):
        engine = make_engine(clock, transfers=journal)
        result = engine.provide_initial_liquidity(ALICE, 1000, 4000)
        assert result.shares == 2000
        assert engine.get_reserves() == (1000, 4000)
        assert engine.shares.balance_of(ALICE) == 2000
        assert journal.drain() == [_in(TOKEN0, ALICE, 1000), _in(TOKEN1, ALICE, 4000)]

    def test_initial_liquidity_only_once(self, engine):
        with pytest.raises(LiquidityError):
            engine.provide_initial_liquidity(BOB, 10, 10)

    def test_provide_before_initial_raises(self, clock):
        engine = make_engine(clock)
        with pytest.raises(LiquidityError):
            engine.provide_liquidity(ALICE, 10)

    def test_provide_proportional(self, engine, journal):
        result = engine.provide_liquidity(BOB, 100)
        assert (result.amount0, result.amount1) == (100, 100)
        assert engine.shares.total_supply() == 1100
        assert engine.get_reserves() == (1100, 1100)
        assert journal.drain() == [_in(TOKEN0, BOB, 100), _in(TOKEN1, BOB, 100)]

    def test_provide_rounding_to_zero_raises(self, clock):
        engine = make_engine(clock)
        engine.provide_initial_liquidity(ALICE, 1000, 10)
        with pytest.raises(InvalidAmountError):
            engine.provide_liquidity(BOB, 5)
        assert engine.shares.total_supply() == 100

    def test_remove(self, engine, journal):
        result = engine.remove_liquidity(ALICE, 250)
        assert (result.amount0, result.amount1) == (250, 250)
        assert engine.get_reserves() == (750, 750)
        assert engine.shares.balance_of(ALICE) == 750
        assert journal.drain() == [_out(TOKEN0, ALICE, 250), _out(TOKEN1, ALICE, 250)]

    def test_remove_more_than_held_raises(self, engine):
        with pytest.raises(LiquidityError):
            engine.remove_liquidity(BOB, 1)
        assert engine.get_reserves() == (1000, 1000)

    def test_remove_all_shares_raises(self, engine, journal):
        with pytest.raises(LiquidityError):
            engine.remove_liquidity(ALICE, 1000)
        assert engine.shares.total_supply() == 1000
        assert engine.get_reserves() == (1000, 1000)
        assert journal.drain() == []

    def test_remove_all_but_one_share(self, engine):
        result = engine.remove_liquidity(ALICE, 999)
        assert (result.amount0, result.amount1) == (999, 999)
        assert engine.get_reserves() == (1, 1)

    def test_orders_stay_recoverable_after_full_exit_attempt(self, clock, engine):
        """Open orders on both sides can still be cancelled and paid out."""
        sell0 = engine.long_term_swap(BOB, TOKEN0, 100, 1)
        sell1 = engine.long_term_swap(BOB, TOKEN1, 100, 1)
        with pytest.raises(LiquidityError):
            engine.remove_liquidity(ALICE, 1000)

        clock.set(5)

        assert engine.cancel_long_term_swap(BOB, sell0.id).unsold == 75
        assert engine.cancel_long_term_swap(BOB, sell1.id).unsold == 75
        reserve0, reserve1 = engine.get_reserves()
        assert reserve0 > 0 and reserve1 > 0

    def test_liquidity_uses_caught_up_reserves(self, clock, engine):
        """Deposits are priced after virtual orders are settled."""
        engine.long_term_swap(BOB, TOKEN0, 100, 0)
        clock.set(10)
        result = engine.provide_liquidity(BOB, 100)
        assert (result.amount0, result.amount1) == (110, 91)
        assert engine.get_reserves() == (1210, 1001)


class TestSwap:
    """Tests for instant swaps."""

    def test_swap(self, engine, journal):
        result = engine.swap(BOB, TOKEN0, 100)
        assert result.buy_token == TOKEN1
        assert result.amount_out == 90
        assert engine.get_reserves() == (1100, 910)
        assert journal.drain() == [_in(TOKEN0, BOB, 100), _out(TOKEN1, BOB, 90)]

    def test_swap_other_direction(self, engine):
        result = engine.swap(BOB, TOKEN1, 100)
        assert result.buy_token == TOKEN0
        assert engine.get_reserves() == (910, 1100)

    def test_unknown_token_raises(self, engine):
        with pytest.raises(InvalidAmountError):
            engine.swap(BOB, "token2", 100)

    def test_non_positive_amount_raises(self, engine):
        with pytest.raises(InvalidAmountError):
            engine.swap(BOB, TOKEN0, 0)

    def test_zero_output_raises(self, engine):
        """1 token in against (1000, 1000) rounds to nothing out."""
        with pytest.raises(InvalidAmountError):
            engine.swap(BOB, TOKEN0, 1)
        assert engine.get_reserves() == (1000, 1000)


class TestLongTermOrders:
    """Tests for the long-term order entry points."""

    def test_order_charges_deposit(self, clock, engine, journal):
        clock.set(13)
        order = engine.long_term_swap(BOB, TOKEN0, 100, 0)
        assert order.deposit == 98
        assert journal.drain() == [_in(TOKEN0, BOB, 98)]

    def test_cancel_pays_both_tokens(self, clock, engine, journal):
        order = engine.long_term_swap(BOB, TOKEN0, 100, 1)
        journal.drain()
        clock.set(10)
        result = engine.cancel_long_term_swap(BOB, order.id)
        assert (result.unsold, result.purchased) == (50, 47)
        assert journal.drain() == [_out(TOKEN0, BOB, 50), _out(TOKEN1, BOB, 47)]

    def test_cancel_before_any_sale_pays_only_refund(self, engine, journal):
        order = engine.long_term_swap(BOB, TOKEN0, 100, 0)
        journal.drain()
        engine.cancel_long_term_swap(BOB, order.id)
        assert journal.drain() == [_out(TOKEN0, BOB, 100)]

    def test_withdraw_proceeds(self, clock, engine, journal):
        order = engine.long_term_swap(BOB, TOKEN0, 100, 0)
        journal.drain()
        clock.set(10)
        assert engine.withdraw_proceeds(BOB, order.id) == 90
        assert journal.drain() == [_out(TOKEN1, BOB, 90)]
        assert engine.registry.order_status(order.id) == OrderStatus.SETTLED

    def test_unknown_order_raises(self, engine):
        with pytest.raises(NotFoundError):
            engine.withdraw_proceeds(BOB, 3)

    def test_execute_virtual_orders(self, clock, engine):
        engine.long_term_swap(BOB, TOKEN0, 100, 0)
        clock.set(10)
        steps = engine.execute_virtual_orders()
        assert [step.time for step in steps] == [10]
        assert engine.get_reserves() == (1100, 910)


class TestRollback:
    """Failed transfers leave reserves, shares and orders untouched."""

    @pytest.fixture
    def funded_engine(self, clock, ledger):
        ledger.fund(ALICE, TOKEN0, 1000)
        ledger.fund(ALICE, TOKEN1, 1000)
        engine = make_engine(clock, transfers=ledger)
        engine.provide_initial_liquidity(ALICE, 1000, 1000)
        return engine

    def test_unfunded_initial_liquidity(self, clock, ledger):
        engine = make_engine(clock, transfers=ledger)
        with pytest.raises(TransferError):
            engine.provide_initial_liquidity(BOB, 1000, 1000)
        assert engine.shares.total_supply() == 0
        assert engine.get_reserves() == (0, 0)

    def test_unfunded_swap_after_virtual_orders(self, clock, ledger, funded_engine):
        """The catch-up settlement is rolled back together with the swap."""
        ledger.fund(BOB, TOKEN1, 100)
        funded_engine.long_term_swap(BOB, TOKEN1, 100, 0)
        clock.set(10)

        with pytest.raises(TransferError):
            funded_engine.swap(BOB, TOKEN0, 100)

        assert funded_engine.registry.last_virtual_order_time == 0
        assert funded_engine.get_reserves() == (1000, 1000)

    def test_unfunded_order(self, ledger, funded_engine):
        with pytest.raises(TransferError):
            funded_engine.long_term_swap(BOB, TOKEN0, 100, 0)
        assert funded_engine.registry.orders == {}
        assert funded_engine.registry.pool(TOKEN0).current_sale_rate == 0

    def test_unfunded_provide(self, ledger, funded_engine):
        with pytest.raises(TransferError):
            funded_engine.provide_liquidity(BOB, 100)
        assert funded_engine.shares.balance_of(BOB) == 0
        assert funded_engine.shares.total_supply() == 1000
        assert funded_engine.get_reserves() == (1000, 1000)

    def test_failed_payout_discards_recorded_transfers(self, clock):
        """The transfer_in recorded before the failing transfer_out is dropped."""
        journal = _RefusingJournal()
        engine = make_engine(clock, transfers=journal)
        engine.provide_initial_liquidity(ALICE, 1000, 1000)
        journal.drain()

        with pytest.raises(TransferError):
            engine.swap(BOB, TOKEN0, 100)

        assert journal.entries == []
        assert engine.get_reserves() == (1000, 1000)

    def test_funded_swap_moves_balances(self, ledger, funded_engine):
        ledger.fund(BOB, TOKEN0, 100)
        funded_engine.swap(BOB, TOKEN0, 100)
        assert ledger.balance(BOB, TOKEN0) == 0
        assert ledger.balance(BOB, TOKEN1) == 90


class TestSnapshot:
    def test_snapshot_after_settlement(self, clock, engine):
        engine.long_term_swap(BOB, TOKEN0, 100, 0)
        clock.set(10)
        engine.execute_virtual_orders()

        snapshot = engine.snapshot()

        assert (snapshot.reserve0, snapshot.reserve1) == ("1100", "910")
        assert (snapshot.projected_reserve0, snapshot.projected_reserve1) == ("1100", "910")
        assert snapshot.total_shares == "1000"
        assert snapshot.last_virtual_order_time == 10
        assert snapshot.current_time == 10
        pool0, pool1 = snapshot.pools
        assert pool0.token == TOKEN0
        assert pool0.reward_factor == "9"
        assert pool0.total_distributed == "90"
        assert pool0.current_sale_rate == "0"
        assert pool1.order_count == 0

    def test_snapshot_projects_reserves_to_current_time(self, clock, engine):
        """Projection does not settle anything."""
        engine.long_term_swap(BOB, TOKEN0, 100, 0)
        clock.set(10)

        snapshot = engine.snapshot()

        assert (snapshot.reserve0, snapshot.reserve1) == ("1000", "1000")
        assert (snapshot.projected_reserve0, snapshot.projected_reserve1) == ("1100", "910")
        assert engine.registry.last_virtual_order_time == 0
        assert snapshot.pools[0].current_sale_rate == "10"

    def test_snapshot_serializes_camel_case(self, engine):
        data = engine.snapshot().model_dump(by_alias=True)
        assert data["orderBlockInterval"] == 10
        assert data["pools"][0]["currentSaleRate"] == "0"
        assert data["projectedReserve0"] == "1000"
