"""Pytest configuration and fixtures."""

import pytest

from tests.helpers import (
    ALICE,
    INITIAL_RESERVE,
    TokenLedger,
    make_engine,
    make_executor,
    make_registry,
)
from twamm.engine import TwammEngine
from twamm.interfaces import ManualClock, TransferJournal
from twamm.orders.executor import VirtualOrderExecutor
from twamm.orders.registry import LongTermOrderRegistry


@pytest.fixture
def clock() -> ManualClock:
    """Clock starting at time step 0."""
    return ManualClock()


@pytest.fixture
def executor() -> VirtualOrderExecutor:
    """Executor over reserves (1000, 1000) with interval 10 and no orders."""
    return make_executor()


@pytest.fixture
def registry(clock: ManualClock) -> LongTermOrderRegistry:
    """Registry over reserves (1000, 1000) with interval 10."""
    return make_registry(clock)


@pytest.fixture
def journal() -> TransferJournal:
    return TransferJournal()


@pytest.fixture
def engine(clock: ManualClock, journal: TransferJournal) -> TwammEngine:
    """Engine seeded by ALICE with (1000, 1000); the journal starts empty."""
    engine = make_engine(clock, transfers=journal)
    engine.provide_initial_liquidity(ALICE, INITIAL_RESERVE, INITIAL_RESERVE)
    journal.drain()
    return engine


@pytest.fixture
def ledger() -> TokenLedger:
    return TokenLedger()
