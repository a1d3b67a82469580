"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Token identifiers, identities and pool parameters
- factories: Executor, registry and engine factories plus a Transfers double
"""

from tests.helpers.constants import (
    ALICE,
    BOB,
    CAROL,
    INITIAL_RESERVE,
    ORDER_BLOCK_INTERVAL,
    TOKEN0,
    TOKEN1,
)
from tests.helpers.factories import (
    TokenLedger,
    make_engine,
    make_executor,
    make_registry,
    make_reserves,
)

__all__ = [
    # Constants
    "TOKEN0",
    "TOKEN1",
    "ALICE",
    "BOB",
    "CAROL",
    "ORDER_BLOCK_INTERVAL",
    "INITIAL_RESERVE",
    # Factories
    "make_reserves",
    "make_executor",
    "make_registry",
    "make_engine",
    "TokenLedger",
]
