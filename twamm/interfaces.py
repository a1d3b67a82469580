"""Collaborator interfaces the engine depends on, with in-memory implementations.

The engine never owns token custody, share accounting or the clock. It talks
to them through these protocols:

- ReserveStore: the two pool reserves
- Clock: current time step (block number equivalent)
- Transfers: moving tokens in and out of the pool's custody
- ShareLedger: liquidity-provider shares

Identities (order owners, liquidity providers, traders) are plain strings.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from twamm.errors import InvalidAmountError, LiquidityError, TransferError


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class ReserveStore(Protocol):
    """Non-negative reserve per token."""

    def get(self, token: str) -> int:
        """Current reserve of `token`."""
        ...

    def set(self, token: str, amount: int) -> None:
        """Overwrite the reserve of `token`."""
        ...


@runtime_checkable
class Clock(Protocol):
    """Monotonically non-decreasing time step source."""

    def current_time(self) -> int:
        """Current time step."""
        ...


@runtime_checkable
class Transfers(Protocol):
    """Token custody. Each call either fully succeeds or raises TransferError."""

    def transfer_in(self, token: str, sender: str, amount: int) -> None:
        """Move `amount` of `token` from `sender` into the pool."""
        ...

    def transfer_out(self, token: str, recipient: str, amount: int) -> None:
        """Move `amount` of `token` from the pool to `recipient`."""
        ...


@runtime_checkable
class ShareLedger(Protocol):
    """Liquidity-provider share balances."""

    def total_supply(self) -> int: ...

    def balance_of(self, holder: str) -> int: ...

    def mint(self, holder: str, amount: int) -> None: ...

    def burn(self, holder: str, amount: int) -> None: ...

    def checkpoint(self) -> object:
        """Opaque snapshot for restore()."""
        ...

    def restore(self, checkpoint: object) -> None: ...


# =============================================================================
# In-memory implementations
# =============================================================================


class InMemoryReserves:
    """ReserveStore backed by a dict."""

    def __init__(self, tokens: tuple[str, str], initial: dict[str, int] | None = None) -> None:
        self._reserves = {token: 0 for token in tokens}
        for token, amount in (initial or {}).items():
            self.set(token, amount)

    def get(self, token: str) -> int:
        try:
            return self._reserves[token]
        except KeyError:
            raise InvalidAmountError(f"Token {token} not in pool") from None

    def set(self, token: str, amount: int) -> None:
        if token not in self._reserves:
            raise InvalidAmountError(f"Token {token} not in pool")
        if amount < 0:
            raise InvalidAmountError(f"Reserve of {token} cannot be negative: {amount}")
        self._reserves[token] = amount

    def as_dict(self) -> dict[str, int]:
        return dict(self._reserves)


class ManualClock:
    """Clock moved explicitly by the caller (tests, simulations)."""

    def __init__(self, start: int = 0) -> None:
        self._now = start

    def current_time(self) -> int:
        return self._now

    def set(self, now: int) -> None:
        if now < self._now:
            raise ValueError(f"Clock cannot go backwards: {now} < {self._now}")
        self._now = now

    def advance(self, steps: int = 1) -> int:
        self.set(self._now + steps)
        return self._now


class BlockClock:
    """Block number derived from wall-clock time.

    Args:
        block_time_seconds: Seconds per time step
        genesis: Wall-clock timestamp of time step 0 (default: now)
        now: Time source, defaults to time.time
    """

    def __init__(
        self,
        block_time_seconds: float,
        genesis: float | None = None,
        now: Callable[[], float] = time.time,
    ) -> None:
        if block_time_seconds <= 0:
            raise ValueError(f"block_time_seconds must be positive, got {block_time_seconds}")
        self._block_time = block_time_seconds
        self._now = now
        self._genesis = now() if genesis is None else genesis

    def current_time(self) -> int:
        return max(0, int((self._now() - self._genesis) // self._block_time))


class TransferDirection(str, Enum):
    """Direction of a token movement relative to the pool."""

    IN = "in"
    OUT = "out"


@dataclass(frozen=True)
class Transfer:
    """A token movement the external custodian must execute."""

    direction: TransferDirection
    token: str
    account: str
    amount: int


@dataclass
class TransferJournal:
    """Transfers implementation that records instructions for an external custodian."""

    entries: list[Transfer] = field(default_factory=list)

    def transfer_in(self, token: str, sender: str, amount: int) -> None:
        self._record(TransferDirection.IN, token, sender, amount)

    def transfer_out(self, token: str, recipient: str, amount: int) -> None:
        self._record(TransferDirection.OUT, token, recipient, amount)

    def drain(self) -> list[Transfer]:
        """Return and forget all recorded transfers."""
        entries, self.entries = self.entries, []
        return entries

    def checkpoint(self) -> int:
        return len(self.entries)

    def restore(self, checkpoint: int) -> None:
        """Forget transfers recorded after `checkpoint`."""
        del self.entries[checkpoint:]

    def _record(self, direction: TransferDirection, token: str, account: str, amount: int) -> None:
        if amount <= 0:
            raise TransferError(f"Transfer amount must be positive, got {amount}")
        self.entries.append(Transfer(direction, token, account, amount))


class InMemoryShareLedger:
    """ShareLedger backed by a dict."""

    def __init__(self) -> None:
        self._balances: dict[str, int] = {}
        self._total_supply = 0

    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def mint(self, holder: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmountError(f"Mint amount must be positive, got {amount}")
        self._balances[holder] = self.balance_of(holder) + amount
        self._total_supply += amount

    def burn(self, holder: str, amount: int) -> None:
        balance = self.balance_of(holder)
        if amount <= 0:
            raise InvalidAmountError(f"Burn amount must be positive, got {amount}")
        if amount > balance:
            raise LiquidityError(f"{holder} holds {balance} shares, cannot burn {amount}")
        if amount == balance:
            del self._balances[holder]
        else:
            self._balances[holder] = balance - amount
        self._total_supply -= amount

    def checkpoint(self) -> object:
        return dict(self._balances), self._total_supply

    def restore(self, checkpoint: object) -> None:
        balances, total_supply = checkpoint  # type: ignore[misc]
        self._balances = dict(balances)
        self._total_supply = total_supply


__all__ = [
    "ReserveStore",
    "Clock",
    "Transfers",
    "ShareLedger",
    "InMemoryReserves",
    "ManualClock",
    "BlockClock",
    "Transfer",
    "TransferDirection",
    "TransferJournal",
    "InMemoryShareLedger",
]
