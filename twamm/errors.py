"""Error taxonomy for the TWAMM engine.

Every failure is local, synchronous and non-retryable: the operation that
raised is rolled back and the caller decides whether to resubmit it.
"""


class TwammError(Exception):
    """Base error for all engine failures."""

    pass


class ConfigError(TwammError, ValueError):
    """Invalid construction parameters (e.g. a zero order block interval)."""

    pass


class InvalidAmountError(TwammError, ValueError):
    """Zero or negative quantity, unknown token, or degenerate sale rate."""

    pass


class FixedPointError(TwammError, ArithmeticError):
    """Base error for fixed-point and checked integer arithmetic."""

    pass


class DomainError(FixedPointError):
    """Operand outside the function's domain (negative sqrt, division by zero)."""

    pass


class FixedPointOverflowError(FixedPointError, OverflowError):
    """Result exceeds the representable fixed-point range."""

    pass


class NotFoundError(TwammError, LookupError):
    """Unknown order id, or the order has nothing left to claim."""

    pass


class AuthorizationError(TwammError):
    """Caller is not the owner of the order."""

    pass


class NoProceedsError(TwammError):
    """Cancel or withdraw would pay out nothing."""

    pass


class LiquidityError(TwammError):
    """Liquidity operation not allowed in the current pool state."""

    pass


class TransferError(TwammError):
    """A token transfer collaborator refused or failed the transfer."""

    pass
