"""Constant product AMM math.

The pool holds two reserves whose product x * y = k never decreases.
There is no swap fee: integer flooring of outputs is the only thing that
moves k, and always upward.
"""

from __future__ import annotations

from math import isqrt

from twamm.errors import InvalidAmountError, LiquidityError
from twamm.safe_int import S


class ConstantProduct:
    """Swap and liquidity-share math for a fee-less x * y = k pool.

    Formula: amount_out = (reserve_out * amount_in) / (reserve_in + amount_in)
    """

    def get_amount_out(self, amount_in: int, reserve_in: int, reserve_out: int) -> int:
        """Calculate output amount for an exact input.

        Args:
            amount_in: Input token amount
            reserve_in: Reserve of input token in pool
            reserve_out: Reserve of output token in pool

        Returns:
            Output token amount, rounded down
        """
        if amount_in <= 0:
            return 0
        if reserve_out <= 0:
            return 0

        numerator = S(reserve_out) * S(amount_in)
        denominator = S(reserve_in) + S(amount_in)

        return (numerator // denominator).value

    def initial_shares(self, amount0: int, amount1: int) -> int:
        """Shares minted for the first deposit: the geometric mean of the amounts.

        Raises:
            InvalidAmountError: If either amount is not positive
        """
        if amount0 <= 0 or amount1 <= 0:
            raise InvalidAmountError(
                f"Initial liquidity amounts must be positive, got {amount0} and {amount1}"
            )
        return isqrt((S(amount0) * S(amount1)).value)

    def shares_to_amounts(
        self,
        shares: int,
        reserve0: int,
        reserve1: int,
        total_supply: int,
    ) -> tuple[int, int]:
        """Reserve amounts backing a number of shares, rounded down.

        Used for both deposits and withdrawals: a depositor pays the same
        proportional amounts that a holder of the shares could withdraw.

        Raises:
            LiquidityError: If there is no share supply yet
            InvalidAmountError: If shares is not positive
        """
        if total_supply <= 0:
            raise LiquidityError("No liquidity has been provided yet")
        if shares <= 0:
            raise InvalidAmountError(f"Share amount must be positive, got {shares}")

        amount0 = (S(reserve0) * S(shares)) // S(total_supply)
        amount1 = (S(reserve1) * S(shares)) // S(total_supply)
        return amount0.value, amount1.value


# Singleton instance for convenience
constant_product = ConstantProduct()


__all__ = [
    "ConstantProduct",
    "constant_product",
]
