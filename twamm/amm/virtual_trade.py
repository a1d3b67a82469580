"""Settlement-step math for virtual (long-term) orders.

Over one settlement step the token0 pool sells x0 and the token1 pool sells
x1 into a constant product pool at constant rates. Three cases:

- nobody sells: reserves are unchanged
- one side sells: a single constant product swap of the whole amount
- both sides sell: the closed-form solution of the differential equation
  for simultaneous constant-rate selling,

      c   = (sqrt(R0) * sqrt(x1) - sqrt(R1) * sqrt(x0))
            / (sqrt(R0) * sqrt(x1) + sqrt(R1) * sqrt(x0))
      e   = exp(2 * sqrt(x0 * x1) / (sqrt(R0) * sqrt(R1)))
      R0' = sqrt(k * x0 / x1) * (e + c) / (e - c)
      R1' = k / R0'

sqrt(k * x0 / x1) is the equilibrium reserve the pool converges to as the
step grows; at e = 1 the expression reduces to R0' = R0.

integrate_virtual_trade() solves the same problem by brute force and is the
reference the closed form is checked against.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, localcontext

import structlog

from twamm.amm.constant_product import constant_product
from twamm.math.fixed_point import MAX_NATURAL_EXPONENT, Fixed
from twamm.safe_int import S

logger = structlog.get_logger()


@dataclass(frozen=True)
class VirtualTrade:
    """Outcome of one settlement step.

    token0_out is paid to the token1 sellers and token1_out to the token0
    sellers; reserve0 and reserve1 are the pool reserves after the step.
    """

    token0_out: int
    token1_out: int
    reserve0: int
    reserve1: int


def compute_c(reserve0: Fixed, reserve1: Fixed, token0_in: Fixed, token1_in: Fixed) -> Fixed:
    """Integration constant of the two-sided trade, always in (-1, 1)."""
    c1 = reserve0.sqrt().mul(token1_in.sqrt())
    c2 = reserve1.sqrt().mul(token0_in.sqrt())
    return (c1 - c2).div(c1 + c2)


def compute_amm_end_token0(
    token0_in: Fixed,
    token1_in: Fixed,
    c: Fixed,
    k: Fixed,
    reserve0: Fixed,
    reserve1: Fixed,
) -> Fixed:
    """Token0 reserve at the end of a two-sided step."""
    exponent = (
        Fixed.from_int(4)
        .mul(token0_in)
        .mul(token1_in)
        .sqrt()
        .div(reserve0.sqrt().mul(reserve1.sqrt()))
    )
    equilibrium = k.div(token1_in).sqrt().mul(token0_in.sqrt())

    if exponent.value > MAX_NATURAL_EXPONENT:
        # (e + c) / (e - c) is 1 to within 1e-56 here
        logger.debug("virtual_trade_at_equilibrium", exponent=str(exponent))
        return equilibrium

    e = exponent.exp()
    fraction = (e + c).div(e - c)
    return fraction.mul(equilibrium)


def compute_virtual_balances(
    reserve0: int,
    reserve1: int,
    token0_in: int,
    token1_in: int,
) -> VirtualTrade:
    """Apply one settlement step to the pool.

    Args:
        reserve0: Token0 reserve before the step
        reserve1: Token1 reserve before the step
        token0_in: Token0 sold by the token0 pool during the step
        token1_in: Token1 sold by the token1 pool during the step

    Returns:
        VirtualTrade with the amounts owed to each pool and the new reserves
    """
    if token0_in == 0 and token1_in == 0:
        return VirtualTrade(0, 0, reserve0, reserve1)

    if token0_in == 0 or token1_in == 0:
        token1_out = constant_product.get_amount_out(token0_in, reserve0, reserve1)
        token0_out = constant_product.get_amount_out(token1_in, reserve1, reserve0)
        return VirtualTrade(
            token0_out=token0_out,
            token1_out=token1_out,
            reserve0=(S(reserve0) + token0_in - token0_out).value,
            reserve1=(S(reserve1) + token1_in - token1_out).value,
        )

    r0 = Fixed.from_int(reserve0)
    r1 = Fixed.from_int(reserve1)
    x0 = Fixed.from_int(token0_in)
    x1 = Fixed.from_int(token1_in)

    k = r0.mul(r1)
    c = compute_c(r0, r1, x0, x1)
    end0 = compute_amm_end_token0(x0, x1, c, k, r0, r1)
    end1 = k.div(end0)

    # Floor the outputs so rounding always favours the pool
    token0_out = max(0, (r0 + x0 - end0).to_int())
    token1_out = max(0, (r1 + x1 - end1).to_int())

    return VirtualTrade(
        token0_out=token0_out,
        token1_out=token1_out,
        reserve0=(S(reserve0) + token0_in - token0_out).value,
        reserve1=(S(reserve1) + token1_in - token1_out).value,
    )


def integrate_virtual_trade(
    reserve0: int,
    reserve1: int,
    token0_in: int,
    token1_in: int,
    steps: int = 1000,
) -> VirtualTrade:
    """Brute-force reference for compute_virtual_balances().

    Splits the step into `steps` slices. Within a slice the token0 sellers
    trade half their slice, the token1 sellers their full slice, then the
    token0 sellers the other half (symmetric splitting, second order
    accurate). Runs in 60-digit Decimal arithmetic so rounding does not
    mask the discretisation error.
    """
    if steps <= 0:
        raise ValueError(f"steps must be positive, got {steps}")

    with localcontext() as ctx:
        ctx.prec = 60
        a = Decimal(reserve0)
        b = Decimal(reserve1)
        half0 = Decimal(token0_in) / (2 * steps)
        slice1 = Decimal(token1_in) / steps
        out0 = Decimal(0)
        out1 = Decimal(0)

        for _ in range(steps):
            for dx0, dx1 in ((half0, Decimal(0)), (Decimal(0), slice1), (half0, Decimal(0))):
                if dx0:
                    got1 = b * dx0 / (a + dx0)
                    a += dx0
                    b -= got1
                    out1 += got1
                if dx1:
                    got0 = a * dx1 / (b + dx1)
                    b += dx1
                    a -= got0
                    out0 += got0

        token0_out = int(out0)
        token1_out = int(out1)

    return VirtualTrade(
        token0_out=token0_out,
        token1_out=token1_out,
        reserve0=reserve0 + token0_in - token0_out,
        reserve1=reserve1 + token1_in - token1_out,
    )


__all__ = [
    "VirtualTrade",
    "compute_c",
    "compute_amm_end_token0",
    "compute_virtual_balances",
    "integrate_virtual_trade",
]
