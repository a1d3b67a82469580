"""Signed 18-decimal fixed-point math.

Values are stored as integers scaled by 10^18 and bounded to the signed
256-bit range, so every result either fits or raises. Multiplication and
division truncate toward zero. The exponential follows Balancer's
LogExpMath digit-extraction approach:
https://github.com/balancer-labs/balancer-v2-monorepo/blob/6c9e24e22d0c46cca6dd15861d3d33da61a60b98/pkg/solidity-utils/contracts/math/LogExpMath.sol
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal
from math import isqrt
from typing import ClassVar

from twamm.errors import DomainError, FixedPointOverflowError

__all__ = [
    # Classes
    "Fixed",
    # Functions
    "exp_raw",
    "sqrt_raw",
    # Constants
    "ONE_18",
    "ONE_20",
    "MAX_FIXED",
    "MIN_FIXED",
    "MAX_NATURAL_EXPONENT",
    "MIN_NATURAL_EXPONENT",
    "ZERO",
    "ONE",
]

# =============================================================================
# Constants
# =============================================================================

ONE_18 = 10**18
ONE_20 = 10**20

MAX_FIXED = 2**255 - 1
MIN_FIXED = -(2**255)

MAX_NATURAL_EXPONENT = 130 * ONE_18  # e^130 is the max we can handle
MIN_NATURAL_EXPONENT = -41 * ONE_18  # e^-41 is below 18-decimal resolution

# x values are powers of 2, a values are e^x

# 18-decimal precision constants (for large exponents)
X_18 = {
    0: 128 * ONE_18,  # 2^7
    1: 64 * ONE_18,  # 2^6
}
A_18 = {
    0: 38877084059945950922200000000000000000000000000000000000,  # e^128
    1: 6235149080811616882910000000,  # e^64
}

# 20-decimal precision constants (for medium exponents)
X_20 = {
    2: 3_200_000_000_000_000_000_000,  # 2^5
    3: 1_600_000_000_000_000_000_000,  # 2^4
    4: 800_000_000_000_000_000_000,  # 2^3
    5: 400_000_000_000_000_000_000,  # 2^2
    6: 200_000_000_000_000_000_000,  # 2^1
    7: 100_000_000_000_000_000_000,  # 2^0
    8: 50_000_000_000_000_000_000,  # 2^-1
    9: 25_000_000_000_000_000_000,  # 2^-2
}
A_20 = {
    2: 7_896_296_018_268_069_516_100_000_000_000_000,  # e^32
    3: 888_611_052_050_787_263_676_000_000,  # e^16
    4: 298_095_798_704_172_827_474_000,  # e^8
    5: 5_459_815_003_314_423_907_810,  # e^4
    6: 738_905_609_893_065_022_723,  # e^2
    7: 271_828_182_845_904_523_536,  # e^1
    8: 164_872_127_070_012_814_685,  # e^0.5
    9: 128_402_541_668_774_148_407,  # e^0.25
}


# =============================================================================
# Raw integer functions
# =============================================================================


def _check_range(value: int) -> int:
    """Raise if a raw value falls outside the signed 256-bit range."""
    if value > MAX_FIXED or value < MIN_FIXED:
        raise FixedPointOverflowError(f"Fixed-point value {value} out of range")
    return value


def _div_trunc(a: int, b: int) -> int:
    """Integer division with truncation toward zero.

    Python's // rounds toward negative infinity; fixed-point division must
    truncate toward zero so that -x / y == -(x / y).

    Raises:
        DomainError: If b is zero
    """
    if b == 0:
        raise DomainError("Division by zero")
    if (a >= 0) == (b >= 0):
        return a // b
    return -(abs(a) // abs(b))


def sqrt_raw(x: int) -> int:
    """Square root of an 18-decimal value, rounded down.

    Raises:
        DomainError: If x is negative
    """
    if x < 0:
        raise DomainError(f"Square root of negative value {x}")
    return isqrt(x * ONE_18)


def exp_raw(x: int) -> int:
    """Compute e^x where x is 18-decimal fixed-point.

    Exponents below MIN_NATURAL_EXPONENT round to zero.

    Raises:
        FixedPointOverflowError: If x exceeds MAX_NATURAL_EXPONENT
    """
    if x > MAX_NATURAL_EXPONENT:
        raise FixedPointOverflowError(f"Exponent {x} exceeds e^130")
    if x < MIN_NATURAL_EXPONENT:
        return 0

    if x < 0:
        # e^-x = 1 / e^x
        return (ONE_18 * ONE_18) // exp_raw(-x)

    # Extract large powers of e (18-decimal)
    if x >= X_18[0]:
        x -= X_18[0]
        first_an = A_18[0]
    elif x >= X_18[1]:
        x -= X_18[1]
        first_an = A_18[1]
    else:
        first_an = 1

    # Scale to 20-decimal precision
    x *= 100

    product = ONE_20
    for i in range(2, 10):
        if x >= X_20[i]:
            x -= X_20[i]
            product = (product * A_20[i]) // ONE_20

    # Taylor series: e^x = 1 + x + x^2/2! + ... + x^12/12!
    series_sum = ONE_20
    term = x
    series_sum += term

    for i in range(2, 13):
        term = ((term * x) // ONE_20) // i
        series_sum += term

    return (((product * series_sum) // ONE_20) * first_an) // 100


# =============================================================================
# Fixed class
# =============================================================================


class Fixed:
    """Signed 18-decimal fixed-point number stored as int.

    Example: 1.5 is stored as 1_500_000_000_000_000_000
    """

    ONE: ClassVar[int] = ONE_18

    __slots__ = ("value",)
    __hash__ = None  # type: ignore[assignment]  # Unhashable since we define __eq__

    def __init__(self, value: int) -> None:
        """Create Fixed from a raw scaled value."""
        self.value = _check_range(value)

    @classmethod
    def from_int(cls, i: int) -> Fixed:
        """Create from an integer (will be scaled by 10^18)."""
        return cls(i * cls.ONE)

    @classmethod
    def from_decimal(cls, d: Decimal) -> Fixed:
        """Create from a Decimal, truncating beyond 18 decimals."""
        scaled = (d * cls.ONE).quantize(Decimal("1"), rounding=ROUND_DOWN)
        return cls(int(scaled))

    def to_int(self) -> int:
        """Integer part, truncated toward zero."""
        return _div_trunc(self.value, self.ONE)

    def to_decimal(self) -> Decimal:
        """Convert to Decimal for display."""
        return Decimal(self.value) / Decimal(self.ONE)

    @property
    def is_zero(self) -> bool:
        return self.value == 0

    def __add__(self, other: Fixed) -> Fixed:
        return Fixed(self.value + other.value)

    def __sub__(self, other: Fixed) -> Fixed:
        return Fixed(self.value - other.value)

    def __neg__(self) -> Fixed:
        return Fixed(-self.value)

    def __abs__(self) -> Fixed:
        return Fixed(abs(self.value))

    def mul(self, other: Fixed) -> Fixed:
        """Multiply, truncating toward zero: (a * b) / 10^18"""
        return Fixed(_div_trunc(self.value * other.value, self.ONE))

    def div(self, other: Fixed) -> Fixed:
        """Divide, truncating toward zero: (a * 10^18) / b

        Raises:
            DomainError: If other is zero
        """
        if other.value == 0:
            raise DomainError("Fixed division by zero")
        return Fixed(_div_trunc(self.value * self.ONE, other.value))

    def inv(self) -> Fixed:
        """Return 1 / self."""
        return Fixed(self.ONE).div(self)

    def sqrt(self) -> Fixed:
        """Square root, rounded down."""
        return Fixed(sqrt_raw(self.value))

    def exp(self) -> Fixed:
        """Natural exponential e^self."""
        return Fixed(exp_raw(self.value))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fixed):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Fixed):
            return NotImplemented
        return self.value < other.value

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Fixed):
            return NotImplemented
        return self.value <= other.value

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Fixed):
            return NotImplemented
        return self.value > other.value

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Fixed):
            return NotImplemented
        return self.value >= other.value

    def __repr__(self) -> str:
        return f"Fixed({self.value})"

    def __str__(self) -> str:
        return str(self.to_decimal())


ZERO = Fixed(0)
ONE = Fixed(ONE_18)
