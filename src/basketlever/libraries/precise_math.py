"""
Fixed-point arithmetic on 1e18-scaled integers.

Every helper works on plain Python ints and fails loudly instead of wrapping:
results outside the uint256/int256 ranges raise MathOverflowError.

Rounding conventions:
- *_floor / plain names round toward negative infinity for non-negative inputs
- *_ceil round up (toward positive infinity)
- signed helpers truncate toward zero, matching two's-complement division
"""

PRECISE_UNIT = 10**18

UINT256_MAX = 2**256 - 1
INT256_MAX = 2**255 - 1
INT256_MIN = -(2**255)


class MathOverflowError(ArithmeticError):
    """Raised when a fixed-point result leaves the representable range."""


def check_uint256(value: int) -> int:
    """Return value unchanged if it fits in uint256."""
    if value < 0:
        raise MathOverflowError(f"Negative value where unsigned expected: {value}")
    if value > UINT256_MAX:
        raise MathOverflowError(f"Value exceeds uint256: {value}")
    return value


def check_int256(value: int) -> int:
    """Return value unchanged if it fits in int256."""
    if value < INT256_MIN or value > INT256_MAX:
        raise MathOverflowError(f"Value exceeds int256: {value}")
    return value


def div_ceil(a: int, b: int) -> int:
    """Ceiling division of non-negative a by positive b."""
    if b == 0:
        raise ZeroDivisionError("div_ceil by zero")
    if a == 0:
        return 0
    return (a - 1) // b + 1


def div_trunc(a: int, b: int) -> int:
    """Signed division truncating toward zero."""
    if b == 0:
        raise ZeroDivisionError("div_trunc by zero")
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def precise_mul(a: int, b: int) -> int:
    """a * b / 1e18, floored. Both operands non-negative."""
    return check_uint256(check_uint256(a) * check_uint256(b) // PRECISE_UNIT)


def precise_mul_ceil(a: int, b: int) -> int:
    """a * b / 1e18, rounded up. Both operands non-negative."""
    return check_uint256(div_ceil(check_uint256(a) * check_uint256(b), PRECISE_UNIT))


def precise_div(a: int, b: int) -> int:
    """a * 1e18 / b, floored. Both operands non-negative."""
    return check_uint256(check_uint256(a) * PRECISE_UNIT // check_uint256(b))


def precise_div_ceil(a: int, b: int) -> int:
    """a * 1e18 / b, rounded up. Both operands non-negative."""
    return check_uint256(div_ceil(check_uint256(a) * PRECISE_UNIT, check_uint256(b)))


def precise_mul_signed(a: int, b: int) -> int:
    """Signed a * b / 1e18, truncated toward zero."""
    return check_int256(div_trunc(check_int256(a) * check_int256(b), PRECISE_UNIT))


def precise_div_signed(a: int, b: int) -> int:
    """Signed a * 1e18 / b, truncated toward zero."""
    return check_int256(div_trunc(check_int256(a) * PRECISE_UNIT, check_int256(b)))
