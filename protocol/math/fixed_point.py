"""
Scaled-integer arithmetic.

All monetary quantities are integers scaled by SCALE (1e8). Products of two
scaled values are divided by SCALE afterwards, always multiply first.
"""
from ..config.params import SCALE, MAX_UINT256
from ..types.common import ArithmeticInvariantError


def _require_uint(*values: int) -> None:
    for v in values:
        if v < 0:
            raise ArithmeticInvariantError(f"Negative operand: {v}")
        if v > MAX_UINT256:
            raise ArithmeticInvariantError(f"Operand overflows uint256: {v}")


def checked_add(a: int, b: int) -> int:
    """Returns a + b, failing instead of wrapping past MAX_UINT256."""
    _require_uint(a, b)
    result = a + b
    if result > MAX_UINT256:
        raise ArithmeticInvariantError(f"Overflow: {a} + {b}")
    return result


def checked_sub(a: int, b: int) -> int:
    """Returns a - b, failing on underflow."""
    _require_uint(a, b)
    if b > a:
        raise ArithmeticInvariantError(f"Underflow: {a} - {b}")
    return a - b


def scaled_mul(a: int, b: int) -> int:
    """a * b / SCALE, truncated."""
    _require_uint(a, b)
    result = a * b // SCALE
    if result > MAX_UINT256:
        raise ArithmeticInvariantError(f"Overflow: {a} * {b} / {SCALE}")
    return result


def scaled_div(a: int, b: int) -> int:
    """a * SCALE / b, truncated."""
    _require_uint(a, b)
    if b == 0:
        raise ArithmeticInvariantError("Division by zero")
    return a * SCALE // b


def scaled_pow(base: int, exponent: int) -> int:
    """
    Raises a scaled base to a plain integer power by repeated squaring.

    Costs O(log exponent) scaled multiplications, so a year of minute ticks
    (525,600) takes about twenty steps instead of one step per tick.

    Args:
        base: Fixed-point value (scale 1e8), e.g. SCALE + per-tick rate
        exponent: Number of ticks, >= 0

    Returns:
        base ** exponent in fixed point; SCALE when exponent is 0
    """
    _require_uint(base, exponent)
    result = SCALE
    while exponent > 0:
        if exponent & 1:
            result = scaled_mul(result, base)
        exponent >>= 1
        if exponent:
            base = scaled_mul(base, base)
    return result
