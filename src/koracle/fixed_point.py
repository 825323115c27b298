"""Checked unsigned 256-bit integer helpers.

Overflow and division by zero are detected up front and raised as
FixedPointError subclasses; values are never wrapped or truncated.
"""

from koracle.exceptions import (
    FixedPointDivisionError,
    Uint256OverflowError,
    ValidationError,
)
from koracle.models import MAX_UINT256


def check_uint256(name: str, value: int) -> int:
    """Validate that ``value`` is an int within [0, 2**256 - 1].

    Raises:
        ValidationError: if value is not an int (bools rejected) or negative.
        Uint256OverflowError: if value exceeds the 256-bit range.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    if value > MAX_UINT256:
        raise Uint256OverflowError(f"{name} exceeds the uint256 range")
    return value


def check_positive_uint256(name: str, value: int) -> int:
    """Like check_uint256 but also rejects zero."""
    check_uint256(name, value)
    if value == 0:
        raise ValidationError(f"{name} must be greater than zero")
    return value


def mul(a: int, b: int) -> int:
    """Checked uint256 multiplication."""
    result = a * b
    if result > MAX_UINT256:
        raise Uint256OverflowError(f"{a} * {b} overflows uint256")
    return result


def div(a: int, b: int) -> int:
    """Checked uint256 floor division."""
    if b == 0:
        raise FixedPointDivisionError(f"division of {a} by zero")
    return a // b


def mul_div(a: int, b: int, denominator: int) -> int:
    """Compute a * b // denominator with overflow and zero checks."""
    return div(mul(a, b), denominator)
