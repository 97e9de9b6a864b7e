"""
Unsigned 256-bit integer helpers and 18-decimal unit conversion.

Every amount handled by the engine is a plain ``int`` in base units.
Arithmetic that could leave ``[0, MAX_UINT256]`` goes through the checked
helpers below.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_DOWN
from typing import Union

from ..constants import MAX_UINT256, TOKEN_DECIMALS
from ..exceptions import ArithmeticOverflow, InvalidParameters


def require_int(value: int, name: str = "value") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameters(f"{name} must be an integer, got {type(value).__name__}")
    return value


def require_uint(value: int, name: str = "amount") -> int:
    require_int(value, name)
    if value < 0:
        raise InvalidParameters(f"{name} {value} must not be negative")
    if value > MAX_UINT256:
        raise ArithmeticOverflow(f"{name} {value} outside uint256 range")
    return value


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > MAX_UINT256:
        raise ArithmeticOverflow(f"uint256 overflow: {a} + {b}")
    return result


def checked_sub(a: int, b: int) -> int:
    if b > a:
        raise ArithmeticOverflow(f"uint256 underflow: {a} - {b}")
    return a - b


def checked_mul(a: int, b: int) -> int:
    result = a * b
    if result > MAX_UINT256:
        raise ArithmeticOverflow(f"uint256 overflow: {a} * {b}")
    return result


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator) with the intermediate product checked."""
    if denominator <= 0:
        raise InvalidParameters("denominator must be positive")
    return checked_mul(a, b) // denominator


def to_units(amount: Union[Decimal, str, int], decimals: int = TOKEN_DECIMALS) -> int:
    """Convert a human amount (e.g. ``"99.9"``) to base units, rounding down."""
    scaled = (Decimal(str(amount)) * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN)
    return require_uint(int(scaled))


def from_units(amount: int, decimals: int = TOKEN_DECIMALS) -> Decimal:
    """Convert base units back to a human Decimal."""
    return Decimal(amount) / (Decimal(10) ** decimals)
