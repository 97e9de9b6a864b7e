"""
Constant-sum (1:1) pricing.

No slippage curve: for every quote ``amount_in - fee == amount_out``. The
fee is always denominated in the input asset.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from ..constants import BPS_DENOMINATOR
from ..exceptions import InvalidParameters
from .types import SwapMode
from .units import checked_add, mul_div, require_int, require_uint


@dataclass(frozen=True)
class SwapQuote:
    amount_in: int
    amount_out: int
    fee: int


def quote_swap(mode: SwapMode, specified_amount: int, fee_bps: int) -> SwapQuote:
    """
    Price a swap at 1:1 minus a flat fee.

    Args:
        mode: EXACT_INPUT (amount is what the trader pays) or
              EXACT_OUTPUT (amount is what the trader receives)
        specified_amount: positive amount in base units
        fee_bps: fee in basis points, 0 <= fee_bps < 10000

    Raises:
        InvalidParameters: non-positive amount, fee out of range or unknown mode
        ArithmeticOverflow: amount * fee_bps or amount + fee beyond uint256
    """
    if isinstance(specified_amount, bool) or not isinstance(specified_amount, int):
        raise InvalidParameters("Swap amount must be an integer")
    if specified_amount <= 0:
        raise InvalidParameters("Swap amount must be positive")
    require_uint(specified_amount)
    require_int(fee_bps, "fee_bps")
    if not 0 <= fee_bps < BPS_DENOMINATOR:
        raise InvalidParameters(f"fee_bps {fee_bps} outside [0, {BPS_DENOMINATOR})")

    fee = mul_div(specified_amount, fee_bps, BPS_DENOMINATOR)
    if mode is SwapMode.EXACT_INPUT:
        return SwapQuote(amount_in=specified_amount, amount_out=specified_amount - fee, fee=fee)
    if mode is SwapMode.EXACT_OUTPUT:
        return SwapQuote(
            amount_in=checked_add(specified_amount, fee),
            amount_out=specified_amount,
            fee=fee,
        )
    raise InvalidParameters(f"Unknown swap mode {mode!r}")


def split_fee(fee: int, protocol_share_bps: int) -> Tuple[int, int]:
    """
    Split a fee into (protocol share, LP-retained share).

    The two parts always sum to ``fee``.
    """
    if not 0 <= protocol_share_bps <= BPS_DENOMINATOR:
        raise InvalidParameters(f"protocol_share_bps {protocol_share_bps} outside [0, {BPS_DENOMINATOR}]")
    protocol = mul_div(fee, protocol_share_bps, BPS_DENOMINATOR)
    return protocol, fee - protocol
