"""
Reserve-imbalance circuit breaker.

Rejects any trade whose *real* post-trade reserve ratio falls outside
``[min_ratio_bps, max_ratio_bps]``. The test is symmetric: a trade that
moves the ratio back toward 50/50 stays inside the bounds and passes,
one that pushes an imbalance past a bound fails. Nothing here mutates
state; the breaker runs before any ledger change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from ..constants import BPS_DENOMINATOR, MAX_RATIO_LOWER_BOUND, MAX_RATIO_UPPER_BOUND
from ..exceptions import ExcessiveImbalance, InvalidParameters
from ..logger import get_logger
from .units import require_int

logger = get_logger(__name__)


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Ratio bounds for the share of side A in total reserves, in bps."""
    max_ratio_bps: int
    min_ratio_bps: int

    def __post_init__(self):
        self.validate(self.max_ratio_bps, self.min_ratio_bps)

    @staticmethod
    def validate(max_ratio_bps: int, min_ratio_bps: int) -> None:
        """
        Raises:
            InvalidParameters: bounds not integers, not complementary or max
                out of [5000, 9500]
        """
        require_int(max_ratio_bps, "max_ratio_bps")
        require_int(min_ratio_bps, "min_ratio_bps")
        if max_ratio_bps + min_ratio_bps != BPS_DENOMINATOR:
            raise InvalidParameters(
                f"Thresholds must sum to {BPS_DENOMINATOR}: {max_ratio_bps} + {min_ratio_bps}"
            )
        if not MAX_RATIO_LOWER_BOUND <= max_ratio_bps <= MAX_RATIO_UPPER_BOUND:
            raise InvalidParameters(
                f"max_ratio_bps {max_ratio_bps} outside "
                f"[{MAX_RATIO_LOWER_BOUND}, {MAX_RATIO_UPPER_BOUND}]"
            )


def reserve_ratio_bps(real_a: int, real_b: int) -> int:
    """Share of side A in total reserves, in basis points (floor)."""
    total = real_a + real_b
    if total == 0:
        return BPS_DENOMINATOR // 2
    return real_a * BPS_DENOMINATOR // total


def check_imbalance(
    current: Tuple[int, int],
    proposed: Tuple[int, int],
    config: CircuitBreakerConfig,
) -> int:
    """
    Validate a proposed post-trade reserve pair.

    Args:
        current: reserves before the trade (reported in the error)
        proposed: reserves after the trade
        config: active bounds

    Returns:
        The proposed ratio in bps.

    Raises:
        ExcessiveImbalance: proposed ratio above max or below min
    """
    ratio = reserve_ratio_bps(*proposed)
    if ratio > config.max_ratio_bps or ratio < config.min_ratio_bps:
        current_ratio = reserve_ratio_bps(*current)
        logger.debug(
            "Circuit breaker rejected trade: ratio %d -> %d bps (bounds %d..%d)",
            current_ratio, ratio, config.min_ratio_bps, config.max_ratio_bps,
        )
        raise ExcessiveImbalance(
            f"Post-trade ratio {ratio} bps outside "
            f"[{config.min_ratio_bps}, {config.max_ratio_bps}]",
            current_ratio_bps=current_ratio,
            proposed_ratio_bps=ratio,
        )
    return ratio
