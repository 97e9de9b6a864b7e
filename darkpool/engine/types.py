"""
Value types shared by every engine component.

PoolKey is the composite identifier of a pool; it is hashable and used
directly as a dict key. ``pool_id`` is a deterministic digest used only in
events and logs.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Tuple

from ..constants import MAX_INT128, MIN_INT128
from ..exceptions import InvalidParameters


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Side(IntEnum):
    """Reserve side. A is currency0, B is currency1."""
    A = 0
    B = 1

    @property
    def other(self) -> "Side":
        return Side.B if self is Side.A else Side.A


class SwapMode(Enum):
    EXACT_INPUT = "exact_input"
    EXACT_OUTPUT = "exact_output"


# ---------------------------------------------------------------------------
# Pool key
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PoolKey:
    """
    Identifies a tradable pair managed by one engine instance.

    currency0 < currency1 (canonical ordering).
    """
    currency0: str
    currency1: str
    fee: int
    tick_spacing: int
    hooks: str

    def __post_init__(self):
        if not self.currency0 or not self.currency1:
            raise InvalidParameters("Pool currencies must be non-empty")
        if self.currency0 == self.currency1:
            raise InvalidParameters("Pool currencies must differ")
        if self.currency0 > self.currency1:
            raise InvalidParameters(
                f"Currencies not sorted: {self.currency0} > {self.currency1}"
            )
        if self.fee < 0:
            raise InvalidParameters("Pool fee must be non-negative")
        if self.tick_spacing <= 0:
            raise InvalidParameters("Tick spacing must be positive")
        if not self.hooks:
            raise InvalidParameters("Pool key must name its engine instance")

    @classmethod
    def sorted(cls, token_x: str, token_y: str, fee: int, tick_spacing: int, hooks: str) -> PoolKey:
        """Build a key from an unordered pair."""
        if token_x > token_y:
            token_x, token_y = token_y, token_x
        return cls(token_x, token_y, fee, tick_spacing, hooks)

    @property
    def pool_id(self) -> str:
        """Deterministic pool id (blake2b-256 of the canonical fields)."""
        raw = f"{self.currency0}:{self.currency1}:{self.fee}:{self.tick_spacing}:{self.hooks}".encode()
        return hashlib.blake2b(raw, digest_size=32).hexdigest()

    def currency(self, side: Side) -> str:
        return self.currency0 if side == Side.A else self.currency1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency0": self.currency0,
            "currency1": self.currency1,
            "fee": self.fee,
            "tick_spacing": self.tick_spacing,
            "hooks": self.hooks,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PoolKey:
        try:
            return cls(
                currency0=data["currency0"],
                currency1=data["currency1"],
                fee=int(data["fee"]),
                tick_spacing=int(data["tick_spacing"]),
                hooks=data["hooks"],
            )
        except KeyError as e:
            raise InvalidParameters(f"Pool key missing field: {e.args[0]}") from e
        except (TypeError, ValueError) as e:
            raise InvalidParameters(f"Malformed pool key: {data!r}") from e


# ---------------------------------------------------------------------------
# Swap request / host response
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SwapParams:
    """A swap request as dispatched by the host."""
    zero_for_one: bool
    mode: SwapMode
    amount: int

    def __post_init__(self):
        if not isinstance(self.zero_for_one, bool):
            raise InvalidParameters(f"zero_for_one must be a bool, got {self.zero_for_one!r}")
        if not isinstance(self.mode, SwapMode):
            raise InvalidParameters(f"Unknown swap mode {self.mode!r}")

    @property
    def input_side(self) -> Side:
        return Side.A if self.zero_for_one else Side.B

    @property
    def output_side(self) -> Side:
        return self.input_side.other


@dataclass(frozen=True)
class BeforeSwapDelta:
    """
    Signed pair returned to the host from the beforeSwap extension point.

    Values are pool-side deltas of currency0 and currency1.
    """
    delta0: int
    delta1: int

    def is_well_formed(self) -> bool:
        return all(
            isinstance(v, int) and not isinstance(v, bool) and MIN_INT128 <= v <= MAX_INT128
            for v in (self.delta0, self.delta1)
        )

    def to_tuple(self) -> Tuple[int, int]:
        return self.delta0, self.delta1


@dataclass(frozen=True)
class LiquidityDelta:
    """Parameters of the host's generic liquidity-modification path."""
    tick_lower: int
    tick_upper: int
    liquidity_delta: int
