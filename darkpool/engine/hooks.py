"""
Host dispatch surface.

The host runtime calls an engine only at the extension points the engine
advertises through its ``HookFlags``, and accepts a before-swap response
only in the exact shape ``(BeforeSwapDelta, fee_override)``.
"""

from __future__ import annotations

from enum import Flag, auto
from typing import Any, Tuple

from ..constants import MAX_HOST_FEE
from ..exceptions import HostDispatchError
from .types import BeforeSwapDelta


# ---------------------------------------------------------------------------
# Hook flags: which extension points an engine implements
# ---------------------------------------------------------------------------

class HookFlags(Flag):
    NONE = 0
    BEFORE_INITIALIZE = auto()
    BEFORE_ADD_LIQUIDITY = auto()
    BEFORE_REMOVE_LIQUIDITY = auto()
    BEFORE_SWAP = auto()
    BEFORE_SWAP_RETURNS_DELTA = auto()
    ALL = (
        BEFORE_INITIALIZE
        | BEFORE_ADD_LIQUIDITY
        | BEFORE_REMOVE_LIQUIDITY
        | BEFORE_SWAP
        | BEFORE_SWAP_RETURNS_DELTA
    )


# ---------------------------------------------------------------------------
# Response validation
# ---------------------------------------------------------------------------

def validate_before_swap_response(response: Any) -> Tuple[BeforeSwapDelta, int]:
    """
    Check a before-swap response against the host's expected shape.

    Raises:
        HostDispatchError: anything other than a (BeforeSwapDelta, int) pair
            with int128 deltas and a fee override in [0, MAX_HOST_FEE]
    """
    if not isinstance(response, tuple) or len(response) != 2:
        raise HostDispatchError(f"Malformed before-swap response: {response!r}")

    delta, fee_override = response
    if not isinstance(delta, BeforeSwapDelta) or not delta.is_well_formed():
        raise HostDispatchError(f"Malformed before-swap delta: {delta!r}")
    if isinstance(fee_override, bool) or not isinstance(fee_override, int):
        raise HostDispatchError(f"Fee override must be an int, got {fee_override!r}")
    if not 0 <= fee_override <= MAX_HOST_FEE:
        raise HostDispatchError(f"Fee override {fee_override} outside [0, {MAX_HOST_FEE}]")
    return delta, fee_override
