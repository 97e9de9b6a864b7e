"""
Engine Transaction Types

Envelope for every state-changing engine operation submitted through the
host. The host processes transactions serially, one committing before the
next begins; per-sender nonces prevent replay.

Transaction Types:
  - INITIALIZE_POOL:         Initialize a pool bound to an engine
  - ADD_LIQUIDITY:           Symmetric deposit of both assets
  - REMOVE_LIQUIDITY:        Symmetric withdrawal of both assets
  - MODIFY_LIQUIDITY:        Host's generic liquidity path (always rejected)
  - SWAP:                    Exact-input or exact-output swap
  - REBALANCE:               Keeper capital injection
  - WITHDRAW_PROTOCOL_FEES:  Owner drains accrued protocol fees
  - SET_KEEPER / TRANSFER_OWNERSHIP / SET_CIRCUIT_BREAKER /
    SET_PROTOCOL_FEE_SHARE:  Owner administration
"""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional

from ..exceptions import InvalidParameters
from .types import PoolKey, Side, SwapMode, SwapParams


# ---------------------------------------------------------------------------
# Operation types
# ---------------------------------------------------------------------------

class EngineOpType(IntEnum):
    """All engine operation types. Values are part of the tx hash."""
    INITIALIZE_POOL = 1
    ADD_LIQUIDITY = 2
    REMOVE_LIQUIDITY = 3
    MODIFY_LIQUIDITY = 4
    SWAP = 5
    REBALANCE = 6
    WITHDRAW_PROTOCOL_FEES = 7
    SET_KEEPER = 8
    TRANSFER_OWNERSHIP = 9
    SET_CIRCUIT_BREAKER = 10
    SET_PROTOCOL_FEE_SHARE = 11


# Required params per op type
REQUIRED_PARAMS: Dict[EngineOpType, tuple] = {
    EngineOpType.INITIALIZE_POOL: ("pool_key",),
    EngineOpType.ADD_LIQUIDITY: ("pool_key", "amount_each"),
    EngineOpType.REMOVE_LIQUIDITY: ("pool_key", "amount_each"),
    EngineOpType.MODIFY_LIQUIDITY: ("pool_key", "tick_lower", "tick_upper", "liquidity_delta"),
    EngineOpType.SWAP: ("pool_key", "zero_for_one", "mode", "amount"),
    EngineOpType.REBALANCE: ("pool_key", "amount_in", "side"),
    EngineOpType.WITHDRAW_PROTOCOL_FEES: ("pool_key",),
    EngineOpType.SET_KEEPER: ("engine", "keeper"),
    EngineOpType.TRANSFER_OWNERSHIP: ("engine", "owner"),
    EngineOpType.SET_CIRCUIT_BREAKER: ("engine", "max_ratio_bps", "min_ratio_bps"),
    EngineOpType.SET_PROTOCOL_FEE_SHARE: ("engine", "protocol_share_bps"),
}


# ---------------------------------------------------------------------------
# Engine Transaction
# ---------------------------------------------------------------------------

@dataclass
class EngineTransaction:
    """
    Envelope for a single engine operation.

    Every field except ``timestamp`` and the execution results is part of
    the tx hash.
    """
    op_type: EngineOpType
    sender: str                         # address of the submitter
    nonce: int                          # per-sender monotonic nonce
    params: Dict[str, Any]              # operation-specific parameters
    timestamp: float = 0.0              # submission timestamp

    # --- Computed after execution ---
    success: bool = False
    result: Dict[str, Any] = field(default_factory=dict)
    error: str = ""

    def __post_init__(self):
        if self.timestamp == 0.0:
            self.timestamp = time.time()

    # -- Hashing ------------------------------------------------------------

    def tx_hash(self) -> str:
        """Deterministic transaction hash."""
        return hashlib.blake2b(self._canonical_bytes(), digest_size=32).hexdigest()

    def _canonical_bytes(self) -> bytes:
        params_json = json.dumps(self.params, sort_keys=True, default=str).encode("utf-8")
        parts = [
            int(self.op_type).to_bytes(1, "big"),
            self.sender.encode("utf-8"),
            self.nonce.to_bytes(8, "big"),
            params_json,
        ]
        return b"".join(parts)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op_type": int(self.op_type),
            "sender": self.sender,
            "nonce": self.nonce,
            "params": self.params,
            "timestamp": self.timestamp,
            "tx_hash": self.tx_hash(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> EngineTransaction:
        try:
            return cls(
                op_type=EngineOpType(data["op_type"]),
                sender=data["sender"],
                nonce=data["nonce"],
                params=data["params"],
                timestamp=data.get("timestamp", 0.0),
            )
        except KeyError as e:
            raise InvalidParameters(f"Transaction missing field: {e.args[0]}") from e
        except ValueError as e:
            raise InvalidParameters(f"Unknown operation type: {data.get('op_type')}") from e

    # -- Validation ---------------------------------------------------------

    def validate_basic(self) -> bool:
        """
        Structural validation (no state access needed).

        Raises:
            InvalidParameters: with specific reason
        """
        if not self.sender:
            raise InvalidParameters("Missing sender address")
        if not isinstance(self.nonce, int) or self.nonce < 0:
            raise InvalidParameters("Nonce must be a non-negative integer")
        if self.op_type not in REQUIRED_PARAMS:
            raise InvalidParameters(f"Unknown operation type: {self.op_type}")

        for key in REQUIRED_PARAMS[self.op_type]:
            if key not in self.params:
                raise InvalidParameters(f"{self.op_type.name} missing param: {key}")
        return True

    # -- Param accessors ----------------------------------------------------

    def pool_key(self) -> PoolKey:
        raw = self.params["pool_key"]
        if isinstance(raw, PoolKey):
            return raw
        return PoolKey.from_dict(raw)

    def target_engine(self) -> Optional[str]:
        """Engine address the operation is routed to."""
        if "pool_key" in self.params:
            return self.pool_key().hooks
        return self.params.get("engine")

    def swap_params(self) -> SwapParams:
        p = self.params
        mode = p["mode"]
        try:
            mode = mode if isinstance(mode, SwapMode) else SwapMode(mode)
        except ValueError as e:
            raise InvalidParameters(f"Unknown swap mode: {mode!r}") from e
        return SwapParams(zero_for_one=bool(p["zero_for_one"]), mode=mode, amount=_as_int(p["amount"], "amount"))

    def side(self) -> Side:
        try:
            return Side(_as_int(self.params["side"], "side"))
        except ValueError as e:
            raise InvalidParameters(f"Unknown side: {self.params['side']!r}") from e

    def int_param(self, name: str) -> int:
        return _as_int(self.params[name], name)

    def __repr__(self) -> str:
        return (f"EngineTransaction(op={self.op_type.name}, sender={self.sender[:16]}, "
                f"nonce={self.nonce}, hash={self.tx_hash()[:12]}...)")


def _as_int(value: Any, name: str) -> int:
    """Accept ints and decimal strings (large amounts travel as strings in JSON)."""
    if isinstance(value, bool):
        raise InvalidParameters(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError as e:
            raise InvalidParameters(f"{name} must be an integer, got {value!r}") from e
    raise InvalidParameters(f"{name} must be an integer, got {type(value).__name__}")
