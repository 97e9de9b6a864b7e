"""
Protocol fee treasury.

Accrues the protocol share of swap fees per pool and side; only the owner
can drain it. Accrued fees are backed by the engine's vault claims but are
kept out of the reserves used for pricing and solvency.
"""

from __future__ import annotations

from typing import Tuple

from ..constants import BPS_DENOMINATOR
from ..exceptions import InvalidParameters, PoolNotInitialized
from .state import EngineState, ProtocolFeeRecord
from .types import PoolKey, Side
from .units import checked_add, require_int


class FeeTreasury:
    def __init__(self, state: EngineState):
        self._state = state

    def _record(self, key: PoolKey) -> ProtocolFeeRecord:
        record = self._state.protocol_fees.get(key)
        if record is None:
            raise PoolNotInitialized(f"Pool {key.pool_id[:16]} is not initialized")
        return record

    def accrued(self, key: PoolKey) -> Tuple[int, int]:
        return self._record(key).as_tuple()

    def accrue(self, key: PoolKey, side: Side, amount: int) -> None:
        self._record(key)
        if amount < 0:
            raise InvalidParameters("Fee accrual cannot be negative")
        record = self._state.touch_fees(key)
        total = checked_add(record.get(side), amount)
        if side == Side.A:
            record.accrued_a = total
        else:
            record.accrued_b = total

    def drain(self, key: PoolKey) -> Tuple[int, int]:
        """Reset the pool's record to zero and return what it held."""
        self._record(key)
        record = self._state.touch_fees(key)
        amounts = record.as_tuple()
        record.accrued_a = 0
        record.accrued_b = 0
        return amounts

    def set_protocol_share(self, protocol_share_bps: int) -> None:
        require_int(protocol_share_bps, "protocol_share_bps")
        if not 0 <= protocol_share_bps <= BPS_DENOMINATOR:
            raise InvalidParameters(
                f"protocol_share_bps {protocol_share_bps} outside [0, {BPS_DENOMINATOR}]"
            )
        self._state.protocol_share_bps = protocol_share_bps
