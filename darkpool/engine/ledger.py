"""
Reserve Ledger: the single source of truth for private pool balances.

Pricing and solvency read reserves only from here, never from the vault's
token balances.
"""

from __future__ import annotations

from typing import Tuple

from ..exceptions import InsufficientLiquidity, PoolNotInitialized
from .state import EngineState, ReserveRecord
from .types import PoolKey, Side
from .units import checked_add, require_uint


class ReserveLedger:
    """Reads and mutates the ReserveRecord of each pool."""

    def __init__(self, state: EngineState):
        self._state = state

    def _record(self, key: PoolKey) -> ReserveRecord:
        record = self._state.reserves.get(key)
        if record is None:
            raise PoolNotInitialized(f"Pool {key.pool_id[:16]} is not initialized")
        return record

    def get(self, key: PoolKey) -> Tuple[int, int]:
        return self._record(key).as_tuple()

    def require_available(self, key: PoolKey, side: Side, amount: int) -> None:
        available = self._record(key).get(side)
        if amount > available:
            raise InsufficientLiquidity(
                f"Requested {amount} of side {side.name} but pool holds {available}"
            )

    def credit(self, key: PoolKey, side: Side, amount: int) -> None:
        require_uint(amount)
        self._record(key)
        record = self._state.touch_reserves(key)
        record.set(side, checked_add(record.get(side), amount))

    def debit(self, key: PoolKey, side: Side, amount: int) -> None:
        require_uint(amount)
        self.require_available(key, side, amount)
        record = self._state.touch_reserves(key)
        record.set(side, record.get(side) - amount)
