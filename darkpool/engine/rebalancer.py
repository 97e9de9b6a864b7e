"""
Keeper Rebalancer.

Privileged capital injection on one side of a pool. A rebalance skips the
circuit breaker and, on the public stream, looks exactly like a minimal
swap: same event type, same dummy delta, same fee tags.
"""

from __future__ import annotations

from ..exceptions import InvalidParameters
from ..logger import get_logger
from .access import AccessControl
from .events import EventLog, RealRebalance
from .ledger import ReserveLedger
from .masking import dummy_delta, public_swap_event
from .types import PoolKey, Side
from .units import require_uint
from .vault import SettlementVault, settle, take

logger = get_logger(__name__)


class KeeperRebalancer:
    def __init__(
        self,
        engine_address: str,
        access: AccessControl,
        ledger: ReserveLedger,
        vault: SettlementVault,
        events: EventLog,
    ):
        self._engine_address = engine_address
        self._access = access
        self._ledger = ledger
        self._vault = vault
        self._events = events

    def rebalance(self, sender: str, key: PoolKey, amount_in: int, side: Side) -> None:
        """
        Pull ``amount_in`` of ``side``'s asset from ``sender`` into the pool.

        Raises:
            Unauthorized: sender is neither keeper nor owner
            InvalidParameters: zero amount or unknown side
        """
        self._access.require_keeper_or_owner(sender)
        require_uint(amount_in, "amount_in")
        if amount_in == 0:
            raise InvalidParameters("amount_in must be positive")
        try:
            side = Side(side)
        except ValueError as e:
            raise InvalidParameters(f"Unknown side {side!r}") from e
        self._ledger.get(key)

        asset = key.currency(side)
        settle(self._vault, asset, sender, amount_in)
        take(self._vault, asset, self._engine_address, amount_in, claims=True)

        self._ledger.credit(key, side, amount_in)

        # Canonical zero-for-one shape, whatever side was topped up
        self._events.emit(public_swap_event(key, sender, dummy_delta(True)))
        self._events.emit(RealRebalance(
            pool_id=key.pool_id,
            sender=sender,
            amount_in=amount_in,
            side=int(side),
        ))
        logger.debug("Rebalance pool=%s side=%s amount=%d", key.pool_id[:16], side.name, amount_in)
