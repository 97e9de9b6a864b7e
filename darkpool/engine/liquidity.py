"""
Liquidity Manager.

Symmetric deposits and withdrawals: every call moves the same amount of
both assets, grows or shrinks both reserve sides by it, and mints or burns
the same amount of claim balance on both sides for the provider. Swaps
never touch claims, so the sum of a pool's claims is always the net
liquidity contributed to it.
"""

from __future__ import annotations

from ..exceptions import InsufficientLiquidity, InvalidParameters, PoolNotInitialized
from ..logger import get_logger
from .events import EventLog, LiquidityAdded, LiquidityRemoved
from .ledger import ReserveLedger
from .state import ClaimBalance, EngineState
from .types import PoolKey, Side
from .units import checked_add, require_uint
from .vault import SettlementVault, settle, take

logger = get_logger(__name__)


class LiquidityManager:
    def __init__(
        self,
        engine_address: str,
        state: EngineState,
        ledger: ReserveLedger,
        vault: SettlementVault,
        events: EventLog,
    ):
        self._engine_address = engine_address
        self._state = state
        self._ledger = ledger
        self._vault = vault
        self._events = events

    def claim_of(self, key: PoolKey, provider: str) -> ClaimBalance:
        claims = self._state.claims.get(key)
        if claims is None:
            raise PoolNotInitialized(f"Pool {key.pool_id[:16]} is not initialized")
        return claims.get(provider, ClaimBalance())

    def add(self, sender: str, key: PoolKey, amount_each: int) -> None:
        """Deposit ``amount_each`` of both assets and mint matching claims."""
        self._require_amount(amount_each)
        self._ledger.get(key)  # raises on an uninitialized pool

        for side in (Side.A, Side.B):
            asset = key.currency(side)
            settle(self._vault, asset, sender, amount_each)
            take(self._vault, asset, self._engine_address, amount_each, claims=True)

        for side in (Side.A, Side.B):
            self._ledger.credit(key, side, amount_each)

        claim = self._state.touch_claim(key, sender)
        claim.amount_a = checked_add(claim.amount_a, amount_each)
        claim.amount_b = checked_add(claim.amount_b, amount_each)

        self._events.emit(LiquidityAdded(pool_id=key.pool_id, provider=sender, amount_each=amount_each))
        logger.info("Liquidity added pool=%s provider=%s", key.pool_id[:16], sender)

    def remove(self, sender: str, key: PoolKey, amount_each: int) -> None:
        """
        Burn ``amount_each`` of the sender's claims on both sides and pay
        out both assets.

        Raises:
            InsufficientLiquidity: claims or reserves cannot cover the amount
        """
        self._require_amount(amount_each)
        claim = self.claim_of(key, sender)
        if claim.amount_a < amount_each or claim.amount_b < amount_each:
            raise InsufficientLiquidity(
                f"{sender} holds claims {claim.as_tuple()}, requested {amount_each} each"
            )
        # Swaps can leave a side below the claims it backs
        for side in (Side.A, Side.B):
            self._ledger.require_available(key, side, amount_each)

        for side in (Side.A, Side.B):
            asset = key.currency(side)
            settle(self._vault, asset, self._engine_address, amount_each, burn=True)
            take(self._vault, asset, sender, amount_each)

        for side in (Side.A, Side.B):
            self._ledger.debit(key, side, amount_each)

        claim = self._state.touch_claim(key, sender)
        claim.amount_a -= amount_each
        claim.amount_b -= amount_each
        if claim.is_empty:
            self._state.claims[key].pop(sender, None)

        self._events.emit(LiquidityRemoved(pool_id=key.pool_id, provider=sender, amount_each=amount_each))
        logger.info("Liquidity removed pool=%s provider=%s", key.pool_id[:16], sender)

    @staticmethod
    def _require_amount(amount_each: int) -> None:
        require_uint(amount_each, "amount_each")
        if amount_each == 0:
            raise InvalidParameters("amount_each must be positive")
