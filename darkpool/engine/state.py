"""
Engine state container.

All mutable state of one engine instance lives in a single ``EngineState``:
reserves, protocol fees, claim balances, circuit-breaker bounds, roles and
fee parameters. Components write pool records only through the ``touch_*``
accessors, which journal the prior values so the engine can roll an
operation back.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple

from ..constants import (
    DEFAULT_FEE_BPS,
    DEFAULT_MAX_RATIO_BPS,
    DEFAULT_MIN_RATIO_BPS,
    DEFAULT_PROTOCOL_SHARE_BPS,
)
from .circuit_breaker import CircuitBreakerConfig
from .types import PoolKey, Side


# ---------------------------------------------------------------------------
# Per-pool records
# ---------------------------------------------------------------------------

@dataclass
class ReserveRecord:
    """Private reserves of one pool."""
    real_a: int = 0
    real_b: int = 0

    def get(self, side: Side) -> int:
        return self.real_a if side == Side.A else self.real_b

    def set(self, side: Side, value: int) -> None:
        if side == Side.A:
            self.real_a = value
        else:
            self.real_b = value

    def as_tuple(self) -> Tuple[int, int]:
        return self.real_a, self.real_b


@dataclass
class ProtocolFeeRecord:
    """Protocol fees accrued by one pool, per side."""
    accrued_a: int = 0
    accrued_b: int = 0

    def get(self, side: Side) -> int:
        return self.accrued_a if side == Side.A else self.accrued_b

    def as_tuple(self) -> Tuple[int, int]:
        return self.accrued_a, self.accrued_b


@dataclass
class ClaimBalance:
    """A provider's redeemable deposit, per side."""
    amount_a: int = 0
    amount_b: int = 0

    @property
    def is_empty(self) -> bool:
        return self.amount_a == 0 and self.amount_b == 0

    def as_tuple(self) -> Tuple[int, int]:
        return self.amount_a, self.amount_b


# ---------------------------------------------------------------------------
# Engine state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Checkpoint:
    """Journal position plus the scalar settings at the time it was taken."""
    mark: int
    settings: Tuple[str, str, int, int, CircuitBreakerConfig]


@dataclass
class EngineState:
    owner: str
    keeper: str
    fee_bps: int = DEFAULT_FEE_BPS
    protocol_share_bps: int = DEFAULT_PROTOCOL_SHARE_BPS
    breaker: CircuitBreakerConfig = field(
        default_factory=lambda: CircuitBreakerConfig(DEFAULT_MAX_RATIO_BPS, DEFAULT_MIN_RATIO_BPS)
    )
    reserves: Dict[PoolKey, ReserveRecord] = field(default_factory=dict)
    protocol_fees: Dict[PoolKey, ProtocolFeeRecord] = field(default_factory=dict)
    claims: Dict[PoolKey, Dict[str, ClaimBalance]] = field(default_factory=dict)

    # Undo entries recorded while at least one checkpoint is open
    _journal: List[Callable[[], None]] = field(default_factory=list, init=False, repr=False, compare=False)
    _open: int = field(default=0, init=False, repr=False, compare=False)

    def is_initialized(self, key: PoolKey) -> bool:
        return key in self.reserves

    def initialize_pool(self, key: PoolKey) -> None:
        self.reserves[key] = ReserveRecord()
        self.protocol_fees[key] = ProtocolFeeRecord()
        self.claims[key] = {}

        def undo() -> None:
            del self.reserves[key]
            del self.protocol_fees[key]
            del self.claims[key]

        self._record(undo)

    @property
    def pool_count(self) -> int:
        return len(self.reserves)

    # -- Checkpoints --------------------------------------------------------
    #
    # A checkpoint remembers the scalar settings and a position in the undo
    # journal. Pool records are journaled entry by entry as they are
    # written, so rolling back costs only what the operation touched.
    # Checkpoints nest; the journal is dropped once the outermost one closes.

    def checkpoint(self) -> Checkpoint:
        self._open += 1
        return Checkpoint(
            mark=len(self._journal),
            settings=(self.owner, self.keeper, self.fee_bps, self.protocol_share_bps, self.breaker),
        )

    def commit(self, checkpoint: Checkpoint) -> None:
        self._close()

    def rollback(self, checkpoint: Checkpoint) -> None:
        while len(self._journal) > checkpoint.mark:
            self._journal.pop()()
        self.owner, self.keeper, self.fee_bps, self.protocol_share_bps, self.breaker = checkpoint.settings
        self._close()

    def _close(self) -> None:
        if self._open == 0:
            raise RuntimeError("No open checkpoint")
        self._open -= 1
        if self._open == 0:
            self._journal.clear()

    def _record(self, undo: Callable[[], None]) -> None:
        if self._open:
            self._journal.append(undo)

    def touch_reserves(self, key: PoolKey) -> ReserveRecord:
        """Return the pool's reserve record, journaling its current values."""
        record = self.reserves[key]
        before = record.as_tuple()

        def undo() -> None:
            record.real_a, record.real_b = before

        self._record(undo)
        return record

    def touch_fees(self, key: PoolKey) -> ProtocolFeeRecord:
        """Return the pool's protocol fee record, journaling its current values."""
        record = self.protocol_fees[key]
        before = record.as_tuple()

        def undo() -> None:
            record.accrued_a, record.accrued_b = before

        self._record(undo)
        return record

    def touch_claim(self, key: PoolKey, provider: str) -> ClaimBalance:
        """
        Return ``provider``'s claim in ``key``, created empty if absent,
        journaling its current values (or its absence).
        """
        claims = self.claims[key]
        existing = claims.get(provider)
        before = existing.as_tuple() if existing is not None else None

        def undo() -> None:
            if before is None:
                claims.pop(provider, None)
            else:
                claims[provider] = ClaimBalance(*before)

        self._record(undo)
        if existing is None:
            existing = claims[provider] = ClaimBalance()
        return existing

    # -- State root ---------------------------------------------------------

    def state_root(self) -> str:
        """
        Deterministic digest of the whole state.

        Pools are hashed in pool-id order, providers in address order.

        Returns:
            64-char hex string (blake2b-256)
        """
        hasher = hashlib.blake2b(digest_size=32)

        for key in sorted(self.reserves, key=lambda k: k.pool_id):
            reserves = self.reserves[key]
            fees = self.protocol_fees[key]
            pool_hash = hashlib.blake2b(
                f"{key.pool_id}:{reserves.real_a}:{reserves.real_b}:"
                f"{fees.accrued_a}:{fees.accrued_b}".encode(),
                digest_size=16,
            ).digest()
            hasher.update(pool_hash)

            for provider in sorted(self.claims[key]):
                claim = self.claims[key][provider]
                hasher.update(f"{provider}:{claim.amount_a}:{claim.amount_b}".encode())

        hasher.update(
            f"{self.owner}:{self.keeper}:{self.fee_bps}:{self.protocol_share_bps}:"
            f"{self.breaker.max_ratio_bps}:{self.breaker.min_ratio_bps}".encode()
        )
        return hasher.hexdigest()
