"""
Engine events.

Two streams share one ordered log:
  - public events, safe for any observer (dummy swap signal, liquidity
    and administrative changes);
  - private events, carrying real trade sizes for privileged off-chain
    consumers such as keeper bots.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Union


@dataclass(frozen=True)
class PublicSwap:
    """Fixed-shape swap signal. Never carries real magnitudes."""
    private: ClassVar[bool] = False
    pool_id: str
    sender: str
    dummy_delta_a: int
    dummy_delta_b: int
    fee_tag0: int
    fee_tag1: int
    timestamp: float = field(default_factory=time.time, compare=False)

    def shape(self) -> tuple:
        """Everything but sender and timestamp: what an observer can compare."""
        return (self.pool_id, self.dummy_delta_a, self.dummy_delta_b, self.fee_tag0, self.fee_tag1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "PublicSwap",
            "poolId": self.pool_id,
            "sender": self.sender,
            "dummyDeltaA": self.dummy_delta_a,
            "dummyDeltaB": self.dummy_delta_b,
            "feeTag0": self.fee_tag0,
            "feeTag1": self.fee_tag1,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class RealSwap:
    """Real swap amounts, for privileged consumers only."""
    private: ClassVar[bool] = True
    pool_id: str
    sender: str
    real_input: int
    real_output: int
    zero_for_one: bool
    timestamp: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "RealSwap",
            "poolId": self.pool_id,
            "sender": self.sender,
            "realInput": str(self.real_input),
            "realOutput": str(self.real_output),
            "zeroForOne": self.zero_for_one,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class RealRebalance:
    """Real keeper injection, for privileged consumers only."""
    private: ClassVar[bool] = True
    pool_id: str
    sender: str
    amount_in: int
    side: int
    timestamp: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "RealRebalance",
            "poolId": self.pool_id,
            "sender": self.sender,
            "amountIn": str(self.amount_in),
            "side": self.side,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class LiquidityAdded:
    private: ClassVar[bool] = False
    pool_id: str
    provider: str
    amount_each: int
    timestamp: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "LiquidityAdded",
            "poolId": self.pool_id,
            "provider": self.provider,
            "amountEach": str(self.amount_each),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class LiquidityRemoved:
    private: ClassVar[bool] = False
    pool_id: str
    provider: str
    amount_each: int
    timestamp: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "LiquidityRemoved",
            "poolId": self.pool_id,
            "provider": self.provider,
            "amountEach": str(self.amount_each),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ProtocolFeesWithdrawn:
    private: ClassVar[bool] = False
    pool_id: str
    recipient: str
    amount_a: int
    amount_b: int
    timestamp: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProtocolFeesWithdrawn",
            "poolId": self.pool_id,
            "recipient": self.recipient,
            "amountA": str(self.amount_a),
            "amountB": str(self.amount_b),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class KeeperUpdated:
    private: ClassVar[bool] = False
    previous: str
    keeper: str
    timestamp: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "KeeperUpdated",
            "previous": self.previous,
            "keeper": self.keeper,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class OwnershipTransferred:
    private: ClassVar[bool] = False
    previous: str
    owner: str
    timestamp: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "OwnershipTransferred",
            "previous": self.previous,
            "owner": self.owner,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class CircuitBreakerUpdated:
    private: ClassVar[bool] = False
    max_ratio_bps: int
    min_ratio_bps: int
    timestamp: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "CircuitBreakerUpdated",
            "maxRatioBps": self.max_ratio_bps,
            "minRatioBps": self.min_ratio_bps,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ProtocolFeeShareUpdated:
    private: ClassVar[bool] = False
    protocol_share_bps: int
    timestamp: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProtocolFeeShareUpdated",
            "protocolShareBps": self.protocol_share_bps,
            "timestamp": self.timestamp,
        }


EngineEvent = Union[
    PublicSwap,
    RealSwap,
    RealRebalance,
    LiquidityAdded,
    LiquidityRemoved,
    ProtocolFeesWithdrawn,
    KeeperUpdated,
    OwnershipTransferred,
    CircuitBreakerUpdated,
    ProtocolFeeShareUpdated,
]


class EventLog:
    """Append-only event log with public and private views."""

    def __init__(self) -> None:
        self._events: List[EngineEvent] = []

    def emit(self, event: EngineEvent) -> None:
        self._events.append(event)

    def __len__(self) -> int:
        return len(self._events)

    @property
    def events(self) -> List[EngineEvent]:
        return list(self._events)

    def public_events(self) -> List[EngineEvent]:
        return [e for e in self._events if not e.private]

    def private_events(self) -> List[EngineEvent]:
        return [e for e in self._events if e.private]

    def since(self, mark: int) -> List[EngineEvent]:
        """Events emitted after ``mark`` (a previous ``len(log)``)."""
        return self._events[mark:]

    def truncate(self, mark: int) -> None:
        """Drop every event emitted after ``mark``; used on rollback."""
        del self._events[mark:]
