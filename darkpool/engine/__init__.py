"""
Darkpool Confidential Pool Engine

Constant-sum two-asset pool engine that settles real trades privately and
publishes only fixed dummy signals.

Components:
  - Reserve Ledger (private per-pool balances)
  - Pricing Engine (constant-sum, exact-input / exact-output)
  - Circuit Breaker (reserve-ratio bounds)
  - Delta Masking Layer (swap orchestration, dummy public deltas)
  - Liquidity Manager (symmetric deposits against claim balances)
  - Keeper Rebalancer (privileged, swap-shaped capital injection)
  - Fee Treasury & Access Control (protocol fees, owner / keeper roles)
  - Reference host runtime and deferred-settlement vault
"""

from .types import (
    Side,
    SwapMode,
    PoolKey,
    SwapParams,
    BeforeSwapDelta,
    LiquidityDelta,
)
from .pricing import SwapQuote, quote_swap, split_fee
from .circuit_breaker import CircuitBreakerConfig, check_imbalance, reserve_ratio_bps
from .state import EngineState, ReserveRecord, ProtocolFeeRecord, ClaimBalance
from .ledger import ReserveLedger
from .events import (
    EventLog,
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
)
from .vault import InMemoryVault, SettlementVault
from .hooks import HookFlags, validate_before_swap_response
from .engine import ConfidentialPoolEngine
from .transactions import EngineOpType, EngineTransaction
from .host import ExecResult, PoolHost

__all__ = [
    # Types
    "Side",
    "SwapMode",
    "PoolKey",
    "SwapParams",
    "BeforeSwapDelta",
    "LiquidityDelta",
    # Pricing / breaker
    "SwapQuote",
    "quote_swap",
    "split_fee",
    "CircuitBreakerConfig",
    "check_imbalance",
    "reserve_ratio_bps",
    # State
    "EngineState",
    "ReserveRecord",
    "ProtocolFeeRecord",
    "ClaimBalance",
    "ReserveLedger",
    # Events
    "EventLog",
    "PublicSwap",
    "RealSwap",
    "RealRebalance",
    "LiquidityAdded",
    "LiquidityRemoved",
    "ProtocolFeesWithdrawn",
    "KeeperUpdated",
    "OwnershipTransferred",
    "CircuitBreakerUpdated",
    "ProtocolFeeShareUpdated",
    # Settlement / host
    "InMemoryVault",
    "SettlementVault",
    "HookFlags",
    "validate_before_swap_response",
    "ConfidentialPoolEngine",
    "EngineOpType",
    "EngineTransaction",
    "ExecResult",
    "PoolHost",
]
