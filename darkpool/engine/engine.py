"""
Confidential Pool Engine

Facade over one engine instance: owns the ``EngineState`` and wires the
ledger, masking layer, liquidity manager, rebalancer, treasury and access
control around it.

Every state-changing call runs as one critical section:
  - take the operation lock (re-entry raises ``ReentrancyError``)
  - open a state checkpoint and mark the event log
  - open the vault's settlement window; the vault calls back
    ``unlock_callback`` and the operation runs inside it
  - on any exception undo the journaled writes and drop the events
    emitted since the mark, then re-raise

Host extension points (``on_*``) accept calls only from the bound host.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from ..constants import (
    BPS_DENOMINATOR,
    DEFAULT_FEE_BPS,
    DEFAULT_PROTOCOL_SHARE_BPS,
    DUMMY_RESERVE,
    NO_FEE_OVERRIDE,
)
from ..exceptions import (
    AddLiquidityThroughHook,
    DarkpoolException,
    InvalidParameters,
    PoolAlreadyInitialized,
    ReentrancyError,
    Unauthorized,
)
from ..logger import get_logger
from ..metrics import EngineMetrics
from .access import AccessControl
from .circuit_breaker import CircuitBreakerConfig
from .events import (
    CircuitBreakerUpdated,
    EventLog,
    KeeperUpdated,
    OwnershipTransferred,
    ProtocolFeesWithdrawn,
    ProtocolFeeShareUpdated,
)
from .hooks import HookFlags
from .ledger import ReserveLedger
from .liquidity import LiquidityManager
from .masking import DeltaMaskingLayer
from .rebalancer import KeeperRebalancer
from .state import Checkpoint, EngineState
from .treasury import FeeTreasury
from .types import BeforeSwapDelta, LiquidityDelta, PoolKey, Side, SwapParams
from .units import require_int
from .vault import SettlementVault, settle, take

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class _Operation:
    """Payload handed to the vault and back; identity marks the in-flight call."""
    name: str
    func: Callable[..., Any]
    args: Tuple[Any, ...]

    def run(self) -> Any:
        return self.func(*self.args)


@dataclass(frozen=True)
class EngineCheckpoint:
    state: Checkpoint
    events: int


class ConfidentialPoolEngine:
    """
    Constant-sum pool engine that publishes only dummy swap signals.

    Usage (normally driven by ``PoolHost``):

        engine = ConfidentialPoolEngine(vault, host_address, owner, keeper)
        engine.on_pool_init(host_address, key)
        engine.add_liquidity(provider, key, 1000 * UNIT)
        delta, fee = engine.on_before_swap(host_address, trader, key, params)
    """

    def __init__(
        self,
        vault: SettlementVault,
        host_address: str,
        owner: str,
        keeper: str,
        address: str = "0xdarkpool",
        fee_bps: int = DEFAULT_FEE_BPS,
        protocol_share_bps: int = DEFAULT_PROTOCOL_SHARE_BPS,
        breaker: Optional[CircuitBreakerConfig] = None,
        metrics: Optional[EngineMetrics] = None,
    ):
        if not address or not host_address:
            raise InvalidParameters("Engine and host addresses are required")
        if not owner or not keeper:
            raise InvalidParameters("Owner and keeper are required")
        require_int(fee_bps, "fee_bps")
        if not 0 <= fee_bps < BPS_DENOMINATOR:
            raise InvalidParameters(f"fee_bps {fee_bps} outside [0, {BPS_DENOMINATOR})")

        self.address = address
        self._host_address = host_address
        self._vault = vault

        self.state = EngineState(owner=owner, keeper=keeper, fee_bps=fee_bps)
        if breaker is not None:
            self.state.breaker = breaker
        self.events = EventLog()
        self.metrics = metrics or EngineMetrics()

        self._ledger = ReserveLedger(self.state)
        self._treasury = FeeTreasury(self.state)
        self._treasury.set_protocol_share(protocol_share_bps)
        self._access = AccessControl(self.state)
        self._masking = DeltaMaskingLayer(
            address, self.state, self._ledger, self._treasury, vault, self.events
        )
        self._liquidity = LiquidityManager(address, self.state, self._ledger, vault, self.events)
        self._rebalancer = KeeperRebalancer(address, self._access, self._ledger, vault, self.events)

        self._locked: bool = False
        self._in_flight: Optional[_Operation] = None

    @classmethod
    def from_config(cls, config, vault: SettlementVault) -> ConfidentialPoolEngine:
        """Build an engine from a validated ``DarkpoolConfig``."""
        config.validate()
        config.logging.apply()
        return cls(
            vault,
            host_address=config.engine.host_address,
            owner=config.roles.owner,
            keeper=config.roles.keeper,
            address=config.engine.address,
            fee_bps=config.engine.fee_bps,
            protocol_share_bps=config.engine.protocol_share_bps,
            breaker=CircuitBreakerConfig(
                config.circuit_breaker.max_ratio_bps,
                config.circuit_breaker.min_ratio_bps,
            ),
        )

    # -- Identity -----------------------------------------------------------

    @property
    def hook_flags(self) -> HookFlags:
        return (
            HookFlags.BEFORE_INITIALIZE
            | HookFlags.BEFORE_ADD_LIQUIDITY
            | HookFlags.BEFORE_REMOVE_LIQUIDITY
            | HookFlags.BEFORE_SWAP
            | HookFlags.BEFORE_SWAP_RETURNS_DELTA
        )

    @property
    def host_address(self) -> str:
        return self._host_address

    @property
    def owner(self) -> str:
        return self.state.owner

    @property
    def keeper(self) -> str:
        return self.state.keeper

    # -- Reentrancy guard ---------------------------------------------------

    def _acquire_lock(self) -> None:
        if self._locked:
            raise ReentrancyError("Reentrancy detected: engine is mid-operation")
        self._locked = True

    def _release_lock(self) -> None:
        self._locked = False

    @property
    def is_locked(self) -> bool:
        return self._locked

    # -- Critical section ---------------------------------------------------

    def _atomic(self, name: str, func: Callable[..., Any], *args: Any, settles: bool = True) -> Any:
        self._acquire_lock()
        checkpoint = self.checkpoint()
        try:
            with self.metrics.operation_latency.time():
                if settles:
                    self._in_flight = _Operation(name, func, args)
                    result = self._vault.unlock(self, self._in_flight)
                else:
                    result = func(*args)
        except Exception:
            self.rollback(checkpoint)
            self.metrics.operations_failed_total.inc()
            raise
        else:
            self.commit(checkpoint)
            return result
        finally:
            self._in_flight = None
            self._release_lock()

    def unlock_callback(self, vault: SettlementVault, data: Any) -> Any:
        """Vault callback; runs the operation that opened the window."""
        if vault is not self._vault or self._in_flight is None or data is not self._in_flight:
            logger.warning("Rejected unlock callback for %r", getattr(data, "name", data))
            raise Unauthorized("Unlock callback does not match an in-flight operation")
        return data.run()

    # -- Guards -------------------------------------------------------------

    def _require_host(self, caller: str) -> None:
        if caller != self._host_address:
            raise Unauthorized(f"{caller} is not the host")

    def _require_own_pool(self, key: PoolKey) -> None:
        if key.hooks != self.address:
            raise InvalidParameters(f"Pool {key.pool_id[:16]} is bound to {key.hooks}, not {self.address}")

    @staticmethod
    def _require_sender(sender: str) -> None:
        if not sender:
            raise InvalidParameters("Sender address is required")

    # =====================================================================
    #  Host extension points
    # =====================================================================

    def on_pool_init(self, caller: str, key: PoolKey) -> None:
        """
        Create the pool's records with zero reserves.

        Raises:
            Unauthorized: caller is not the host
            PoolAlreadyInitialized: second initialization of ``key``
        """
        self._require_host(caller)
        self._require_own_pool(key)
        self._atomic("initialize", self._initialize, key, settles=False)

    def _initialize(self, key: PoolKey) -> None:
        if self.state.is_initialized(key):
            raise PoolAlreadyInitialized(f"Pool {key.pool_id[:16]} is already initialized")
        self.state.initialize_pool(key)
        self.metrics.pools_initialized.set(self.state.pool_count)
        logger.info("Pool initialized pool=%s %s/%s", key.pool_id[:16], key.currency0, key.currency1)

    def on_before_liquidity_modify(
        self, caller: str, sender: str, key: PoolKey, delta: LiquidityDelta
    ) -> None:
        """The host's generic liquidity path is closed; use add/remove_liquidity."""
        self._require_host(caller)
        raise AddLiquidityThroughHook(
            "Liquidity must go through add_liquidity / remove_liquidity"
        )

    def on_before_swap(
        self, caller: str, sender: str, key: PoolKey, params: SwapParams
    ) -> Tuple[BeforeSwapDelta, int]:
        """
        Execute the real swap and return the dummy delta to the host.

        Returns:
            ``(BeforeSwapDelta, fee_override)``; the engine charges its own
            fee so the override is always ``NO_FEE_OVERRIDE``.
        """
        self._require_host(caller)
        self._require_own_pool(key)
        self._require_sender(sender)
        try:
            delta = self._atomic("swap", self._masking.execute, sender, key, params)
        except DarkpoolException:
            self.metrics.swaps_rejected_total.inc()
            raise
        self.metrics.swaps_total.inc()
        return delta, NO_FEE_OVERRIDE

    # =====================================================================
    #  Liquidity
    # =====================================================================

    def add_liquidity(self, sender: str, key: PoolKey, amount_each: int) -> None:
        self._require_own_pool(key)
        self._require_sender(sender)
        self._atomic("add_liquidity", self._liquidity.add, sender, key, amount_each)
        self.metrics.liquidity_ops_total.inc()

    def remove_liquidity(self, sender: str, key: PoolKey, amount_each: int) -> None:
        self._require_own_pool(key)
        self._require_sender(sender)
        self._atomic("remove_liquidity", self._liquidity.remove, sender, key, amount_each)
        self.metrics.liquidity_ops_total.inc()

    # =====================================================================
    #  Keeper
    # =====================================================================

    def rebalance(self, sender: str, key: PoolKey, amount_in: int, side: Side) -> None:
        self._access.require_keeper_or_owner(sender)
        self._require_own_pool(key)
        self._atomic("rebalance", self._rebalancer.rebalance, sender, key, amount_in, side)
        self.metrics.rebalances_total.inc()

    # =====================================================================
    #  Owner administration
    # =====================================================================

    def withdraw_protocol_fees(self, caller: str, key: PoolKey) -> Tuple[int, int]:
        """Pay every accrued protocol fee of ``key`` to the owner."""
        self._access.require_owner(caller)
        self._require_own_pool(key)
        return self._atomic("withdraw_protocol_fees", self._withdraw_protocol_fees, caller, key)

    def _withdraw_protocol_fees(self, owner: str, key: PoolKey) -> Tuple[int, int]:
        amounts = self._treasury.drain(key)
        for side, amount in zip((Side.A, Side.B), amounts):
            asset = key.currency(side)
            settle(self._vault, asset, self.address, amount, burn=True)
            take(self._vault, asset, owner, amount)
        self.events.emit(ProtocolFeesWithdrawn(
            pool_id=key.pool_id, recipient=owner, amount_a=amounts[0], amount_b=amounts[1],
        ))
        logger.info("Protocol fees withdrawn pool=%s", key.pool_id[:16])
        return amounts

    def set_keeper(self, caller: str, new_keeper: str) -> None:
        self._atomic("set_keeper", self._set_keeper, caller, new_keeper, settles=False)

    def _set_keeper(self, caller: str, new_keeper: str) -> None:
        previous = self._access.set_keeper(caller, new_keeper)
        self.events.emit(KeeperUpdated(previous=previous, keeper=new_keeper))

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._atomic("transfer_ownership", self._transfer_ownership, caller, new_owner, settles=False)

    def _transfer_ownership(self, caller: str, new_owner: str) -> None:
        previous = self._access.transfer_ownership(caller, new_owner)
        self.events.emit(OwnershipTransferred(previous=previous, owner=new_owner))

    def set_circuit_breaker_thresholds(self, caller: str, max_ratio_bps: int, min_ratio_bps: int) -> None:
        """
        Raises:
            Unauthorized: caller is not the owner (checked first)
            InvalidParameters: bounds not complementary or out of range
        """
        self._atomic(
            "set_circuit_breaker", self._set_circuit_breaker,
            caller, max_ratio_bps, min_ratio_bps, settles=False,
        )

    def _set_circuit_breaker(self, caller: str, max_ratio_bps: int, min_ratio_bps: int) -> None:
        self._access.require_owner(caller)
        self.state.breaker = CircuitBreakerConfig(max_ratio_bps, min_ratio_bps)
        self.events.emit(CircuitBreakerUpdated(max_ratio_bps=max_ratio_bps, min_ratio_bps=min_ratio_bps))
        logger.info("Circuit breaker bounds set to %d..%d bps", min_ratio_bps, max_ratio_bps)

    def set_protocol_fee_share(self, caller: str, protocol_share_bps: int) -> None:
        self._atomic(
            "set_protocol_fee_share", self._set_protocol_fee_share,
            caller, protocol_share_bps, settles=False,
        )

    def _set_protocol_fee_share(self, caller: str, protocol_share_bps: int) -> None:
        self._access.require_owner(caller)
        self._treasury.set_protocol_share(protocol_share_bps)
        self.events.emit(ProtocolFeeShareUpdated(protocol_share_bps=protocol_share_bps))

    # =====================================================================
    #  Query interface
    # =====================================================================

    def get_public_reserves(self, key: PoolKey) -> Tuple[int, int]:
        """Constant public view; never derived from real state."""
        return DUMMY_RESERVE, DUMMY_RESERVE

    def get_real_reserves(self, caller: str, key: PoolKey) -> Tuple[int, int]:
        self._access.require_keeper_or_owner(caller)
        return self._ledger.get(key)

    def get_protocol_fees(self, caller: str, key: PoolKey) -> Tuple[int, int]:
        self._access.require_owner(caller)
        return self._treasury.accrued(key)

    def claim_balance_of(self, provider: str, key: PoolKey) -> Tuple[int, int]:
        return self._liquidity.claim_of(key, provider).as_tuple()

    def is_initialized(self, key: PoolKey) -> bool:
        return self.state.is_initialized(key)

    def state_root(self) -> str:
        return self.state.state_root()

    # =====================================================================
    #  Checkpoints (also used by the host around a whole transaction)
    # =====================================================================

    def checkpoint(self) -> EngineCheckpoint:
        return EngineCheckpoint(state=self.state.checkpoint(), events=len(self.events))

    def commit(self, checkpoint: EngineCheckpoint) -> None:
        self.state.commit(checkpoint.state)

    def rollback(self, checkpoint: EngineCheckpoint) -> None:
        self.state.rollback(checkpoint.state)
        self.events.truncate(checkpoint.events)
