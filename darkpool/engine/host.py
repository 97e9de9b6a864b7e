"""
Reference Host Runtime

Minimal host exchange runtime the engine sits behind. It:
  - registers engines by address and routes pools to them by ``key.hooks``
  - calls only the extension points an engine advertises in ``HookFlags``
  - validates every before-swap response shape
  - processes ``EngineTransaction`` objects serially with per-sender nonces,
    rolling back engine and vault together on failure

This is the only place engine errors are turned into a result object;
everywhere else they propagate as exceptions.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from ..exceptions import DarkpoolException, HostDispatchError, PoolAlreadyInitialized
from ..logger import get_logger
from .engine import ConfidentialPoolEngine
from .hooks import HookFlags, validate_before_swap_response
from .transactions import EngineOpType, EngineTransaction
from .types import BeforeSwapDelta, LiquidityDelta, PoolKey, SwapParams
from .vault import InMemoryVault

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Transaction execution result
# ---------------------------------------------------------------------------

class ExecResult:
    """Result of executing a single engine transaction."""

    __slots__ = ("success", "data", "error", "error_type", "logs", "private_logs")

    def __init__(
        self,
        success: bool = True,
        data: Optional[Dict[str, Any]] = None,
        error: str = "",
        error_type: str = "",
        logs: Optional[List[Dict[str, Any]]] = None,
        private_logs: Optional[List[Dict[str, Any]]] = None,
    ):
        self.success = success
        self.data = data or {}
        self.error = error
        self.error_type = error_type
        self.logs = logs or []
        self.private_logs = private_logs or []

    def __repr__(self) -> str:
        if self.success:
            return f"ExecResult(success=True, data={self.data})"
        return f"ExecResult(success=False, error_type={self.error_type}, error={self.error!r})"


# ---------------------------------------------------------------------------
# Pool host
# ---------------------------------------------------------------------------

class PoolHost:
    """
    Usage:

        host = PoolHost(vault)
        host.register_engine(engine)
        result = host.process_transaction(tx)
    """

    def __init__(self, vault: InMemoryVault, address: str = "0xhost"):
        self.address = address
        self.vault = vault
        self._engines: Dict[str, ConfidentialPoolEngine] = {}
        self._pools: Dict[PoolKey, str] = {}
        # Per-sender nonces for replay protection
        self._nonces: Dict[str, int] = {}

    # -- Registration -------------------------------------------------------

    def register_engine(self, engine: ConfidentialPoolEngine) -> None:
        if engine.host_address != self.address:
            raise HostDispatchError(
                f"Engine {engine.address} is bound to host {engine.host_address}, not {self.address}"
            )
        if engine.address in self._engines:
            raise HostDispatchError(f"Engine already registered: {engine.address}")
        self._engines[engine.address] = engine
        logger.info("Engine registered: %s (flags=%s)", engine.address, engine.hook_flags)

    def get_engine(self, address: str) -> ConfidentialPoolEngine:
        engine = self._engines.get(address)
        if engine is None:
            raise HostDispatchError(f"No engine registered at {address}")
        return engine

    @property
    def engine_count(self) -> int:
        return len(self._engines)

    def get_nonce(self, address: str) -> int:
        return self._nonces.get(address, 0)

    # =====================================================================
    #  Dispatch
    # =====================================================================

    def initialize(self, key: PoolKey) -> None:
        engine = self.get_engine(key.hooks)
        if key in self._pools:
            raise PoolAlreadyInitialized(f"Pool {key.pool_id[:16]} is already initialized")
        if HookFlags.BEFORE_INITIALIZE in engine.hook_flags:
            engine.on_pool_init(self.address, key)
        self._pools[key] = engine.address

    def modify_liquidity(self, sender: str, key: PoolKey, delta: LiquidityDelta) -> None:
        """Generic liquidity path; engines that take custody of liquidity reject it."""
        engine = self.get_engine(key.hooks)
        flag = HookFlags.BEFORE_ADD_LIQUIDITY if delta.liquidity_delta >= 0 else HookFlags.BEFORE_REMOVE_LIQUIDITY
        if flag in engine.hook_flags:
            engine.on_before_liquidity_modify(self.address, sender, key, delta)
        raise HostDispatchError("Generic concentrated liquidity is not supported by this host")

    def swap(self, sender: str, key: PoolKey, params: SwapParams) -> BeforeSwapDelta:
        """
        Dispatch a swap to the pool's engine and return the validated delta.

        Raises:
            HostDispatchError: engine does not implement before-swap, or its
                response is malformed
        """
        engine = self.get_engine(key.hooks)
        flags = engine.hook_flags
        if HookFlags.BEFORE_SWAP not in flags:
            raise HostDispatchError(f"Engine {engine.address} does not handle swaps")

        delta, _fee_override = validate_before_swap_response(
            engine.on_before_swap(self.address, sender, key, params)
        )
        if HookFlags.BEFORE_SWAP_RETURNS_DELTA not in flags and delta.to_tuple() != (0, 0):
            raise HostDispatchError(f"Engine {engine.address} returned a delta it did not declare")
        return delta

    # =====================================================================
    #  Transaction processing
    # =====================================================================

    def process_transaction(self, tx: EngineTransaction) -> ExecResult:
        """
        Execute a single engine transaction.

        Returns:
            ExecResult with success/failure, public event dicts in ``logs``
            and private event dicts in ``private_logs``
        """
        # 1. Basic structural validation
        try:
            tx.validate_basic()
            engine = self.get_engine(tx.target_engine())
        except DarkpoolException as e:
            return self._failed(tx, e)

        # 2. Nonce check (replay protection)
        expected_nonce = self._nonces.get(tx.sender, 0)
        if tx.nonce != expected_nonce:
            return ExecResult(
                success=False,
                error=f"Invalid nonce: expected {expected_nonce}, got {tx.nonce}",
                error_type="InvalidNonce",
            )

        # 3. Execute under engine and vault checkpoints; writes made after
        # the engine returns (pool registration, response checks) roll back too
        engine_checkpoint = engine.checkpoint()
        vault_mark = self.vault.checkpoint()
        pool_count = len(self._pools)
        mark = len(engine.events)
        try:
            data = self._execute_op(engine, tx)
        except DarkpoolException as e:
            self._rollback(engine, engine_checkpoint, vault_mark, pool_count)
            logger.info("Engine op %s rejected: %s: %s", tx.op_type.name, type(e).__name__, e)
            return self._failed(tx, e)
        except Exception as e:
            self._rollback(engine, engine_checkpoint, vault_mark, pool_count)
            logger.error("Engine op %s failed: %s", tx.op_type.name, e)
            return self._failed(tx, e)

        # 4. Commit
        engine.commit(engine_checkpoint)
        self.vault.commit(vault_mark)
        self._nonces[tx.sender] = tx.nonce + 1
        emitted = engine.events.since(mark)
        tx.success = True
        tx.result = data
        return ExecResult(
            success=True,
            data=data,
            logs=[e.to_dict() for e in emitted if not e.private],
            private_logs=[e.to_dict() for e in emitted if e.private],
        )

    def _rollback(self, engine, engine_checkpoint, vault_mark, pool_count: int) -> None:
        engine.rollback(engine_checkpoint)
        self.vault.rollback(vault_mark)
        # Pools are only ever appended
        while len(self._pools) > pool_count:
            self._pools.popitem()

    @staticmethod
    def _failed(tx: EngineTransaction, error: Exception) -> ExecResult:
        tx.success = False
        tx.error = str(error)
        return ExecResult(success=False, error=str(error), error_type=type(error).__name__)

    def _execute_op(self, engine: ConfidentialPoolEngine, tx: EngineTransaction) -> Dict[str, Any]:
        handlers: Dict[EngineOpType, Callable[[ConfidentialPoolEngine, EngineTransaction], Dict[str, Any]]] = {
            EngineOpType.INITIALIZE_POOL: self._op_initialize_pool,
            EngineOpType.ADD_LIQUIDITY: self._op_add_liquidity,
            EngineOpType.REMOVE_LIQUIDITY: self._op_remove_liquidity,
            EngineOpType.MODIFY_LIQUIDITY: self._op_modify_liquidity,
            EngineOpType.SWAP: self._op_swap,
            EngineOpType.REBALANCE: self._op_rebalance,
            EngineOpType.WITHDRAW_PROTOCOL_FEES: self._op_withdraw_protocol_fees,
            EngineOpType.SET_KEEPER: self._op_set_keeper,
            EngineOpType.TRANSFER_OWNERSHIP: self._op_transfer_ownership,
            EngineOpType.SET_CIRCUIT_BREAKER: self._op_set_circuit_breaker,
            EngineOpType.SET_PROTOCOL_FEE_SHARE: self._op_set_protocol_fee_share,
        }
        return handlers[tx.op_type](engine, tx)

    # =====================================================================
    #  Operation handlers
    # =====================================================================

    def _op_initialize_pool(self, engine: ConfidentialPoolEngine, tx: EngineTransaction) -> Dict[str, Any]:
        key = tx.pool_key()
        self.initialize(key)
        return {"pool_id": key.pool_id}

    def _op_add_liquidity(self, engine: ConfidentialPoolEngine, tx: EngineTransaction) -> Dict[str, Any]:
        key = tx.pool_key()
        engine.add_liquidity(tx.sender, key, tx.int_param("amount_each"))
        return {"pool_id": key.pool_id}

    def _op_remove_liquidity(self, engine: ConfidentialPoolEngine, tx: EngineTransaction) -> Dict[str, Any]:
        key = tx.pool_key()
        engine.remove_liquidity(tx.sender, key, tx.int_param("amount_each"))
        return {"pool_id": key.pool_id}

    def _op_modify_liquidity(self, engine: ConfidentialPoolEngine, tx: EngineTransaction) -> Dict[str, Any]:
        delta = LiquidityDelta(
            tick_lower=tx.int_param("tick_lower"),
            tick_upper=tx.int_param("tick_upper"),
            liquidity_delta=tx.int_param("liquidity_delta"),
        )
        self.modify_liquidity(tx.sender, tx.pool_key(), delta)
        return {}

    def _op_swap(self, engine: ConfidentialPoolEngine, tx: EngineTransaction) -> Dict[str, Any]:
        key = tx.pool_key()
        delta = self.swap(tx.sender, key, tx.swap_params())
        return {"pool_id": key.pool_id, "delta0": delta.delta0, "delta1": delta.delta1}

    def _op_rebalance(self, engine: ConfidentialPoolEngine, tx: EngineTransaction) -> Dict[str, Any]:
        key = tx.pool_key()
        engine.rebalance(tx.sender, key, tx.int_param("amount_in"), tx.side())
        return {"pool_id": key.pool_id}

    def _op_withdraw_protocol_fees(self, engine: ConfidentialPoolEngine, tx: EngineTransaction) -> Dict[str, Any]:
        key = tx.pool_key()
        amount_a, amount_b = engine.withdraw_protocol_fees(tx.sender, key)
        return {"pool_id": key.pool_id, "amount_a": str(amount_a), "amount_b": str(amount_b)}

    def _op_set_keeper(self, engine: ConfidentialPoolEngine, tx: EngineTransaction) -> Dict[str, Any]:
        engine.set_keeper(tx.sender, tx.params["keeper"])
        return {"keeper": engine.keeper}

    def _op_transfer_ownership(self, engine: ConfidentialPoolEngine, tx: EngineTransaction) -> Dict[str, Any]:
        engine.transfer_ownership(tx.sender, tx.params["owner"])
        return {"owner": engine.owner}

    def _op_set_circuit_breaker(self, engine: ConfidentialPoolEngine, tx: EngineTransaction) -> Dict[str, Any]:
        engine.set_circuit_breaker_thresholds(
            tx.sender, tx.int_param("max_ratio_bps"), tx.int_param("min_ratio_bps")
        )
        return {"max_ratio_bps": engine.state.breaker.max_ratio_bps, "min_ratio_bps": engine.state.breaker.min_ratio_bps}

    def _op_set_protocol_fee_share(self, engine: ConfidentialPoolEngine, tx: EngineTransaction) -> Dict[str, Any]:
        engine.set_protocol_fee_share(tx.sender, tx.int_param("protocol_share_bps"))
        return {"protocol_share_bps": engine.state.protocol_share_bps}

    # =====================================================================
    #  Query interface
    # =====================================================================

    def get_stats(self) -> Dict[str, Any]:
        return {
            "engines": self.engine_count,
            "pools": len(self._pools),
            "senders": len(self._nonces),
        }
