"""
Tests for EngineTransaction and the reference PoolHost

Covers:
  - Transaction hashing, serialization and structural validation
  - Engine registration and flag-gated dispatch
  - Before-swap response validation
  - Serial transaction processing, nonces and rollback
  - Public vs private log separation in ExecResult
"""

import pytest

from darkpool.constants import DUMMY_DELTA, MAX_HOST_FEE, MAX_INT128, UNIT
from darkpool.exceptions import HostDispatchError, InvalidParameters, PoolAlreadyInitialized
from darkpool.engine import (
    BeforeSwapDelta,
    ConfidentialPoolEngine,
    EngineOpType,
    EngineTransaction,
    EventLog,
    HookFlags,
    InMemoryVault,
    PoolHost,
    PoolKey,
    Side,
    SwapMode,
    SwapParams,
    validate_before_swap_response,
)

HOST = "0xhost"
ENGINE = "0xdarkpool"
OWNER = "0x" + "0" * 39 + "1"
KEEPER = "0x" + "0" * 39 + "2"
LP = "0x" + "1" * 40
TRADER = "0x" + "2" * 40
TOKEN_A = "0xTokenA"
TOKEN_B = "0xTokenB"
KEY = PoolKey(TOKEN_A, TOKEN_B, fee=3000, tick_spacing=1, hooks=ENGINE)


def make_tx(op_type, sender, nonce, **params):
    return EngineTransaction(op_type=op_type, sender=sender, nonce=nonce, params=params)


def swap_tx(nonce, amount, zero_for_one=True, mode="exact_input", sender=TRADER):
    return make_tx(
        EngineOpType.SWAP, sender, nonce,
        pool_key=KEY.to_dict(), zero_for_one=zero_for_one, mode=mode, amount=str(amount),
    )


@pytest.fixture
def vault():
    v = InMemoryVault()
    for holder in (LP, TRADER, KEEPER):
        v.mint(TOKEN_A, holder, 10_000 * UNIT)
        v.mint(TOKEN_B, holder, 10_000 * UNIT)
    return v


@pytest.fixture
def engine(vault):
    return ConfidentialPoolEngine(vault, HOST, OWNER, KEEPER, address=ENGINE)


@pytest.fixture
def host(vault, engine):
    h = PoolHost(vault, address=HOST)
    h.register_engine(engine)
    return h


@pytest.fixture
def seeded(host):
    assert host.process_transaction(make_tx(EngineOpType.INITIALIZE_POOL, LP, 0, pool_key=KEY.to_dict())).success
    assert host.process_transaction(make_tx(
        EngineOpType.ADD_LIQUIDITY, LP, 1, pool_key=KEY.to_dict(), amount_each=str(1000 * UNIT),
    )).success
    return host


# ============================================================================
#  TRANSACTIONS
# ============================================================================

class TestEngineTransaction:

    def test_hash_deterministic(self):
        a = swap_tx(0, UNIT)
        b = swap_tx(0, UNIT)
        b.timestamp = a.timestamp + 100
        assert a.tx_hash() == b.tx_hash()
        assert len(a.tx_hash()) == 64

    def test_hash_covers_nonce_and_params(self):
        base = swap_tx(0, UNIT)
        assert base.tx_hash() != swap_tx(1, UNIT).tx_hash()
        assert base.tx_hash() != swap_tx(0, 2 * UNIT).tx_hash()

    def test_dict_round_trip(self):
        tx = swap_tx(3, UNIT)
        restored = EngineTransaction.from_dict(tx.to_dict())
        assert restored.tx_hash() == tx.tx_hash()
        assert restored.op_type is EngineOpType.SWAP

    def test_from_dict_missing_field(self):
        data = swap_tx(0, UNIT).to_dict()
        del data["sender"]
        with pytest.raises(InvalidParameters, match="sender"):
            EngineTransaction.from_dict(data)

    def test_from_dict_unknown_op(self):
        data = swap_tx(0, UNIT).to_dict()
        data["op_type"] = 99
        with pytest.raises(InvalidParameters, match="Unknown operation"):
            EngineTransaction.from_dict(data)

    def test_validate_basic(self):
        assert swap_tx(0, UNIT).validate_basic()

    def test_validate_missing_param(self):
        tx = make_tx(EngineOpType.REBALANCE, KEEPER, 0, pool_key=KEY.to_dict(), amount_in="1")
        with pytest.raises(InvalidParameters, match="side"):
            tx.validate_basic()

    def test_validate_sender_and_nonce(self):
        with pytest.raises(InvalidParameters, match="sender"):
            swap_tx(0, UNIT, sender="").validate_basic()
        with pytest.raises(InvalidParameters, match="Nonce"):
            swap_tx(-1, UNIT).validate_basic()

    def test_swap_params_from_strings(self):
        params = swap_tx(0, 5 * UNIT, zero_for_one=False, mode="exact_output").swap_params()
        assert params == SwapParams(zero_for_one=False, mode=SwapMode.EXACT_OUTPUT, amount=5 * UNIT)

    def test_bad_mode(self):
        with pytest.raises(InvalidParameters, match="swap mode"):
            swap_tx(0, UNIT, mode="market").swap_params()

    def test_bad_amount(self):
        tx = swap_tx(0, UNIT)
        tx.params["amount"] = "1.5"
        with pytest.raises(InvalidParameters, match="amount"):
            tx.swap_params()

    def test_side(self):
        tx = make_tx(EngineOpType.REBALANCE, KEEPER, 0, pool_key=KEY.to_dict(), amount_in="1", side=1)
        assert tx.side() is Side.B
        tx.params["side"] = 7
        with pytest.raises(InvalidParameters, match="side"):
            tx.side()

    def test_target_engine(self):
        assert swap_tx(0, UNIT).target_engine() == ENGINE
        tx = make_tx(EngineOpType.SET_KEEPER, OWNER, 0, engine="0xabc", keeper=KEEPER)
        assert tx.target_engine() == "0xabc"


# ============================================================================
#  RESPONSE VALIDATION / DISPATCH
# ============================================================================

class FakeEngine:
    """Engine stand-in returning a canned before-swap response."""

    def __init__(self, response, flags=HookFlags.ALL, address="0xfake"):
        self.address = address
        self.host_address = HOST
        self.hook_flags = flags
        self.response = response
        self.events = EventLog()

    def on_pool_init(self, caller, key):
        pass

    def on_before_swap(self, caller, sender, key, params):
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def checkpoint(self):
        return None

    def commit(self, checkpoint):
        pass

    def rollback(self, checkpoint):
        pass


FAKE_KEY = PoolKey(TOKEN_A, TOKEN_B, fee=3000, tick_spacing=1, hooks="0xfake")
PARAMS = SwapParams(zero_for_one=True, mode=SwapMode.EXACT_INPUT, amount=UNIT)


class TestResponseValidation:

    def test_valid_response(self):
        delta = BeforeSwapDelta(DUMMY_DELTA, -DUMMY_DELTA)
        assert validate_before_swap_response((delta, 0)) == (delta, 0)

    @pytest.mark.parametrize("response", [
        [BeforeSwapDelta(1, -1), 0],
        (BeforeSwapDelta(1, -1),),
        ((1, -1), 0),
        (BeforeSwapDelta(MAX_INT128 + 1, 0), 0),
        (BeforeSwapDelta(1, -1), True),
        (BeforeSwapDelta(1, -1), -1),
        (BeforeSwapDelta(1, -1), MAX_HOST_FEE + 1),
        None,
    ])
    def test_malformed_response(self, response):
        with pytest.raises(HostDispatchError):
            validate_before_swap_response(response)

    def test_host_rejects_malformed_engine_response(self, vault):
        host = PoolHost(vault, address=HOST)
        host.register_engine(FakeEngine(response=[BeforeSwapDelta(1, -1), 0]))
        with pytest.raises(HostDispatchError, match="Malformed"):
            host.swap(TRADER, FAKE_KEY, PARAMS)

    def test_host_requires_swap_flag(self, vault):
        host = PoolHost(vault, address=HOST)
        host.register_engine(FakeEngine(response=None, flags=HookFlags.BEFORE_INITIALIZE))
        with pytest.raises(HostDispatchError, match="does not handle swaps"):
            host.swap(TRADER, FAKE_KEY, PARAMS)

    def test_undeclared_delta_rejected(self, vault):
        host = PoolHost(vault, address=HOST)
        host.register_engine(FakeEngine(
            response=(BeforeSwapDelta(1, -1), 0),
            flags=HookFlags.BEFORE_INITIALIZE | HookFlags.BEFORE_SWAP,
        ))
        with pytest.raises(HostDispatchError, match="did not declare"):
            host.swap(TRADER, FAKE_KEY, PARAMS)

    def test_engine_exposes_all_flags(self, engine):
        assert engine.hook_flags == HookFlags.ALL


class TestRegistration:

    def test_register(self, host, engine):
        assert host.engine_count == 1
        assert host.get_engine(ENGINE) is engine

    def test_duplicate_rejected(self, host, engine):
        with pytest.raises(HostDispatchError, match="already registered"):
            host.register_engine(engine)

    def test_wrong_host_rejected(self, vault, engine):
        other = PoolHost(vault, address="0xotherhost")
        with pytest.raises(HostDispatchError, match="bound to host"):
            other.register_engine(engine)

    def test_unknown_engine(self, host):
        with pytest.raises(HostDispatchError, match="No engine"):
            host.get_engine("0xnobody")

    def test_double_initialize(self, host):
        host.initialize(KEY)
        with pytest.raises(PoolAlreadyInitialized):
            host.initialize(KEY)


# ============================================================================
#  TRANSACTION PROCESSING
# ============================================================================

class TestProcessTransaction:

    def test_seeded_pool(self, seeded, engine):
        assert engine.get_real_reserves(OWNER, KEY) == (1000 * UNIT, 1000 * UNIT)
        assert seeded.get_nonce(LP) == 2

    def test_swap_logs(self, seeded):
        result = seeded.process_transaction(swap_tx(0, 100 * UNIT))

        assert result.success, result.error
        assert (result.data["delta0"], result.data["delta1"]) == (DUMMY_DELTA, -DUMMY_DELTA)
        assert [log["event"] for log in result.logs] == ["PublicSwap"]
        assert [log["event"] for log in result.private_logs] == ["RealSwap"]
        assert result.private_logs[0]["realInput"] == str(100 * UNIT)
        assert str(100 * UNIT) not in repr(result.logs)
        assert seeded.get_nonce(TRADER) == 1

    def test_replayed_nonce_rejected(self, seeded):
        assert seeded.process_transaction(swap_tx(0, UNIT)).success
        result = seeded.process_transaction(swap_tx(0, UNIT))
        assert not result.success
        assert result.error_type == "InvalidNonce"
        assert seeded.get_nonce(TRADER) == 1

    def test_failed_tx_rolls_back(self, seeded, engine, vault):
        root = engine.state_root()
        events = len(engine.events)
        balances = vault.books()

        result = seeded.process_transaction(swap_tx(0, 600 * UNIT))

        assert not result.success
        assert result.error_type == "ExcessiveImbalance"
        assert engine.state_root() == root
        assert len(engine.events) == events
        assert vault.books() == balances
        assert seeded.get_nonce(TRADER) == 0
        assert seeded.process_transaction(swap_tx(0, UNIT)).success

    def test_modify_liquidity_rejected(self, seeded):
        tx = make_tx(
            EngineOpType.MODIFY_LIQUIDITY, LP, 2,
            pool_key=KEY.to_dict(), tick_lower=-60, tick_upper=60, liquidity_delta=10,
        )
        result = seeded.process_transaction(tx)
        assert result.error_type == "AddLiquidityThroughHook"

    def test_initialize_twice(self, seeded):
        tx = make_tx(EngineOpType.INITIALIZE_POOL, LP, 2, pool_key=KEY.to_dict())
        assert seeded.process_transaction(tx).error_type == "PoolAlreadyInitialized"

    def test_unknown_engine(self, host):
        key = PoolKey(TOKEN_A, TOKEN_B, fee=3000, tick_spacing=1, hooks="0xnobody")
        tx = make_tx(EngineOpType.INITIALIZE_POOL, LP, 0, pool_key=key.to_dict())
        assert host.process_transaction(tx).error_type == "HostDispatchError"

    def test_malformed_pool_key(self, host):
        tx = make_tx(EngineOpType.INITIALIZE_POOL, LP, 0, pool_key={"currency0": TOKEN_A})
        result = host.process_transaction(tx)
        assert result.error_type == "InvalidParameters"
        assert host.get_nonce(LP) == 0

    def test_rebalance(self, seeded, engine):
        tx = make_tx(
            EngineOpType.REBALANCE, KEEPER, 0,
            pool_key=KEY.to_dict(), amount_in=str(50 * UNIT), side=int(Side.A),
        )
        result = seeded.process_transaction(tx)
        assert result.success, result.error
        assert [log["event"] for log in result.logs] == ["PublicSwap"]
        assert [log["event"] for log in result.private_logs] == ["RealRebalance"]
        assert engine.get_real_reserves(KEEPER, KEY) == (1050 * UNIT, 1000 * UNIT)

    def test_admin_flow(self, seeded, engine):
        share = make_tx(EngineOpType.SET_PROTOCOL_FEE_SHARE, OWNER, 0, engine=ENGINE, protocol_share_bps=10_000)
        assert seeded.process_transaction(share).success
        assert seeded.process_transaction(swap_tx(0, 100 * UNIT)).success

        withdraw = make_tx(EngineOpType.WITHDRAW_PROTOCOL_FEES, OWNER, 1, pool_key=KEY.to_dict())
        result = seeded.process_transaction(withdraw)
        assert result.success, result.error
        assert result.data["amount_a"] == str(UNIT // 10)
        assert result.data["amount_b"] == "0"
        assert seeded.vault.token_balance_of(OWNER, TOKEN_A) == UNIT // 10

    def test_admin_unauthorized(self, seeded):
        tx = make_tx(EngineOpType.SET_CIRCUIT_BREAKER, TRADER, 0, engine=ENGINE, max_ratio_bps=9000, min_ratio_bps=1000)
        result = seeded.process_transaction(tx)
        assert result.error_type == "Unauthorized"

    def test_set_circuit_breaker(self, seeded):
        tx = make_tx(EngineOpType.SET_CIRCUIT_BREAKER, OWNER, 0, engine=ENGINE, max_ratio_bps=9000, min_ratio_bps=1000)
        result = seeded.process_transaction(tx)
        assert result.data == {"max_ratio_bps": 9000, "min_ratio_bps": 1000}
        assert result.logs[0]["event"] == "CircuitBreakerUpdated"

    def test_unexpected_error_rolls_back_vault(self, vault):
        class Thief(FakeEngine):
            def on_before_swap(self, caller, sender, key, params):
                vault.mint(TOKEN_A, "0xthief", UNIT)
                raise RuntimeError("boom")

        host = PoolHost(vault, address=HOST)
        host.register_engine(Thief(response=None))
        tx = make_tx(
            EngineOpType.SWAP, TRADER, 0,
            pool_key=FAKE_KEY.to_dict(), zero_for_one=True, mode="exact_input", amount="1",
        )
        result = host.process_transaction(tx)
        assert result.error_type == "RuntimeError"
        assert vault.token_balance_of("0xthief", TOKEN_A) == 0
        assert tx.error == "boom"

    def test_stats(self, seeded):
        seeded.process_transaction(swap_tx(0, UNIT))
        assert seeded.get_stats() == {"engines": 1, "pools": 1, "senders": 2}
