"""
Delta Masking Layer: swap orchestration.

Computes and settles the *real* trade, then hands the host and the public
event stream a fixed dummy delta whose magnitude never depends on the
trade size. The real amounts only reach the private ``RealSwap`` event.

Order of operations (every check precedes every mutation):
  1. quote (constant-sum, fee in the input asset)
  2. read reserves, derive the proposed post-trade pair
  3. solvency: output side must cover the output
  4. circuit breaker on the proposed pair
  5. split fee into protocol / LP shares
  6. settle through the vault
  7. mutate the ledger and the treasury
  8. emit PublicSwap (dummy) + RealSwap (real)
"""

from __future__ import annotations

from ..constants import DUMMY_DELTA, DUMMY_FEE_TAG
from ..logger import get_logger
from .circuit_breaker import check_imbalance
from .events import EventLog, PublicSwap, RealSwap
from .ledger import ReserveLedger
from .pricing import SwapQuote, quote_swap, split_fee
from .state import EngineState
from .treasury import FeeTreasury
from .types import BeforeSwapDelta, PoolKey, Side, SwapParams
from .units import checked_add
from .vault import SettlementVault, settle, take

logger = get_logger(__name__)


def dummy_delta(zero_for_one: bool) -> BeforeSwapDelta:
    """Pool-side public delta: the input side gains, the output side pays."""
    if zero_for_one:
        return BeforeSwapDelta(DUMMY_DELTA, -DUMMY_DELTA)
    return BeforeSwapDelta(-DUMMY_DELTA, DUMMY_DELTA)


def public_swap_event(key: PoolKey, sender: str, delta: BeforeSwapDelta) -> PublicSwap:
    return PublicSwap(
        pool_id=key.pool_id,
        sender=sender,
        dummy_delta_a=delta.delta0,
        dummy_delta_b=delta.delta1,
        fee_tag0=DUMMY_FEE_TAG,
        fee_tag1=DUMMY_FEE_TAG,
    )


class DeltaMaskingLayer:
    def __init__(
        self,
        engine_address: str,
        state: EngineState,
        ledger: ReserveLedger,
        treasury: FeeTreasury,
        vault: SettlementVault,
        events: EventLog,
    ):
        self._engine_address = engine_address
        self._state = state
        self._ledger = ledger
        self._treasury = treasury
        self._vault = vault
        self._events = events

    def execute(self, sender: str, key: PoolKey, params: SwapParams) -> BeforeSwapDelta:
        """
        Run a swap for ``sender``. Must be called inside the vault's
        settlement window.

        Returns:
            The dummy delta for the host.

        Raises:
            InvalidParameters: non-positive amount
            InsufficientLiquidity: output side cannot cover the output
            ExcessiveImbalance: proposed reserves breach the bounds
        """
        quote = quote_swap(params.mode, params.amount, self._state.fee_bps)
        protocol_fee, _lp_fee = split_fee(quote.fee, self._state.protocol_share_bps)

        in_side, out_side = params.input_side, params.output_side
        current = self._ledger.get(key)
        self._ledger.require_available(key, out_side, quote.amount_out)

        # The LP share stays in the reserve; the protocol share is held aside
        retained_in = quote.amount_in - protocol_fee
        proposed = list(current)
        proposed[in_side] = checked_add(current[in_side], retained_in)
        proposed[out_side] = current[out_side] - quote.amount_out
        check_imbalance(current, (proposed[Side.A], proposed[Side.B]), self._state.breaker)

        self._settle(sender, key, in_side, out_side, quote)

        self._ledger.credit(key, in_side, retained_in)
        self._ledger.debit(key, out_side, quote.amount_out)
        self._treasury.accrue(key, in_side, protocol_fee)

        delta = dummy_delta(params.zero_for_one)
        self._events.emit(public_swap_event(key, sender, delta))
        self._events.emit(RealSwap(
            pool_id=key.pool_id,
            sender=sender,
            real_input=quote.amount_in,
            real_output=quote.amount_out,
            zero_for_one=params.zero_for_one,
        ))
        logger.debug(
            "Swap pool=%s in=%d out=%d fee=%d protocol=%d",
            key.pool_id[:16], quote.amount_in, quote.amount_out, quote.fee, protocol_fee,
        )
        return delta

    def _settle(self, sender: str, key: PoolKey, in_side: Side, out_side: Side, quote: SwapQuote) -> None:
        in_asset = key.currency(in_side)
        out_asset = key.currency(out_side)
        # Input: trader pays tokens, engine receives claims
        settle(self._vault, in_asset, sender, quote.amount_in)
        take(self._vault, in_asset, self._engine_address, quote.amount_in, claims=True)
        # Output: engine burns claims, trader receives tokens
        settle(self._vault, out_asset, self._engine_address, quote.amount_out, burn=True)
        take(self._vault, out_asset, sender, quote.amount_out)
