"""
Deferred Settlement Vault.

The vault moves assets on the engine's behalf and keeps claim-balance
bookkeeping. Settlement is two-phase:

  1. ``unlock(locker, data)`` opens a settlement window and calls back
     ``locker.unlock_callback(vault, data)``;
  2. inside the callback the locker issues ``sync`` / ``debit`` / ``credit``
     intents, each moving the locker's per-asset delta;
  3. when the callback returns, every delta must net to zero or the whole
     window is rolled back with ``CurrencyNotSettled``.

``InMemoryVault`` is the reference implementation used by the host
runtime and the tests. The engine never reads reserves from it.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..exceptions import CurrencyNotSettled, InsufficientFunds, SettlementError
from ..logger import get_logger
from .units import checked_add, require_uint

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Interfaces (structural typing)
# ---------------------------------------------------------------------------

class UnlockCallback(Protocol):
    """Anything that can hold the vault's settlement window."""

    @property
    def address(self) -> str: ...

    def unlock_callback(self, vault: "SettlementVault", data: Any) -> Any: ...


class SettlementVault(Protocol):
    """Interface the engine consumes."""

    @property
    def is_unlocked(self) -> bool: ...

    def unlock(self, locker: UnlockCallback, data: Any) -> Any: ...
    def sync(self, asset: str) -> None: ...
    def debit(self, asset: str, payer: str, amount: int, from_claim_burn: bool = False) -> None: ...
    def credit(self, asset: str, recipient: str, amount: int, as_claim_mint: bool = False) -> None: ...
    def balance_of(self, holder: str, asset: str) -> int: ...


# ---------------------------------------------------------------------------
# In-memory reference vault
# ---------------------------------------------------------------------------

class InMemoryVault:
    """
    Token and claim bookkeeping held in dictionaries.

    Token balances model the holders' wallets (the vault's own holdings are
    the balance of ``self.address``); claim balances are receipts the vault
    owes back to a holder, minted by ``credit(..., as_claim_mint=True)``.
    """

    def __init__(self, address: str = "0xvault"):
        self.address = address
        self._tokens: Dict[str, Dict[str, int]] = {}   # asset -> holder -> balance
        self._claims: Dict[str, Dict[str, int]] = {}   # asset -> holder -> claims
        self._deltas: Dict[str, int] = {}              # asset -> locker net delta
        self._locker: Optional[str] = None
        self._synced: Optional[Tuple[str, int]] = None
        self._journal: List[Tuple[Dict[str, int], str, Optional[int]]] = []
        self._open = 0

    # -- Read-only views ----------------------------------------------------

    @property
    def is_unlocked(self) -> bool:
        return self._locker is not None

    def token_balance_of(self, holder: str, asset: str) -> int:
        return self._tokens.get(asset, {}).get(holder, 0)

    def balance_of(self, holder: str, asset: str) -> int:
        """Claim balance of ``holder`` in ``asset``."""
        return self._claims.get(asset, {}).get(holder, 0)

    def held(self, asset: str) -> int:
        """Tokens physically held by the vault."""
        return self.token_balance_of(self.address, asset)

    def outstanding_deltas(self) -> Dict[str, int]:
        return {asset: d for asset, d in self._deltas.items() if d != 0}

    # -- Funding (test / genesis) -------------------------------------------

    def mint(self, asset: str, holder: str, amount: int) -> None:
        """Credit ``holder``'s wallet outside any settlement window."""
        require_uint(amount)
        book = self._tokens.setdefault(asset, {})
        self._write(book, holder, checked_add(book.get(holder, 0), amount))

    # -- Books --------------------------------------------------------------

    def books(self) -> Dict[str, Dict[str, Dict[str, int]]]:
        """Copy of every non-empty token and claim book."""
        return {
            "tokens": {asset: dict(book) for asset, book in self._tokens.items() if book},
            "claims": {asset: dict(book) for asset, book in self._claims.items() if book},
        }

    # -- Checkpoints --------------------------------------------------------
    #
    # While a checkpoint is open every book write journals the entry's
    # prior value (None when the holder had no entry). Checkpoints nest.

    def checkpoint(self) -> int:
        self._open += 1
        return len(self._journal)

    def commit(self, mark: int) -> None:
        self._close()

    def rollback(self, mark: int) -> None:
        while len(self._journal) > mark:
            book, holder, prior = self._journal.pop()
            if prior is None:
                book.pop(holder, None)
            else:
                book[holder] = prior
        self._close()

    def _close(self) -> None:
        if self._open == 0:
            raise RuntimeError("No open checkpoint")
        self._open -= 1
        if self._open == 0:
            self._journal.clear()

    def _write(self, book: Dict[str, int], holder: str, value: int) -> None:
        if self._open:
            self._journal.append((book, holder, book.get(holder)))
        book[holder] = value

    # -- Settlement window --------------------------------------------------

    def unlock(self, locker: UnlockCallback, data: Any) -> Any:
        """
        Open a settlement window for ``locker`` and call it back.

        Raises:
            SettlementError: a window is already open (no nesting)
            CurrencyNotSettled: the locker left a non-zero delta
        """
        if self._locker is not None:
            raise SettlementError(f"Vault already unlocked by {self._locker}")

        mark = self.checkpoint()
        self._locker = locker.address
        self._deltas = {}
        try:
            result = locker.unlock_callback(self, data)
            outstanding = self.outstanding_deltas()
            if outstanding:
                raise CurrencyNotSettled(f"Unsettled deltas at unlock close: {outstanding}")
        except Exception:
            self.rollback(mark)
            raise
        else:
            self.commit(mark)
            return result
        finally:
            self._locker = None
            self._synced = None
            self._deltas = {}

    def _require_unlocked(self) -> None:
        if self._locker is None:
            raise SettlementError("Vault is locked")

    def sync(self, asset: str) -> None:
        """Checkpoint the vault's holdings of ``asset`` before a token payment."""
        self._require_unlocked()
        self._synced = (asset, self.held(asset))

    def debit(self, asset: str, payer: str, amount: int, from_claim_burn: bool = False) -> None:
        """
        Settle ``amount`` of ``asset`` into the vault on the locker's account.

        With ``from_claim_burn`` the payer's claims are burned; otherwise the
        payer's tokens move into the vault, which requires a prior ``sync``.
        """
        self._require_unlocked()
        require_uint(amount)

        if from_claim_burn:
            claims = self._claims.setdefault(asset, {})
            balance = claims.get(payer, 0)
            if balance < amount:
                raise InsufficientFunds(f"{payer} holds {balance} {asset} claims, needs {amount}")
            self._write(claims, payer, balance - amount)
            paid = amount
        else:
            if self._synced is None or self._synced[0] != asset:
                raise SettlementError(f"debit of {asset} without prior sync")
            self._transfer(asset, payer, self.address, amount)
            paid = self.held(asset) - self._synced[1]
            self._synced = None

        self._deltas[asset] = self._deltas.get(asset, 0) + paid

    def credit(self, asset: str, recipient: str, amount: int, as_claim_mint: bool = False) -> None:
        """
        Pay ``amount`` of ``asset`` out of the vault on the locker's account,
        either as tokens or as newly minted claims.
        """
        self._require_unlocked()
        require_uint(amount)

        if as_claim_mint:
            claims = self._claims.setdefault(asset, {})
            self._write(claims, recipient, checked_add(claims.get(recipient, 0), amount))
        else:
            self._transfer(asset, self.address, recipient, amount)

        self._deltas[asset] = self._deltas.get(asset, 0) - amount

    def _transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        book = self._tokens.setdefault(asset, {})
        balance = book.get(sender, 0)
        if balance < amount:
            raise InsufficientFunds(f"{sender} holds {balance} {asset}, needs {amount}")
        self._write(book, sender, balance - amount)
        self._write(book, recipient, checked_add(book.get(recipient, 0), amount))
        logger.debug("Vault transfer: %s -> %s %d %s", sender, recipient, amount, asset)


# ---------------------------------------------------------------------------
# Settlement helpers
# ---------------------------------------------------------------------------

def settle(vault: SettlementVault, asset: str, payer: str, amount: int, burn: bool = False) -> None:
    """Pay ``amount`` into the vault from ``payer`` (tokens, or burned claims)."""
    if amount == 0:
        return
    if burn:
        vault.debit(asset, payer, amount, from_claim_burn=True)
    else:
        vault.sync(asset)
        vault.debit(asset, payer, amount, from_claim_burn=False)


def take(vault: SettlementVault, asset: str, recipient: str, amount: int, claims: bool = False) -> None:
    """Pay ``amount`` out of the vault to ``recipient`` (tokens, or minted claims)."""
    if amount == 0:
        return
    vault.credit(asset, recipient, amount, as_claim_mint=claims)
