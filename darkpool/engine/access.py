"""
Owner / keeper role gating.

Exactly one owner and one keeper at a time. Every check fails closed with
``Unauthorized``; role checks run before any parameter validation.
"""

from __future__ import annotations

from ..exceptions import InvalidParameters, Unauthorized
from ..logger import get_logger
from .state import EngineState

logger = get_logger(__name__)


class AccessControl:
    def __init__(self, state: EngineState):
        self._state = state

    @property
    def owner(self) -> str:
        return self._state.owner

    @property
    def keeper(self) -> str:
        return self._state.keeper

    def require_owner(self, caller: str) -> None:
        if not caller or caller != self._state.owner:
            logger.warning("Unauthorized owner call from %s", caller)
            raise Unauthorized(f"{caller} is not the owner")

    def require_keeper_or_owner(self, caller: str) -> None:
        if not caller or caller not in (self._state.keeper, self._state.owner):
            logger.warning("Unauthorized keeper call from %s", caller)
            raise Unauthorized(f"{caller} is neither keeper nor owner")

    def set_keeper(self, caller: str, new_keeper: str) -> str:
        """Replace the keeper. Returns the previous keeper."""
        self.require_owner(caller)
        if not new_keeper:
            raise InvalidParameters("Keeper address cannot be empty")
        previous = self._state.keeper
        self._state.keeper = new_keeper
        logger.info("Keeper changed: %s -> %s", previous, new_keeper)
        return previous

    def transfer_ownership(self, caller: str, new_owner: str) -> str:
        """Hand ownership to ``new_owner``. Returns the previous owner."""
        self.require_owner(caller)
        if not new_owner:
            raise InvalidParameters("Owner address cannot be empty")
        previous = self._state.owner
        self._state.owner = new_owner
        logger.info("Ownership transferred: %s -> %s", previous, new_owner)
        return previous
