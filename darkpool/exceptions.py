"""
Darkpool Exceptions

Error taxonomy of the confidential pool engine. Every error is a full
abort: the operation that raised it leaves no state behind.
"""


class DarkpoolException(Exception):
    """Base exception for the engine and its reference host."""
    pass


class InsufficientLiquidity(DarkpoolException):
    """Requested output or withdrawal exceeds the privately held reserve or claim."""
    pass


class ExcessiveImbalance(DarkpoolException):
    """Post-trade reserve ratio breaches the configured circuit-breaker bounds."""

    def __init__(self, message: str, current_ratio_bps: int = 0, proposed_ratio_bps: int = 0):
        super().__init__(message)
        self.current_ratio_bps = current_ratio_bps
        self.proposed_ratio_bps = proposed_ratio_bps


class Unauthorized(DarkpoolException):
    """Caller does not hold the role required by the operation."""
    pass


class InvalidParameters(DarkpoolException):
    """Malformed operation or administrative parameters."""
    pass


class PoolNotInitialized(InvalidParameters):
    """Pool-scoped operation on a pool that was never initialized."""
    pass


class PoolAlreadyInitialized(InvalidParameters):
    """Second initialization of the same pool key."""
    pass


class AddLiquidityThroughHook(DarkpoolException):
    """Generic host liquidity path used instead of the engine's symmetric path."""
    pass


class ArithmeticOverflow(DarkpoolException):
    """Amount left the unsigned 256-bit range."""
    pass


class ReentrancyError(DarkpoolException):
    """Engine entered while another operation holds its critical section."""
    pass


class SettlementError(DarkpoolException):
    """Vault-side settlement failure."""
    pass


class CurrencyNotSettled(SettlementError):
    """Unlock window closed with outstanding per-asset deltas."""
    pass


class InsufficientFunds(SettlementError):
    """Payer does not hold enough tokens or claims to settle a debit."""
    pass


class HostDispatchError(DarkpoolException):
    """Host could not dispatch to the engine or got a malformed response."""
    pass


class ConfigurationError(DarkpoolException):
    """Configuration error."""
    pass
