"""
Darkpool Configuration

Loads all sections of darkpool.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    DarkpoolConfig,
    EngineSectionConfig,
    CircuitBreakerSectionConfig,
    RolesConfig,
    LoggingSectionConfig,
    load_config,
)

__all__ = [
    "DarkpoolConfig",
    "EngineSectionConfig",
    "CircuitBreakerSectionConfig",
    "RolesConfig",
    "LoggingSectionConfig",
    "load_config",
]
