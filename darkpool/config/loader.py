"""
Darkpool TOML Configuration Loader

Loads every section of darkpool.toml with environment variable overrides
(dataclass + from_dict + from_file per section).

Environment variable mapping:
    [engine] fee_bps                 → DARKPOOL_FEE_BPS
    [engine] protocol_share_bps      → DARKPOOL_PROTOCOL_SHARE_BPS
    [engine] address                 → DARKPOOL_ENGINE_ADDRESS
    [engine] host_address            → DARKPOOL_HOST_ADDRESS
    [circuit_breaker] max_ratio_bps  → DARKPOOL_MAX_RATIO_BPS
    [circuit_breaker] min_ratio_bps  → DARKPOOL_MIN_RATIO_BPS
    [roles] owner / keeper           → DARKPOOL_OWNER / DARKPOOL_KEEPER
    [logging] level                  → DARKPOOL_LOG_LEVEL
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    BPS_DENOMINATOR,
    DEFAULT_FEE_BPS,
    DEFAULT_MAX_RATIO_BPS,
    DEFAULT_MIN_RATIO_BPS,
    DEFAULT_PROTOCOL_SHARE_BPS,
)
from ..exceptions import ConfigurationError, InvalidParameters
from ..logger import get_logger

logger = get_logger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _require_int(value: Any, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _env_bool(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if not value:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class EngineSectionConfig:
    """[engine] section."""
    address: str = "0xdarkpool"
    host_address: str = "0xhost"
    fee_bps: int = DEFAULT_FEE_BPS
    protocol_share_bps: int = DEFAULT_PROTOCOL_SHARE_BPS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineSectionConfig":
        return cls(
            address=data.get("address", "0xdarkpool"),
            host_address=data.get("host_address", "0xhost"),
            fee_bps=data.get("fee_bps", DEFAULT_FEE_BPS),
            protocol_share_bps=data.get("protocol_share_bps", DEFAULT_PROTOCOL_SHARE_BPS),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("DARKPOOL_ENGINE_ADDRESS"):
            self.address = v
        if v := os.environ.get("DARKPOOL_HOST_ADDRESS"):
            self.host_address = v
        if (v := _env_int("DARKPOOL_FEE_BPS")) is not None:
            self.fee_bps = v
        if (v := _env_int("DARKPOOL_PROTOCOL_SHARE_BPS")) is not None:
            self.protocol_share_bps = v

    def validate(self) -> None:
        if not self.address or not self.host_address:
            raise ConfigurationError("engine.address and engine.host_address are required")
        _require_int(self.fee_bps, "engine.fee_bps")
        _require_int(self.protocol_share_bps, "engine.protocol_share_bps")
        if not 0 <= self.fee_bps < BPS_DENOMINATOR:
            raise ConfigurationError(f"engine.fee_bps {self.fee_bps} outside [0, {BPS_DENOMINATOR})")
        if not 0 <= self.protocol_share_bps <= BPS_DENOMINATOR:
            raise ConfigurationError(
                f"engine.protocol_share_bps {self.protocol_share_bps} outside [0, {BPS_DENOMINATOR}]"
            )


@dataclass
class CircuitBreakerSectionConfig:
    """[circuit_breaker] section."""
    max_ratio_bps: int = DEFAULT_MAX_RATIO_BPS
    min_ratio_bps: int = DEFAULT_MIN_RATIO_BPS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CircuitBreakerSectionConfig":
        return cls(
            max_ratio_bps=data.get("max_ratio_bps", DEFAULT_MAX_RATIO_BPS),
            min_ratio_bps=data.get("min_ratio_bps", DEFAULT_MIN_RATIO_BPS),
        )

    def apply_env(self) -> None:
        if (v := _env_int("DARKPOOL_MAX_RATIO_BPS")) is not None:
            self.max_ratio_bps = v
        if (v := _env_int("DARKPOOL_MIN_RATIO_BPS")) is not None:
            self.min_ratio_bps = v

    def validate(self) -> None:
        from ..engine.circuit_breaker import CircuitBreakerConfig

        try:
            CircuitBreakerConfig.validate(self.max_ratio_bps, self.min_ratio_bps)
        except InvalidParameters as e:
            raise ConfigurationError(f"circuit_breaker: {e}") from e


@dataclass
class RolesConfig:
    """[roles] section."""
    owner: str = ""
    keeper: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RolesConfig":
        return cls(
            owner=data.get("owner", ""),
            keeper=data.get("keeper", ""),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("DARKPOOL_OWNER"):
            self.owner = v
        if v := os.environ.get("DARKPOOL_KEEPER"):
            self.keeper = v

    def validate(self) -> None:
        if not self.owner:
            raise ConfigurationError("roles.owner is required")
        if not self.keeper:
            raise ConfigurationError("roles.keeper is required")


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = "INFO"
    console_output: bool = True
    file_output: bool = False
    file: str = "logs/darkpool.log"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            console_output=data.get("console_output", True),
            file_output=data.get("file_output", False),
            file=data.get("file", "logs/darkpool.log"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("DARKPOOL_LOG_LEVEL"):
            self.level = v.upper()
        if (v := _env_bool("DARKPOOL_LOG_FILE_OUTPUT")) is not None:
            self.file_output = v

    def validate(self) -> None:
        if self.level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid logging.level: {self.level}")

    def apply(self) -> None:
        """Reconfigure the process-wide log manager from this section."""
        from ..logger import LogManager

        manager = LogManager()
        manager.reset()
        manager.configure(
            log_level=self.level,
            log_file=Path(self.file),
            console_output=self.console_output,
            file_output=self.file_output,
        )


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class DarkpoolConfig:
    """Complete engine configuration."""
    engine: EngineSectionConfig = field(default_factory=EngineSectionConfig)
    circuit_breaker: CircuitBreakerSectionConfig = field(default_factory=CircuitBreakerSectionConfig)
    roles: RolesConfig = field(default_factory=RolesConfig)
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DarkpoolConfig":
        """Create DarkpoolConfig from a parsed TOML dict."""
        return cls(
            engine=EngineSectionConfig.from_dict(data.get("engine", {})),
            circuit_breaker=CircuitBreakerSectionConfig.from_dict(data.get("circuit_breaker", {})),
            roles=RolesConfig.from_dict(data.get("roles", {})),
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "DarkpoolConfig":
        """
        Load configuration from a TOML file. A missing file yields the
        defaults (with environment overrides applied).
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Malformed config file {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.engine.apply_env()
        self.circuit_breaker.apply_env()
        self.roles.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        self.engine.validate()
        self.circuit_breaker.validate()
        self.roles.validate()
        self.logging.validate()
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "engine": {
                "address": self.engine.address,
                "host_address": self.engine.host_address,
                "fee_bps": self.engine.fee_bps,
                "protocol_share_bps": self.engine.protocol_share_bps,
            },
            "circuit_breaker": {
                "max_ratio_bps": self.circuit_breaker.max_ratio_bps,
                "min_ratio_bps": self.circuit_breaker.min_ratio_bps,
            },
            "roles": {
                "owner": self.roles.owner,
                "keeper": self.roles.keeper,
            },
            "logging": {
                "level": self.logging.level,
                "console_output": self.logging.console_output,
                "file_output": self.logging.file_output,
                "file": self.logging.file,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> DarkpoolConfig:
    """
    Load engine configuration.

    Resolution order:
        1. Explicit *path* argument
        2. DARKPOOL_CONFIG env var
        3. ./darkpool.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("DARKPOOL_CONFIG", "darkpool.toml")

    return DarkpoolConfig.from_file(path)
