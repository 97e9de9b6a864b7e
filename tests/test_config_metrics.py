"""
Tests for configuration loading, metrics collection and logging helpers
"""

import logging

import pytest

from darkpool.config import DarkpoolConfig, load_config
from darkpool.constants import DEFAULT_FEE_BPS, UNIT
from darkpool.exceptions import ConfigurationError
from darkpool.engine import (
    CircuitBreakerConfig,
    ConfidentialPoolEngine,
    InMemoryVault,
    PoolKey,
    SwapMode,
    SwapParams,
)
from darkpool.logger import LogManager, TerminalSafeFormatter, get_logger
from darkpool.metrics import Counter, EngineMetrics, Gauge, Histogram, MetricsRegistry

OWNER = "0x" + "0" * 39 + "1"
KEEPER = "0x" + "0" * 39 + "2"

ENV_VARS = (
    "DARKPOOL_CONFIG",
    "DARKPOOL_FEE_BPS",
    "DARKPOOL_PROTOCOL_SHARE_BPS",
    "DARKPOOL_ENGINE_ADDRESS",
    "DARKPOOL_HOST_ADDRESS",
    "DARKPOOL_MAX_RATIO_BPS",
    "DARKPOOL_MIN_RATIO_BPS",
    "DARKPOOL_OWNER",
    "DARKPOOL_KEEPER",
    "DARKPOOL_LOG_LEVEL",
    "DARKPOOL_LOG_FILE_OUTPUT",
)

SAMPLE_TOML = f"""
[engine]
address = "0xengine"
host_address = "0xhost"
fee_bps = 30
protocol_share_bps = 2000

[circuit_breaker]
max_ratio_bps = 8000
min_ratio_bps = 2000

[roles]
owner = "{OWNER}"
keeper = "{KEEPER}"

[logging]
level = "debug"
console_output = true
file_output = false
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "darkpool.toml"
    path.write_text(SAMPLE_TOML)
    return path


# ============================================================================
#  CONFIG
# ============================================================================

class TestDarkpoolConfig:

    def test_load_from_file(self, config_file):
        cfg = DarkpoolConfig.from_file(str(config_file))
        assert cfg.engine.address == "0xengine"
        assert cfg.engine.fee_bps == 30
        assert cfg.engine.protocol_share_bps == 2000
        assert cfg.circuit_breaker.max_ratio_bps == 8000
        assert cfg.roles.owner == OWNER
        assert cfg.logging.level == "DEBUG"
        assert cfg.validate()

    def test_env_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("DARKPOOL_FEE_BPS", "25")
        monkeypatch.setenv("DARKPOOL_KEEPER", "0xnewkeeper")
        monkeypatch.setenv("DARKPOOL_LOG_LEVEL", "warning")
        cfg = DarkpoolConfig.from_file(str(config_file))
        assert cfg.engine.fee_bps == 25
        assert cfg.roles.keeper == "0xnewkeeper"
        assert cfg.logging.level == "WARNING"

    def test_bad_env_integer(self, config_file, monkeypatch):
        monkeypatch.setenv("DARKPOOL_MAX_RATIO_BPS", "lots")
        with pytest.raises(ConfigurationError, match="DARKPOOL_MAX_RATIO_BPS"):
            DarkpoolConfig.from_file(str(config_file))

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DARKPOOL_OWNER", OWNER)
        cfg = DarkpoolConfig.from_file(str(tmp_path / "absent.toml"))
        assert cfg.engine.fee_bps == DEFAULT_FEE_BPS
        assert cfg.roles.owner == OWNER
        assert cfg.roles.keeper == ""

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[engine\nfee_bps = ")
        with pytest.raises(ConfigurationError, match="Malformed"):
            DarkpoolConfig.from_file(str(path))

    def test_roles_required(self):
        with pytest.raises(ConfigurationError, match="roles.owner"):
            DarkpoolConfig().validate()

    @pytest.mark.parametrize("section,field,value,match", [
        ("engine", "fee_bps", 10_000, "fee_bps"),
        ("engine", "protocol_share_bps", -1, "protocol_share_bps"),
        ("engine", "fee_bps", "10", "engine.fee_bps must be an integer"),
        ("engine", "protocol_share_bps", 2.5, "engine.protocol_share_bps must be an integer"),
        ("circuit_breaker", "max_ratio_bps", 7000.5, "circuit_breaker"),
        ("circuit_breaker", "min_ratio_bps", "3000", "circuit_breaker"),
        ("engine", "address", "", "engine.address"),
        ("circuit_breaker", "min_ratio_bps", 2500, "circuit_breaker"),
        ("circuit_breaker", "max_ratio_bps", 9900, "circuit_breaker"),
        ("logging", "level", "CHATTY", "logging.level"),
    ])
    def test_invalid_values(self, config_file, section, field, value, match):
        cfg = DarkpoolConfig.from_file(str(config_file))
        setattr(getattr(cfg, section), field, value)
        with pytest.raises(ConfigurationError, match=match):
            cfg.validate()

    def test_load_config_from_env_path(self, config_file, monkeypatch):
        monkeypatch.setenv("DARKPOOL_CONFIG", str(config_file))
        assert load_config().engine.address == "0xengine"

    def test_to_dict(self, config_file):
        data = DarkpoolConfig.from_file(str(config_file)).to_dict()
        assert data["circuit_breaker"] == {"max_ratio_bps": 8000, "min_ratio_bps": 2000}
        assert DarkpoolConfig.from_dict(data).to_dict() == data


class TestEngineFromConfig:

    def test_engine_built_from_config(self, config_file):
        cfg = DarkpoolConfig.from_file(str(config_file))
        vault = InMemoryVault()
        engine = ConfidentialPoolEngine.from_config(cfg, vault)

        assert engine.address == "0xengine"
        assert engine.host_address == "0xhost"
        assert engine.owner == OWNER and engine.keeper == KEEPER
        assert engine.state.fee_bps == 30
        assert engine.state.protocol_share_bps == 2000
        assert engine.state.breaker == CircuitBreakerConfig(8000, 2000)
        assert logging.getLogger().level == logging.DEBUG
        assert LogManager().is_configured

    def test_invalid_config_rejected(self):
        with pytest.raises(ConfigurationError):
            ConfidentialPoolEngine.from_config(DarkpoolConfig(), InMemoryVault())

    def test_configured_fee_applies(self, config_file):
        cfg = DarkpoolConfig.from_file(str(config_file))
        vault = InMemoryVault()
        engine = ConfidentialPoolEngine.from_config(cfg, vault)
        key = PoolKey("0xTokenA", "0xTokenB", fee=3000, tick_spacing=1, hooks="0xengine")
        for token in (key.currency0, key.currency1):
            vault.mint(token, OWNER, 2000 * UNIT)
        engine.on_pool_init("0xhost", key)
        engine.add_liquidity(OWNER, key, 1000 * UNIT)

        engine.on_before_swap("0xhost", OWNER, key, SwapParams(True, SwapMode.EXACT_INPUT, 100 * UNIT))
        # 30 bps fee, 20% of it to the protocol
        assert engine.get_protocol_fees(OWNER, key) == (UNIT * 6 // 100, 0)
        assert engine.get_real_reserves(OWNER, key) == (1100 * UNIT - UNIT * 6 // 100, 900 * UNIT + UNIT * 3 // 10)


# ============================================================================
#  METRICS
# ============================================================================

class TestMetrics:

    def test_counter(self):
        c = Counter("test_total", "help text")
        c.inc()
        c.inc(2)
        assert c.value == 3
        assert "# TYPE test_total counter" in c.expose()
        with pytest.raises(ValueError):
            c.inc(-1)

    def test_gauge(self):
        g = Gauge("test_gauge")
        g.set(5)
        g.inc(-2)
        assert g.value == 3

    def test_histogram_cumulative_buckets(self):
        h = Histogram("test_seconds", buckets=(0.1, 1.0))
        h.observe(0.05)
        h.observe(0.5)
        h.observe(5.0)
        text = h.expose()
        assert 'test_seconds_bucket{le="0.1"} 1' in text
        assert 'test_seconds_bucket{le="1.0"} 2' in text
        assert 'test_seconds_bucket{le="+Inf"} 3' in text
        assert h.count == 3

    def test_histogram_timer(self):
        h = Histogram("timer_seconds")
        with h.time():
            pass
        assert h.count == 1

    def test_registry_rejects_duplicates(self):
        reg = MetricsRegistry()
        reg.register(Counter("dup_total"))
        with pytest.raises(ValueError, match="already registered"):
            reg.register(Counter("dup_total"))
        assert reg.get("dup_total") is not None
        assert reg.get("missing") is None

    def test_engine_metrics_registered(self):
        metrics = EngineMetrics()
        assert metrics.registry.metric_count == 7
        text = metrics.expose()
        assert "darkpool_swaps_total" in text
        assert "darkpool_operation_seconds_count" in text
        assert text.endswith("\n")

    def test_engine_counts_operations(self):
        vault = InMemoryVault()
        metrics = EngineMetrics(prefix="pool")
        engine = ConfidentialPoolEngine(vault, "0xhost", OWNER, KEEPER, metrics=metrics)
        key = PoolKey("0xTokenA", "0xTokenB", fee=3000, tick_spacing=1, hooks=engine.address)
        engine.on_pool_init("0xhost", key)

        assert metrics.pools_initialized.value == 1
        assert metrics.operation_latency.count == 1
        assert "pool_pools_initialized 1" in metrics.expose()


# ============================================================================
#  LOGGING
# ============================================================================

class TestLogging:

    def test_get_logger(self):
        logger = get_logger("darkpool.test")
        assert isinstance(logger, logging.Logger)
        assert LogManager() is LogManager()

    def test_formatter_strips_control_sequences(self):
        assert TerminalSafeFormatter.sanitize("\x1b[31mred\x1b[0m\r\x07") == "red"
        assert TerminalSafeFormatter.sanitize("tab\tkept") == "tab\tkept"
