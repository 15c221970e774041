"""
Tests for configuration loading and validation.

Tests cover:
- Config dataclass defaults
- Config loading from JSON files
- Config loading from environment variables
- Invalid configuration handling
"""
import json
from decimal import Decimal
from pathlib import Path

import pytest

from hlmm.config import ConfigError, describe, load_config, load_config_from_env, validate_runtime
from hlmm.types import BotConfig, GatewayConfig, LoggingConfig, RuntimeConfig

EXAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "config.example.json"


def write_config(temp_dir, data) -> str:
    path = temp_dir / "config.json"
    path.write_text(json.dumps(data))
    return str(path)


class TestDefaults:
    """Test config dataclass defaults."""

    @pytest.mark.unit
    def test_runtime_defaults(self):
        """Defaults match the documented quoting parameters."""
        cfg = RuntimeConfig()

        assert cfg.instrument == "ETH"
        assert cfg.spread_percent == Decimal("0.1")
        assert cfg.order_size == Decimal("0.01")
        assert cfg.max_position_size == Decimal("1.0")
        assert cfg.update_interval_ms == 1000
        assert cfg.price_tick_size == Decimal("0.01")
        assert cfg.max_book_age_ms == 10_000
        assert cfg.reconcile_every_n_cycles == 0

    @pytest.mark.unit
    def test_gateway_defaults(self):
        cfg = GatewayConfig()

        assert cfg.api_url == "https://api.hyperliquid.xyz"
        assert cfg.ws_url == "wss://api.hyperliquid.xyz/ws"
        assert cfg.reconnect_delay_s == 5.0

    @pytest.mark.unit
    def test_runtime_config_is_immutable(self):
        cfg = RuntimeConfig()
        with pytest.raises(AttributeError):
            cfg.order_size = Decimal("5")


class TestLoadConfig:
    """Test loading configuration from JSON files."""

    @pytest.mark.unit
    def test_example_config_loads(self):
        """The shipped example file is a valid configuration."""
        cfg = load_config(str(EXAMPLE_CONFIG))

        assert isinstance(cfg, BotConfig)
        assert cfg.runtime.instrument == "ETH"
        assert cfg.runtime.price_tick_size == Decimal("0.01")

    @pytest.mark.unit
    def test_numbers_become_decimals(self, temp_dir):
        path = write_config(temp_dir, {
            "runtime": {"instrument": "BTC", "spread_percent": 0.05, "order_size": "0.001",
                        "price_tick_size": 1, "update_interval_ms": "500"},
            "gateway": {"user_address": "0xabc"},
            "logging": {"level": "DEBUG"},
            "log_path": "/tmp/hlmm.jsonl",
        })

        cfg = load_config(path)

        assert cfg.runtime.spread_percent == Decimal("0.05")
        assert cfg.runtime.order_size == Decimal("0.001")
        assert cfg.runtime.price_tick_size == Decimal("1")
        assert cfg.runtime.update_interval_ms == 500
        assert cfg.gateway.user_address == "0xabc"
        assert cfg.logging.level == "DEBUG"
        assert cfg.log_path == "/tmp/hlmm.jsonl"

    @pytest.mark.unit
    def test_missing_sections_use_defaults(self, temp_dir):
        cfg = load_config(write_config(temp_dir, {}))

        assert cfg.runtime == RuntimeConfig()
        assert cfg.gateway == GatewayConfig()
        assert cfg.logging == LoggingConfig()

    @pytest.mark.unit
    @pytest.mark.parametrize("data", [
        {"runtime": {"spred_percent": "0.1"}},
        {"gateway": {"api": "https://example.com"}},
        {"logging": {"verbose": True}},
    ])
    def test_unknown_keys_rejected(self, temp_dir, data):
        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, data))

    @pytest.mark.unit
    @pytest.mark.parametrize("runtime", [
        {"spread_percent": "0"},
        {"order_size": "-0.1"},
        {"max_position_size": "0"},
        {"price_tick_size": "0"},
        {"update_interval_ms": 0},
        {"max_book_age_ms": -1},
        {"reconcile_every_n_cycles": -5},
        {"instrument": ""},
        {"order_size": "lots"},
    ])
    def test_invalid_runtime_values(self, temp_dir, runtime):
        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, {"runtime": runtime}))

    @pytest.mark.unit
    def test_timing_settings_become_floats(self, temp_dir):
        """String delays are converted so the feed can sleep on them."""
        cfg = load_config(write_config(temp_dir, {
            "gateway": {"reconnect_delay_s": "5", "request_timeout_s": 2},
            "logging": {"status_every_s": "0.5"},
        }))

        assert cfg.gateway.reconnect_delay_s == 5.0
        assert isinstance(cfg.gateway.reconnect_delay_s, float)
        assert cfg.gateway.request_timeout_s == 2.0
        assert cfg.logging.status_every_s == 0.5

    @pytest.mark.unit
    @pytest.mark.parametrize("data", [
        {"gateway": {"reconnect_delay_s": 0}},
        {"gateway": {"reconnect_delay_s": -5}},
        {"gateway": {"reconnect_delay_s": "soon"}},
        {"gateway": {"reconnect_delay_s": None}},
        {"gateway": {"reconnect_delay_s": True}},
        {"gateway": {"reconnect_delay_s": "nan"}},
        {"gateway": {"request_timeout_s": "0"}},
        {"logging": {"status_every_s": -1}},
    ])
    def test_invalid_timing_settings(self, temp_dir, data):
        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, data))

    @pytest.mark.unit
    @pytest.mark.parametrize("data", [
        [1, 2, 3],
        "ETH",
        {"runtime": ["ETH"]},
        {"gateway": "https://api.hyperliquid.xyz"},
    ])
    def test_non_object_config_rejected(self, temp_dir, data):
        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, data))

    @pytest.mark.unit
    def test_config_error_is_value_error(self):
        """Callers catching ValueError also catch configuration errors."""
        with pytest.raises(ValueError):
            validate_runtime(RuntimeConfig(order_size=Decimal("0")))

    @pytest.mark.unit
    def test_missing_file(self, temp_dir):
        with pytest.raises(OSError):
            load_config(str(temp_dir / "nope.json"))


class TestLoadConfigFromEnv:
    """Test loading configuration from environment variables."""

    @pytest.mark.unit
    def test_empty_environment_gives_defaults(self):
        cfg = load_config_from_env({})

        assert cfg.runtime == RuntimeConfig()
        assert cfg.gateway.user_address == ""
        assert cfg.log_path == "./data/logs/mm_events.jsonl"

    @pytest.mark.unit
    def test_reads_all_variables(self):
        cfg = load_config_from_env({
            "SYMBOL": "SOL",
            "SPREAD_PERCENTAGE": "0.2",
            "ORDER_SIZE": "1.5",
            "MAX_POSITION_SIZE": "10",
            "UPDATE_INTERVAL_MS": "250",
            "PRICE_TICK_SIZE": "0.001",
            "MAX_BOOK_AGE_MS": "0",
            "RECONCILE_EVERY_N_CYCLES": "10",
            "HYPERLIQUID_API_URL": "https://api.hyperliquid-testnet.xyz",
            "HYPERLIQUID_WS_URL": "wss://api.hyperliquid-testnet.xyz/ws",
            "HYPERLIQUID_USER_ADDRESS": "0xdef",
            "HLMM_LOG_PATH": "/var/log/hlmm.jsonl",
            "HLMM_LOG_LEVEL": "WARNING",
        })

        rc = cfg.runtime
        assert rc.instrument == "SOL"
        assert rc.spread_percent == Decimal("0.2")
        assert rc.order_size == Decimal("1.5")
        assert rc.max_position_size == Decimal("10")
        assert rc.update_interval_ms == 250
        assert rc.price_tick_size == Decimal("0.001")
        assert rc.max_book_age_ms == 0
        assert rc.reconcile_every_n_cycles == 10
        assert cfg.gateway.api_url == "https://api.hyperliquid-testnet.xyz"
        assert cfg.gateway.ws_url == "wss://api.hyperliquid-testnet.xyz/ws"
        assert cfg.gateway.user_address == "0xdef"
        assert cfg.log_path == "/var/log/hlmm.jsonl"
        assert cfg.logging.level == "WARNING"

    @pytest.mark.unit
    @pytest.mark.parametrize("env", [
        {"ORDER_SIZE": "abc"},
        {"UPDATE_INTERVAL_MS": "1.5"},
        {"SPREAD_PERCENTAGE": "-1"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ConfigError):
            load_config_from_env(env)


class TestDescribe:
    """Test the loggable config view."""

    @pytest.mark.unit
    def test_decimals_rendered_as_strings(self):
        view = describe(RuntimeConfig())

        assert view["spread_percent"] == "0.1"
        assert view["update_interval_ms"] == 1000
        json.dumps(view)
