"""
Configuration loading utilities for HLMM.

Two sources are supported:

- a JSON file with ``runtime``, ``gateway`` and ``logging`` sections
- environment variables (SYMBOL, SPREAD_PERCENTAGE, ORDER_SIZE, ...)

Both produce a BotConfig whose RuntimeConfig has been validated.
"""
import json
import os
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from .types import BotConfig, GatewayConfig, LoggingConfig, RuntimeConfig
from .utils import to_decimal

DECIMAL_FIELDS = ("spread_percent", "order_size", "max_position_size", "price_tick_size")
INT_FIELDS = ("update_interval_ms", "max_book_age_ms", "reconcile_every_n_cycles")
# Positive float settings outside the runtime section
GATEWAY_FLOAT_FIELDS = ("reconnect_delay_s", "request_timeout_s")
LOGGING_FLOAT_FIELDS = ("status_every_s",)


class ConfigError(ValueError):
    """Invalid or incomplete configuration."""


def _runtime_from_dict(d: Dict[str, Any]) -> RuntimeConfig:
    known = set(RuntimeConfig.__dataclass_fields__)
    unknown = set(d) - known
    if unknown:
        raise ConfigError(f"Unknown runtime settings: {sorted(unknown)}")
    kwargs: Dict[str, Any] = dict(d)
    try:
        for name in DECIMAL_FIELDS:
            if name in kwargs:
                kwargs[name] = to_decimal(kwargs[name])
        for name in INT_FIELDS:
            if name in kwargs:
                kwargs[name] = int(kwargs[name])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid runtime setting: {e}") from e
    return RuntimeConfig(**kwargs)


def _section_from_dict(cls, name: str, d: Any, float_fields) -> Any:
    """Build a gateway or logging section, converting its float settings.

    Raises:
        ConfigError: On unknown keys, or a float setting that is not a number > 0
    """
    if not isinstance(d, dict):
        raise ConfigError(f"{name} section must be an object, got {type(d).__name__}")
    unknown = set(d) - set(cls.__dataclass_fields__)
    if unknown:
        raise ConfigError(f"Unknown {name} settings: {sorted(unknown)}")
    kwargs: Dict[str, Any] = dict(d)
    for field_name in float_fields:
        if field_name not in kwargs:
            continue
        raw = kwargs[field_name]
        if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
            raise ConfigError(f"{name}.{field_name} must be a number, got {raw!r}")
        try:
            value = float(raw)
        except ValueError:
            raise ConfigError(f"{name}.{field_name} must be a number, got {raw!r}") from None
        # also rejects NaN
        if not 0 < value < float("inf"):
            raise ConfigError(f"{name}.{field_name} must be > 0, got {value}")
        kwargs[field_name] = value
    return cls(**kwargs)


def validate_runtime(cfg: RuntimeConfig) -> RuntimeConfig:
    """Check the runtime parameters a quoting run depends on.

    Raises:
        ConfigError: If the instrument is empty or any size, price or
            interval parameter is not strictly positive
    """
    if not cfg.instrument:
        raise ConfigError("instrument must be a non-empty string")
    for name in DECIMAL_FIELDS + ("update_interval_ms",):
        value = getattr(cfg, name)
        if value <= 0:
            raise ConfigError(f"{name} must be > 0, got {value}")
    for name in ("max_book_age_ms", "reconcile_every_n_cycles"):
        if getattr(cfg, name) < 0:
            raise ConfigError(f"{name} must be >= 0, got {getattr(cfg, name)}")
    return cfg


def load_config(path: str) -> BotConfig:
    """Load configuration from JSON file.

    Numbers may be given as JSON numbers or as strings; strings avoid
    binary float rounding for tick sizes.

    Raises:
        ConfigError: If the file is not a JSON object or any setting is invalid
        OSError: If the file cannot be read
    """
    with open(path, "r") as fp:
        d = json.load(fp)
    if not isinstance(d, dict):
        raise ConfigError(f"Config file must hold a JSON object, got {type(d).__name__}")
    runtime_section = d.get("runtime", {})
    if not isinstance(runtime_section, dict):
        raise ConfigError(f"runtime section must be an object, got {type(runtime_section).__name__}")
    runtime = _runtime_from_dict(runtime_section)
    gateway = _section_from_dict(GatewayConfig, "gateway", d.get("gateway", {}), GATEWAY_FLOAT_FIELDS)
    logging = _section_from_dict(LoggingConfig, "logging", d.get("logging", {}), LOGGING_FLOAT_FIELDS)
    return BotConfig(
        runtime=validate_runtime(runtime),
        gateway=gateway,
        logging=logging,
        log_path=d.get("log_path", "./data/logs/mm_events.jsonl"),
    )


def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> BotConfig:
    """Build configuration from environment variables.

    Environment Variables:
        SYMBOL: Instrument to quote (default: ETH)
        SPREAD_PERCENTAGE: Quoted spread as percent of mid (default: 0.1)
        ORDER_SIZE: Size of each quote (default: 0.01)
        MAX_POSITION_SIZE: Absolute position cap (default: 1.0)
        UPDATE_INTERVAL_MS: Requote cadence (default: 1000)
        PRICE_TICK_SIZE: Price increment (default: 0.01)
        MAX_BOOK_AGE_MS: Staleness bound, 0 disables (default: 10000)
        RECONCILE_EVERY_N_CYCLES: 0 disables reconciliation (default: 0)
        HYPERLIQUID_API_URL: REST base URL
        HYPERLIQUID_WS_URL: WebSocket URL
        HYPERLIQUID_USER_ADDRESS: Account whose position and orders are read
        HLMM_LOG_PATH: Event log path
        HLMM_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL
    """
    env = os.environ if environ is None else environ
    defaults = RuntimeConfig()
    gw_defaults = GatewayConfig()
    try:
        runtime = RuntimeConfig(
            instrument=env.get("SYMBOL", defaults.instrument),
            spread_percent=to_decimal(env.get("SPREAD_PERCENTAGE", defaults.spread_percent)),
            order_size=to_decimal(env.get("ORDER_SIZE", defaults.order_size)),
            max_position_size=to_decimal(env.get("MAX_POSITION_SIZE", defaults.max_position_size)),
            update_interval_ms=int(env.get("UPDATE_INTERVAL_MS", defaults.update_interval_ms)),
            price_tick_size=to_decimal(env.get("PRICE_TICK_SIZE", defaults.price_tick_size)),
            max_book_age_ms=int(env.get("MAX_BOOK_AGE_MS", defaults.max_book_age_ms)),
            reconcile_every_n_cycles=int(env.get("RECONCILE_EVERY_N_CYCLES", defaults.reconcile_every_n_cycles)),
        )
    except ValueError as e:
        raise ConfigError(f"Invalid environment setting: {e}") from e
    gateway = GatewayConfig(
        api_url=env.get("HYPERLIQUID_API_URL", gw_defaults.api_url),
        ws_url=env.get("HYPERLIQUID_WS_URL", gw_defaults.ws_url),
        user_address=env.get("HYPERLIQUID_USER_ADDRESS", ""),
    )
    logging = LoggingConfig(level=env.get("HLMM_LOG_LEVEL", "INFO"))
    return BotConfig(
        runtime=validate_runtime(runtime),
        gateway=gateway,
        logging=logging,
        log_path=env.get("HLMM_LOG_PATH", "./data/logs/mm_events.jsonl"),
    )


def describe(cfg: RuntimeConfig) -> Dict[str, Any]:
    """Loggable view of the runtime configuration."""
    return {
        name: str(value) if isinstance(value, Decimal) else value
        for name, value in vars(cfg).items()
    }
