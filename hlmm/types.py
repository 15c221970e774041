"""
Configuration and market types for HLMM.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderKind(str, Enum):
    LIMIT = "LIMIT"
    MARKET = "MARKET"


class FeedEventType(str, Enum):
    """Events emitted by a book subscription."""
    CONNECTED = "connected"
    MESSAGE = "message"
    DISCONNECTED = "disconnected"
    ERROR = "error"


@dataclass(frozen=True)
class PriceLevel:
    """One order book level."""
    price: Decimal
    size: Decimal


@dataclass
class OrderBook:
    """Order book snapshot.

    Bids are kept in descending price order and asks in ascending order, so
    index 0 of each side is the top of book.
    """
    bids: List[PriceLevel] = field(default_factory=list)
    asks: List[PriceLevel] = field(default_factory=list)
    observed_at_ms: int = 0

    @property
    def best_bid(self) -> Optional[PriceLevel]:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> Optional[PriceLevel]:
        return self.asks[0] if self.asks else None

    @property
    def is_empty(self) -> bool:
        """True when either side has no levels."""
        return not self.bids or not self.asks

    @property
    def is_crossed(self) -> bool:
        if self.is_empty:
            return False
        return self.bids[0].price >= self.asks[0].price

    @property
    def mid(self) -> Optional[Decimal]:
        if self.is_empty:
            return None
        return (self.bids[0].price + self.asks[0].price) / 2


@dataclass
class BookUpdate:
    """Decoded incremental book message. A side left as None is untouched."""
    bids: Optional[List[PriceLevel]] = None
    asks: Optional[List[PriceLevel]] = None
    ts_ms: Optional[int] = None


@dataclass
class FeedEvent:
    kind: FeedEventType
    data: Any = None


@dataclass
class Position:
    """Signed position in the quoted instrument (positive = long)."""
    instrument: str
    size: Decimal
    entry_price: Decimal = Decimal("0")
    unrealized_pnl: Decimal = Decimal("0")


@dataclass
class Order:
    """Order created by the order manager.

    ``id`` and ``submitted_at_ms`` stay None until the gateway accepts it.
    ``filled`` is set when the exchange reports the order filled on arrival,
    so it never rested on the book.
    """
    instrument: str
    side: Side
    size: Decimal
    kind: OrderKind = OrderKind.LIMIT
    price: Optional[Decimal] = None
    id: Optional[str] = None
    submitted_at_ms: Optional[int] = None
    filled: bool = False


@dataclass(frozen=True)
class Quote:
    """Target two-sided quote for one requote cycle."""
    bid: Decimal
    ask: Decimal
    mid: Decimal

    @property
    def is_crossed(self) -> bool:
        return self.bid >= self.ask


@dataclass(frozen=True)
class RuntimeConfig:
    """Quoting parameters, read-only for the lifetime of a run."""
    instrument: str = "ETH"
    spread_percent: Decimal = Decimal("0.1")
    order_size: Decimal = Decimal("0.01")
    max_position_size: Decimal = Decimal("1.0")
    update_interval_ms: int = 1000
    price_tick_size: Decimal = Decimal("0.01")
    max_book_age_ms: int = 10_000  # 0 disables the staleness check
    reconcile_every_n_cycles: int = 0  # 0 disables reconciliation


@dataclass
class GatewayConfig:
    """Exchange endpoints and feed connection settings."""
    api_url: str = "https://api.hyperliquid.xyz"
    ws_url: str = "wss://api.hyperliquid.xyz/ws"
    user_address: str = ""
    reconnect_delay_s: float = 5.0
    request_timeout_s: float = 10.0


@dataclass
class LoggingConfig:
    """Logging configuration for debugging and monitoring."""
    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    status_every_s: float = 5.0


@dataclass
class BotConfig:
    """Complete bot configuration."""
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    log_path: str = "./data/logs/mm_events.jsonl"
