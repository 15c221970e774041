"""
Pytest configuration and shared fixtures for HLMM tests.

This module provides:
- Runtime and bot configuration fixtures
- Loggers (real file-backed and mocked)
- Order book builders
- A mocked exchange gateway that hands out sequential order ids
"""
import itertools
import tempfile
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from hlmm.adapters import HyperliquidGateway
from hlmm.logging import DebugLogger
from hlmm.types import (
    BookUpdate,
    BotConfig,
    GatewayConfig,
    LoggingConfig,
    Order,
    OrderBook,
    PriceLevel,
    RuntimeConfig,
)
from hlmm.utils import now_ms


def D(x) -> Decimal:
    return Decimal(str(x))


def make_book(bids, asks, observed_at_ms=None) -> OrderBook:
    """Build an OrderBook from (price, size) pairs, best level first."""
    return OrderBook(
        bids=[PriceLevel(D(p), D(s)) for p, s in bids],
        asks=[PriceLevel(D(p), D(s)) for p, s in asks],
        observed_at_ms=observed_at_ms if observed_at_ms is not None else now_ms(),
    )


def make_update(bids=None, asks=None) -> BookUpdate:
    return BookUpdate(
        bids=None if bids is None else [PriceLevel(D(p), D(s)) for p, s in bids],
        asks=None if asks is None else [PriceLevel(D(p), D(s)) for p, s in asks],
        ts_ms=now_ms(),
    )


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests that need file I/O."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def runtime_config():
    """Runtime configuration matching the documented defaults."""
    return RuntimeConfig(
        instrument="ETH",
        spread_percent=D("0.1"),
        order_size=D("0.2"),
        max_position_size=D("1.0"),
        update_interval_ms=1000,
        price_tick_size=D("0.01"),
    )


@pytest.fixture
def sample_config(temp_dir, runtime_config):
    """Complete bot configuration writing its log into temp_dir."""
    return BotConfig(
        runtime=runtime_config,
        gateway=GatewayConfig(user_address="0xabc", reconnect_delay_s=5.0),
        logging=LoggingConfig(status_every_s=3600.0),
        log_path=str(temp_dir / "logs" / "events.jsonl"),
    )


@pytest.fixture
def mock_logger():
    """Mock DebugLogger for asserting on emitted events."""
    return MagicMock(spec=DebugLogger)


@pytest.fixture
def sample_book():
    """Book with best bid 100.00 and best ask 100.20."""
    return make_book(
        bids=[("100.00", "1.5"), ("99.90", "3")],
        asks=[("100.20", "2"), ("100.30", "4")],
    )


@pytest.fixture
def mock_gateway(sample_book):
    """Mock exchange gateway for testing trading logic without real API calls.

    place_order accepts every order and assigns ids "1", "2", ... in call
    order; cancel_order succeeds.
    """
    ids = itertools.count(1)

    async def _place(order: Order) -> Order:
        oid = str(next(ids))
        return Order(
            instrument=order.instrument,
            side=order.side,
            kind=order.kind,
            size=order.size,
            price=order.price,
            id=oid,
            submitted_at_ms=now_ms(),
        )

    gw = MagicMock(spec=HyperliquidGateway)
    gw.get_book_snapshot = AsyncMock(side_effect=lambda instrument: make_book(
        [(lv.price, lv.size) for lv in sample_book.bids],
        [(lv.price, lv.size) for lv in sample_book.asks],
    ))
    gw.get_position = AsyncMock(return_value=None)
    gw.place_order = AsyncMock(side_effect=_place)
    gw.cancel_order = AsyncMock(return_value=None)
    gw.list_open_orders = AsyncMock(return_value=[])
    return gw
