"""
Market data feed for the HLMM market maker.

The feed connector keeps MarketData current from two sources:

- request/response polls: one book + position snapshot at startup (fatal on
  failure) and one per quoting cycle (logged on failure, stale data kept)
- a live l2Book subscription whose messages replace the stored book sides

When the subscription drops while running, it is re-established after a
fixed delay. Retries are unbounded and the delay never grows.
"""
import asyncio
from typing import Awaitable, Callable, Optional

from .adapters import ExchangeGateway
from .logging import DebugLogger, ErrorContext
from .market_data import MarketData
from .types import FeedEvent, FeedEventType, RuntimeConfig

# Decoding errors that mean "malformed message", not a broken connection
MALFORMED_MESSAGE_ERRORS = (ValueError, KeyError, TypeError, AttributeError)


class FeedConnector:
    """Snapshot polling plus live subscription feeding one MarketData store.

    Args:
        gateway: Exchange gateway providing snapshots and the subscription
        md: Store receiving book and position updates
        cfg: Runtime configuration (instrument)
        logger: Event logger
        reconnect_delay_s: Fixed wait before resubscribing after a drop
        sleep: Awaitable sleep, replaceable in tests
    """

    def __init__(
        self,
        gateway: ExchangeGateway,
        md: MarketData,
        cfg: RuntimeConfig,
        logger: DebugLogger,
        reconnect_delay_s: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.gateway = gateway
        self.md = md
        self.cfg = cfg
        self.logger = logger
        self.reconnect_delay_s = reconnect_delay_s
        self._sleep = sleep
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.reconnects = 0
        self.dropped_messages = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Load the initial book and position.

        Raises:
            Exception: Whatever the gateway raised; startup does not retry
        """
        instrument = self.cfg.instrument
        try:
            book = await self.gateway.get_book_snapshot(instrument)
            self.md.set_book(book)
            position = await self.gateway.get_position(instrument)
            self.md.set_position(position)
        except Exception as e:
            self.logger.critical("feed_startup_failed", {
                "instrument": instrument, "error": str(e), "error_type": type(e).__name__,
            })
            raise

        position = self.md.get_position()
        self.logger.info("feed_started", {
            "instrument": instrument,
            "n_bids": len(book.bids),
            "n_asks": len(book.asks),
            "position": position.size if position is not None else 0,
        })

    async def refresh(self) -> bool:
        """Poll book and position once. Failures are logged and stale state kept.

        Returns:
            True if the book poll succeeded
        """
        instrument = self.cfg.instrument
        book_ok = True
        try:
            self.md.set_book(await self.gateway.get_book_snapshot(instrument))
        except Exception as e:
            book_ok = False
            ErrorContext.log_operation_error(self.logger, "get_book_snapshot", e, {"instrument": instrument})
        try:
            self.md.set_position(await self.gateway.get_position(instrument))
        except Exception as e:
            ErrorContext.log_operation_error(self.logger, "get_position", e, {"instrument": instrument})
        return book_ok

    def handle_event(self, event: FeedEvent) -> None:
        """Apply one subscription event to the store."""
        if event.kind == FeedEventType.MESSAGE:
            try:
                update = self.gateway.decode_book_update(event.data)
            except MALFORMED_MESSAGE_ERRORS as e:
                self.dropped_messages += 1
                self.logger.warning("ws_parse_error", {"raw": str(event.data)[:2000], "error": str(e)})
                return
            if update is None:
                return
            if self.md.apply_update(update):
                self.logger.debug("ws_book", {
                    "bids_replaced": update.bids is not None,
                    "asks_replaced": update.asks is not None,
                    "exchange_ts_ms": update.ts_ms,
                })
        elif event.kind == FeedEventType.CONNECTED:
            self.logger.info("ws_connected", {"instrument": self.cfg.instrument, "reconnects": self.reconnects})
        elif event.kind == FeedEventType.ERROR:
            self.logger.warning("ws_error", {"error": str(event.data)})
        elif event.kind == FeedEventType.DISCONNECTED:
            self.logger.warning("ws_disconnected", {"instrument": self.cfg.instrument})

    async def run(self) -> None:
        """Consume the subscription until stopped, resubscribing after drops."""
        self._running = True
        while self._running:
            try:
                async for event in self.gateway.subscribe_book(self.cfg.instrument):
                    self.handle_event(event)
                    if not self._running:
                        break
            except asyncio.CancelledError:
                raise
            except Exception as e:
                ErrorContext.log_operation_error(self.logger, "subscribe_book", e, {"instrument": self.cfg.instrument})
            if not self._running:
                break
            self.reconnects += 1
            self.logger.warning("ws_reconnect_scheduled", {
                "delay_s": self.reconnect_delay_s, "attempt": self.reconnects,
            })
            await self._sleep(self.reconnect_delay_s)

    def start_subscription(self) -> asyncio.Task:
        """Run the subscription as a background task on the current loop."""
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Stop reconnecting and tear down the subscription task."""
        self._running = False
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self.logger.info("ws_stopped", {"instrument": self.cfg.instrument})
