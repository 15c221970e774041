"""
Core trading loop for the HLMM market maker.
"""
import asyncio
import datetime as dt
import time
from typing import Optional

from .adapters import ExchangeGateway
from .config import describe
from .feed import FeedConnector
from .logging import DebugLogger, ErrorContext
from .market_data import MarketData
from .orders import OrderManager
from .quoting import Quoter
from .risk import RiskGate
from .types import BotConfig, Quote
from .utils import fmt


class MarketMakerBot:
    """Main market making bot orchestration.

    Owns every component and runs the cooperative quoting loop:

    1. Startup: book + position snapshot (fatal on failure), start feed
    2. Cycle: refresh book/position → compute quote → cancel-and-replace
       orders → optional reconciliation → position advisory
    3. Sleep update_interval_ms (woken early by shutdown)
    4. Shutdown: finish the in-flight cycle, cancel all active orders, stop
       the feed, close the log

    No exception from a cycle escapes the loop; each is logged and the next
    cycle starts on schedule.
    """

    def __init__(self, cfg: BotConfig, ex: ExchangeGateway, logger: Optional[DebugLogger] = None):
        self.cfg = cfg
        self.ex = ex
        self.logger = logger or DebugLogger(cfg.log_path, level=cfg.logging.level)

        self.md = MarketData(self.logger)
        self.feed = FeedConnector(
            ex, self.md, cfg.runtime, self.logger,
            reconnect_delay_s=cfg.gateway.reconnect_delay_s,
        )
        self.quoter = Quoter(cfg.runtime, self.md, self.logger)
        self.risk = RiskGate(self.logger)
        self.orders = OrderManager(ex, self.logger)
        self._shutdown = asyncio.Event()
        self.cycles = 0
        self._last_print = 0.0

    async def shutdown(self):
        self._shutdown.set()

    @property
    def running(self) -> bool:
        return not self._shutdown.is_set()

    async def run_cycle(self) -> Optional[Quote]:
        """Run one requote cycle and return the quote it acted on, if any."""
        rc = self.cfg.runtime
        self.cycles += 1

        await self.feed.refresh()

        quote = self.quoter.compute()
        position = self.md.get_position()
        if quote is not None:
            await self.orders.refresh_quotes(quote, rc, self.risk, position)

        if rc.reconcile_every_n_cycles and self.cycles % rc.reconcile_every_n_cycles == 0:
            await self.orders.reconcile(rc.instrument)

        self.risk.check_advisory(position, rc.max_position_size)
        self._print_status(quote)
        return quote

    def _print_status(self, quote: Optional[Quote]) -> None:
        if time.time() - self._last_print < self.cfg.logging.status_every_s:
            return
        position = self.md.get_position()
        q = position.size if position is not None else 0
        if quote is not None:
            px = f"mid={fmt(quote.mid, 4)} bid={quote.bid} ask={quote.ask}"
        else:
            px = "no quote"
        print(
            f"[{dt.datetime.now().isoformat(timespec='seconds')}] "
            f"{self.cfg.runtime.instrument} {px} pos={q} "
            f"| Active: {len(self.orders.active)} Reconnects: {self.feed.reconnects}"
        )
        self._last_print = time.time()

    async def _sleep_interval(self) -> None:
        try:
            await asyncio.wait_for(self._shutdown.wait(), self.cfg.runtime.update_interval_ms / 1000)
        except asyncio.TimeoutError:
            pass

    async def _quote_loop(self):
        while not self._shutdown.is_set():
            try:
                await self.run_cycle()
            except Exception as e:
                ErrorContext.capture_error(self.logger, e, {
                    "operation": "quote_loop",
                    "cycle": self.cycles,
                })
            await self._sleep_interval()

    async def _cleanup(self):
        cancelled = await self.orders.cancel_all()
        if self.orders.active:
            self.logger.error("shutdown_orders_left", {"oids": list(self.orders.active)})
        await self.feed.stop()
        self.logger.info("shutdown", {"cancelled": cancelled, "cycles": self.cycles})

    async def run(self):
        """Start the feed and quote until shutdown() is called.

        Raises:
            Exception: If the startup snapshot or position fetch fails
        """
        self.logger.info("startup", describe(self.cfg.runtime))
        try:
            await self.feed.start()
        except Exception:
            self.logger.close()
            raise

        self.feed.start_subscription()
        try:
            await self._quote_loop()
        finally:
            try:
                await self._cleanup()
            finally:
                self.logger.close()
