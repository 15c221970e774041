"""
Quote generation for the HLMM market maker.

The quote is a symmetric pair around the mid price:

    mid        = (best_bid + best_ask) / 2
    half       = mid * (spread_percent / 100) / 2
    bid, ask   = round_to_tick(mid - half), round_to_tick(mid + half)

Example (tick 0.01, spread 0.1%):
    book 100.00 / 100.20 → mid 100.10, half 0.0505
    raw 100.0495 / 100.1505 → quote 100.05 / 100.15
"""
from typing import Optional

from .logging import DebugLogger, performance_trace
from .market_data import MarketData
from .types import OrderBook, Quote, RuntimeConfig
from .utils import round_to_tick


def compute_quotes(book: Optional[OrderBook], cfg: RuntimeConfig) -> Optional[Quote]:
    """Compute the target bid/ask for one requote cycle.

    Pure function of its inputs: the same book and config always produce
    the same quote.

    Args:
        book: Current order book, or None when no snapshot is held
        cfg: Runtime quoting parameters

    Returns:
        Tick-aligned Quote, or None when the book is absent, has an empty
        side or is crossed. A returned quote can itself be crossed when the
        spread is smaller than one tick; check ``Quote.is_crossed``.
    """
    if book is None or book.is_empty or book.is_crossed:
        return None

    mid = book.mid
    half_spread = mid * (cfg.spread_percent / 100) / 2

    bid = round_to_tick(mid - half_spread, cfg.price_tick_size)
    ask = round_to_tick(mid + half_spread, cfg.price_tick_size)
    return Quote(bid=bid, ask=ask, mid=mid)


class Quoter:
    """Quote engine bound to the market data store.

    Reads the current book from MarketData, refuses stale books, and turns
    crossed quotes into a skipped cycle.
    """

    def __init__(self, cfg: RuntimeConfig, md: MarketData, logger: DebugLogger):
        self.cfg = cfg
        self.md = md
        self.logger = logger

    @performance_trace()
    def compute(self) -> Optional[Quote]:
        """Quote for this cycle, or None when quoting must be skipped."""
        book = self.md.get_book()
        if book is None or book.is_empty:
            self.logger.warning("quote_skip", {"reason": "book_unavailable"})
            return None
        if book.is_crossed:
            self.logger.warning("quote_skip", {
                "reason": "book_crossed",
                "best_bid": book.bids[0].price,
                "best_ask": book.asks[0].price,
            })
            return None

        if self.cfg.max_book_age_ms > 0:
            age = self.md.book_age_ms()
            if age > self.cfg.max_book_age_ms:
                self.logger.warning("quote_skip", {"reason": "book_stale", "age_ms": age})
                return None

        quote = compute_quotes(book, self.cfg)
        if quote is None:
            return None
        if quote.is_crossed:
            self.logger.warning("quote_skip", {
                "reason": "quote_crossed",
                "bid": quote.bid,
                "ask": quote.ask,
                "tick": self.cfg.price_tick_size,
            })
            return None

        self.logger.info("quote", {"mid": quote.mid, "bid": quote.bid, "ask": quote.ask})
        return quote
