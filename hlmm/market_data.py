"""
Market data state for the quoting loop.

MarketData holds the latest order book and position for the quoted
instrument. It performs no I/O: the feed connector writes into it, and the
quoter and risk gate read one consistent snapshot per cycle.

Data Flow:
    REST snapshot / poll ─┐
                          ├→ MarketData → Quoter / RiskGate
    WebSocket l2Book ─────┘

Incremental updates replace whole sides. A message carrying only bids
leaves the stored asks untouched. Level-by-level diffs (insert, update,
remove per price) are not modelled.
"""
from typing import Optional

from .logging import DebugLogger
from .types import BookUpdate, OrderBook, Position
from .utils import now_ms


class MarketData:
    """Latest known order book and position.

    Thread Safety:
    - Designed for single-threaded async operation
    - Every update replaces whole objects or whole book sides, so a reader
      between two awaits never sees a half-applied update
    """

    def __init__(self, logger: DebugLogger):
        self.logger = logger
        self._book: Optional[OrderBook] = None
        self._position: Optional[Position] = None

    def get_book(self) -> Optional[OrderBook]:
        return self._book

    def set_book(self, book: OrderBook) -> None:
        """Replace the stored book wholesale (snapshot refresh)."""
        if not book.observed_at_ms:
            book.observed_at_ms = now_ms()
        self._book = book

    def get_position(self) -> Optional[Position]:
        return self._position

    def set_position(self, position: Optional[Position]) -> None:
        """Store the polled position. A zero-size position is stored as None."""
        if position is not None and position.size == 0:
            position = None
        self._position = position

    def apply_update(self, update: BookUpdate) -> bool:
        """Apply an incremental message by replacing the sides it carries.

        Args:
            update: Decoded message; ``None`` sides are left as they are

        Returns:
            True if the stored book changed, False if no book is held yet
        """
        book = self._book
        if book is None:
            self.logger.warning("ws_update_before_snapshot", {})
            return False

        bids = update.bids if update.bids is not None else book.bids
        asks = update.asks if update.asks is not None else book.asks
        self._book = OrderBook(
            bids=list(bids),
            asks=list(asks),
            observed_at_ms=now_ms(),
        )
        return True

    def book_age_ms(self, t_ms: Optional[int] = None) -> Optional[int]:
        """Milliseconds since the stored book was observed, None without a book."""
        if self._book is None:
            return None
        return (t_ms if t_ms is not None else now_ms()) - self._book.observed_at_ms
