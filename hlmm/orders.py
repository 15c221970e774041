"""
Order lifecycle for the HLMM market maker.

Each requote cycle is a full cancel-and-replace:

    1. cancel every order in the active set (failures stay for next cycle)
    2. for BUY @ bid, then SELL @ ask: risk check → place → record id

Cancels are always attempted before placements so the bot never rests
two quote pairs at once. The ordering is best effort, not atomic: a crash
between the two steps leaves no quotes until the next cycle.
"""
from decimal import Decimal
from typing import Dict, List, Optional

from .adapters import ExchangeGateway, GatewayError
from .logging import DebugLogger, ErrorContext, performance_trace
from .risk import RiskGate
from .types import Order, OrderKind, Position, Quote, RuntimeConfig, Side


class OrderManager:
    """Owns the active order set and drives cancel/place through the gateway.

    The active set maps order id → Order. Entries are added when the gateway
    accepts an order and removed when a cancel succeeds. The set is the
    local view of what is resting; ``reconcile()`` realigns it with the
    exchange when enabled.
    """

    def __init__(self, gateway: ExchangeGateway, logger: DebugLogger):
        self.gateway = gateway
        self.logger = logger
        self.active: Dict[str, Order] = {}

    async def cancel_all(self) -> List[str]:
        """Cancel every active order.

        Returns:
            Ids cancelled successfully. Ids whose cancel failed remain in the
            active set and are retried on the next pass.
        """
        cancelled = []
        for order_id in list(self.active):
            try:
                await self.gateway.cancel_order(order_id)
            except Exception as e:
                ErrorContext.log_operation_error(self.logger, "cancel_order", e, {"order_id": order_id})
                continue
            order = self.active.pop(order_id)
            cancelled.append(order_id)
            self.logger.info("order_cancel", {"oid": order_id, "side": order.side, "price": order.price})
        return cancelled

    async def place(self, side: Side, price: Decimal, cfg: RuntimeConfig, risk: RiskGate,
                    position: Optional[Position]) -> Optional[Order]:
        """Risk-check and submit one limit order.

        Returns:
            The accepted order, or None if vetoed or rejected. An order
            filled on arrival is returned but not added to the active set.
        """
        if not risk.approve(side, cfg.order_size, position, cfg.max_position_size):
            return None

        order = Order(
            instrument=cfg.instrument,
            side=side,
            kind=OrderKind.LIMIT,
            size=cfg.order_size,
            price=price,
        )
        try:
            accepted = await self.gateway.place_order(order)
        except Exception as e:
            ErrorContext.log_operation_error(self.logger, "place_order", e, {
                "side": side, "price": price, "size": cfg.order_size,
            })
            return None
        if not accepted.id:
            self.logger.error("order_missing_id", {"side": side, "price": price})
            return None
        if accepted.filled:
            # filled on arrival, nothing rests on the book
            self.logger.info("order_filled", {
                "oid": accepted.id, "side": side, "price": price, "size": accepted.size,
            })
            return accepted

        self.active[accepted.id] = accepted
        self.logger.info("order_place", {
            "oid": accepted.id, "side": side, "price": price, "size": accepted.size,
        })
        return accepted

    @performance_trace()
    async def refresh_quotes(self, target: Quote, cfg: RuntimeConfig, risk: RiskGate,
                             position: Optional[Position]) -> List[Order]:
        """Run one cancel-then-place requote cycle.

        Args:
            target: Tick-aligned bid/ask for this cycle
            cfg: Runtime configuration (instrument, order size, position cap)
            risk: Risk gate consulted independently for each side
            position: Last known position used by the risk gate

        Returns:
            Orders accepted this cycle
        """
        await self.cancel_all()

        placed = []
        for side, price in ((Side.BUY, target.bid), (Side.SELL, target.ask)):
            order = await self.place(side, price, cfg, risk, position)
            if order is not None:
                placed.append(order)
        return placed

    async def reconcile(self, instrument: str) -> None:
        """Realign the active set with the exchange's open orders.

        Local ids the exchange no longer lists (filled or expired) are
        dropped. Exchange orders the set does not know are adopted so the
        next cancel pass removes them.
        """
        try:
            remote = await self.gateway.list_open_orders(instrument)
        except GatewayError as e:
            ErrorContext.log_operation_error(self.logger, "list_open_orders", e, {"instrument": instrument})
            return

        remote_by_id = {o.id: o for o in remote if o.id}
        dropped = [oid for oid in self.active if oid not in remote_by_id]
        for oid in dropped:
            del self.active[oid]
        adopted = [oid for oid in remote_by_id if oid not in self.active]
        for oid in adopted:
            self.active[oid] = remote_by_id[oid]

        if dropped or adopted:
            self.logger.warning("reconcile_diff", {"dropped": dropped, "adopted": adopted})
