"""
Exchange gateways for the HLMM market maker.
"""
import asyncio
import dataclasses
import itertools
import json
from decimal import Decimal
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import requests
import websockets

from .types import (
    BookUpdate,
    FeedEvent,
    FeedEventType,
    GatewayConfig,
    Order,
    OrderBook,
    OrderKind,
    Position,
    PriceLevel,
    Side,
)
from .utils import now_ms, to_decimal

# signer(action, nonce) -> signature object accepted by /exchange
Signer = Callable[[Dict[str, Any], int], Dict[str, Any]]


class GatewayError(Exception):
    """Transport failure or exchange-side rejection."""


class ExchangeGateway:
    """Abstract base class for exchange interfaces."""

    async def get_book_snapshot(self, instrument: str) -> OrderBook:
        raise NotImplementedError

    async def get_position(self, instrument: str) -> Optional[Position]:
        raise NotImplementedError

    def subscribe_book(self, instrument: str) -> AsyncIterator[FeedEvent]:
        raise NotImplementedError

    def decode_book_update(self, raw: Any) -> Optional[BookUpdate]:
        raise NotImplementedError

    async def place_order(self, order: Order) -> Order:
        raise NotImplementedError

    async def cancel_order(self, order_id: str) -> None:
        raise NotImplementedError

    async def list_open_orders(self, instrument: str) -> List[Order]:
        raise NotImplementedError


def to_wire(x: Decimal) -> str:
    """Format a price or size for /exchange: plain notation, no trailing zeros."""
    return f"{x.normalize():f}"


def parse_levels(raw_levels: List[Dict[str, Any]], descending: bool) -> List[PriceLevel]:
    """Convert Hyperliquid ``{"px", "sz", "n"}`` levels into sorted PriceLevels.

    Raises:
        ValueError: On a non-positive price, negative size or unparsable number
        KeyError: If a level lacks ``px`` or ``sz``
    """
    levels = []
    for lvl in raw_levels:
        price = to_decimal(lvl["px"])
        size = to_decimal(lvl["sz"])
        if price <= 0 or size < 0:
            raise ValueError(f"Invalid book level px={lvl['px']} sz={lvl['sz']}")
        levels.append(PriceLevel(price=price, size=size))
    levels.sort(key=lambda lv: lv.price, reverse=descending)
    return levels


class HyperliquidGateway(ExchangeGateway):
    """Hyperliquid perpetuals gateway.

    REST calls go through a ``requests.Session`` executed with
    ``asyncio.to_thread()`` so the event loop is never blocked. The book
    subscription uses ``websockets``.

    Endpoints:
    - POST {api_url}/info: l2Book, clearinghouseState, openOrders, meta
    - POST {api_url}/exchange: order and cancel actions
    - {ws_url}: l2Book subscription

    Signing is not done here. Order actions are signed by the injected
    ``signer(action, nonce)``; without one every order call raises
    GatewayError while market data keeps working.

    Args:
        cfg: Endpoint and timeout configuration
        signer: Callable producing the ``signature`` field for /exchange
        session: Optional pre-built requests session (tests inject a mock)
    """

    def __init__(self, cfg: GatewayConfig, signer: Optional[Signer] = None,
                 session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.signer = signer
        self.session = session or requests.Session()
        self._asset_ids: Dict[str, int] = {}
        # Hyperliquid cancels by (asset, oid), the order manager only knows oids
        self._order_assets: Dict[str, int] = {}

    # ---------------------------------------------------------------- REST
    def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        url = f"{self.cfg.api_url.rstrip('/')}{path}"
        try:
            resp = self.session.post(url, json=payload, timeout=self.cfg.request_timeout_s)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise GatewayError(f"POST {path} failed: {e}") from e
        except ValueError as e:
            raise GatewayError(f"POST {path} returned invalid JSON: {e}") from e

    async def _info(self, payload: Dict[str, Any]) -> Any:
        return await asyncio.to_thread(self._post, "/info", payload)

    async def _exchange(self, action: Dict[str, Any]) -> Dict[str, Any]:
        if self.signer is None:
            raise GatewayError("No signer configured; order actions are disabled")
        nonce = now_ms()
        payload = {"action": action, "nonce": nonce, "signature": self.signer(action, nonce)}
        resp = await asyncio.to_thread(self._post, "/exchange", payload)
        if not isinstance(resp, dict) or resp.get("status") != "ok":
            raise GatewayError(f"Exchange rejected {action.get('type')}: {resp}")
        return resp

    def _user(self) -> str:
        if not self.cfg.user_address:
            raise GatewayError("user_address is not configured")
        return self.cfg.user_address

    async def _asset_index(self, instrument: str) -> int:
        if instrument not in self._asset_ids:
            meta = await self._info({"type": "meta"})
            try:
                for i, asset in enumerate(meta["universe"]):
                    self._asset_ids[asset["name"]] = i
            except (KeyError, TypeError) as e:
                raise GatewayError(f"Unexpected meta response: {e}") from e
        try:
            return self._asset_ids[instrument]
        except KeyError:
            raise GatewayError(f"Unknown instrument: {instrument}") from None

    # --------------------------------------------------------- market data
    async def get_book_snapshot(self, instrument: str) -> OrderBook:
        data = await self._info({"type": "l2Book", "coin": instrument})
        try:
            bids_raw, asks_raw = data["levels"]
            return OrderBook(
                bids=parse_levels(bids_raw, descending=True),
                asks=parse_levels(asks_raw, descending=False),
                observed_at_ms=now_ms(),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise GatewayError(f"Malformed l2Book snapshot: {e}") from e

    async def get_position(self, instrument: str) -> Optional[Position]:
        data = await self._info({"type": "clearinghouseState", "user": self._user()})
        try:
            for entry in data.get("assetPositions", []):
                p = entry["position"]
                if p.get("coin") != instrument:
                    continue
                size = to_decimal(p["szi"])
                if size == 0:
                    return None
                return Position(
                    instrument=instrument,
                    size=size,
                    entry_price=to_decimal(p.get("entryPx") or 0),
                    unrealized_pnl=to_decimal(p.get("unrealizedPnl") or 0),
                )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise GatewayError(f"Malformed clearinghouseState: {e}") from e
        return None

    async def subscribe_book(self, instrument: str) -> AsyncIterator[FeedEvent]:
        """Yield CONNECTED, then one MESSAGE per frame, then DISCONNECTED.

        An abnormal close or connect failure yields ERROR before DISCONNECTED.
        The generator ends after DISCONNECTED; reconnecting is the caller's job.
        """
        sub = {"method": "subscribe", "subscription": {"type": "l2Book", "coin": instrument}}
        try:
            async with websockets.connect(self.cfg.ws_url, ping_interval=20, ping_timeout=20) as ws:
                await ws.send(json.dumps(sub))
                yield FeedEvent(FeedEventType.CONNECTED, {"url": self.cfg.ws_url, "subscription": sub})
                async for raw in ws:
                    yield FeedEvent(FeedEventType.MESSAGE, raw)
        except (websockets.exceptions.WebSocketException, OSError, asyncio.TimeoutError) as e:
            yield FeedEvent(FeedEventType.ERROR, e)
        yield FeedEvent(FeedEventType.DISCONNECTED)

    def decode_book_update(self, raw: Any) -> Optional[BookUpdate]:
        """Decode one websocket frame.

        Returns:
            BookUpdate for ``l2Book`` frames, None for control frames
            (``subscriptionResponse``, ``pong``)

        Raises:
            ValueError, KeyError, TypeError: On a malformed frame
        """
        msg = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        if msg.get("channel") != "l2Book":
            return None
        data = msg["data"]
        bids_raw, asks_raw = data["levels"]
        return BookUpdate(
            bids=parse_levels(bids_raw, descending=True),
            asks=parse_levels(asks_raw, descending=False),
            ts_ms=int(data.get("time") or now_ms()),
        )

    # -------------------------------------------------------------- orders
    async def place_order(self, order: Order) -> Order:
        if order.price is None:
            raise GatewayError("Hyperliquid orders need a price (market orders are IOC limits)")
        asset = await self._asset_index(order.instrument)
        tif = "Gtc" if order.kind == OrderKind.LIMIT else "Ioc"
        action = {
            "type": "order",
            "orders": [{
                "a": asset,
                "b": order.side == Side.BUY,
                "p": to_wire(order.price),
                "s": to_wire(order.size),
                "r": False,
                "t": {"limit": {"tif": tif}},
            }],
            "grouping": "na",
        }
        resp = await self._exchange(action)
        try:
            status = resp["response"]["data"]["statuses"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise GatewayError(f"Unexpected order response: {resp}") from e
        if "error" in status:
            raise GatewayError(f"Order rejected: {status['error']}")
        filled = "resting" not in status and "filled" in status
        accepted = status.get("resting") or status.get("filled")
        if not accepted or "oid" not in accepted:
            raise GatewayError(f"Unexpected order status: {status}")
        oid = str(accepted["oid"])
        if not filled:
            self._order_assets[oid] = asset
        return dataclasses.replace(order, id=oid, submitted_at_ms=now_ms(), filled=filled)

    async def cancel_order(self, order_id: str) -> None:
        if order_id not in self._order_assets:
            raise GatewayError(f"Unknown order id {order_id}")
        action = {
            "type": "cancel",
            "cancels": [{"a": self._order_assets[order_id], "o": int(order_id)}],
        }
        resp = await self._exchange(action)
        try:
            status = resp["response"]["data"]["statuses"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise GatewayError(f"Unexpected cancel response: {resp}") from e
        if status != "success":
            raise GatewayError(f"Cancel rejected: {status}")
        self._order_assets.pop(order_id, None)

    async def list_open_orders(self, instrument: str) -> List[Order]:
        data = await self._info({"type": "openOrders", "user": self._user()})
        asset = await self._asset_index(instrument)
        orders = []
        try:
            for o in data:
                if o.get("coin") != instrument:
                    continue
                oid = str(o["oid"])
                self._order_assets[oid] = asset
                orders.append(Order(
                    instrument=instrument,
                    side=Side.BUY if o["side"] == "B" else Side.SELL,
                    size=to_decimal(o["sz"]),
                    price=to_decimal(o["limitPx"]),
                    id=oid,
                    submitted_at_ms=o.get("timestamp"),
                ))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise GatewayError(f"Malformed openOrders response: {e}") from e
        return orders


class DryRunGateway(HyperliquidGateway):
    """Gateway that reads live market data but only prints order actions.

    Book snapshots and the subscription hit the real endpoints so quotes are
    computed against the live market. Without a configured user address the
    position is reported as flat.
    """

    def __init__(self, cfg: GatewayConfig, session: Optional[requests.Session] = None):
        super().__init__(cfg, signer=None, session=session)
        self._ids = itertools.count(1)
        self._resting: Dict[str, Order] = {}

    async def get_position(self, instrument: str) -> Optional[Position]:
        if not self.cfg.user_address:
            return None
        return await super().get_position(instrument)

    async def place_order(self, order: Order) -> Order:
        order_id = f"dry_run_{order.side.value}_{next(self._ids)}"
        print(f"[DRY] WOULD PLACE {order.side.value}: {order.size} @ {order.price} (order_id: {order_id})")
        accepted = dataclasses.replace(order, id=order_id, submitted_at_ms=now_ms())
        self._resting[order_id] = accepted
        return accepted

    async def cancel_order(self, order_id: str) -> None:
        print(f"[DRY] WOULD CANCEL {order_id}")
        self._resting.pop(order_id, None)

    async def list_open_orders(self, instrument: str) -> List[Order]:
        return [o for o in self._resting.values() if o.instrument == instrument]
