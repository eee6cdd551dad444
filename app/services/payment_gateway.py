"""
Payment gateway adapter

Two halves:
- ``TransactionTokenClient`` asks the transaction token service for a Snap token
  (POST /api/create-transaction).
- a ``SnapWidget`` shows the hosted payment widget for that token and reports back
  through exactly one of four handlers: success, pending, error or close.

``PaymentGateway.open`` wraps the handlers in a one-shot guard, so whatever the widget
does, at most one handler runs per ``open`` call.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

import httpx

from app.config.settings import settings
from app.models.payment import CustomerDetails
from app.services.errors import GatewayError

logger = logging.getLogger(__name__)

ResultHandler = Callable[[Dict[str, Any]], Awaitable[None]]
CloseHandler = Callable[[], Awaitable[None]]

DEFAULT_GATEWAY_ERROR = "Gagal menghubungi server pembayaran"
PAYMENT_EVENTS = ("success", "pending", "error", "close")


@dataclass
class PaymentHandlers:
    on_success: ResultHandler
    on_pending: ResultHandler
    on_error: ResultHandler
    on_close: CloseHandler


class SnapWidget(Protocol):
    async def pay(self, token: str, handlers: PaymentHandlers) -> None:
        ...


class OneShotHandlers(PaymentHandlers):
    """Handlers that let only the first callback through"""

    def __init__(self, token: str, handlers: PaymentHandlers):
        self.token = token
        self.fired: Optional[str] = None
        super().__init__(
            on_success=self._guard("success", handlers.on_success),
            on_pending=self._guard("pending", handlers.on_pending),
            on_error=self._guard("error", handlers.on_error),
            on_close=self._guard("close", handlers.on_close),
        )

    def _guard(self, event: str, handler):
        async def _once(*args):
            if self.fired is not None:
                logger.warning("Ignoring %s callback for token %s: %s already fired", event, self.token[:8], self.fired)
                return
            self.fired = event
            await handler(*args)
        return _once


class RelayedSnapWidget:
    """Widget whose callbacks arrive from the browser.

    The browser runs ``snap.pay(token, ...)`` itself and posts the callback that fired
    back to the server, which hands it to ``deliver``.
    """

    def __init__(self):
        self._handlers: Dict[str, PaymentHandlers] = {}

    async def pay(self, token: str, handlers: PaymentHandlers) -> None:
        self._handlers[token] = handlers

    def is_open(self, token: str) -> bool:
        return token in self._handlers

    async def deliver(self, token: str, event: str, result: Optional[Dict[str, Any]] = None) -> bool:
        """Dispatch one relayed callback; the token is released after its first delivery"""
        if event not in PAYMENT_EVENTS:
            raise ValueError(f"Unknown payment event: {event}")
        handlers = self._handlers.pop(token, None)
        if handlers is None:
            logger.warning("Ignoring %s callback for token %s: no payment open", event, token[:8])
            return False
        result = result or {}
        if event == "success":
            await handlers.on_success(result)
        elif event == "pending":
            await handlers.on_pending(result)
        elif event == "error":
            await handlers.on_error(result)
        else:
            await handlers.on_close()
        return True

    def forget(self, token: str) -> None:
        self._handlers.pop(token, None)


class TransactionTokenClient:
    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url or settings.TRANSACTION_TOKEN_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._transport = transport

    async def request_token(self, order_id: str, amount: int, customer: CustomerDetails) -> str:
        body = {
            "orderId": order_id,
            "grossAmount": amount,
            "customerDetails": customer.model_dump(),
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(self.url, json=body)
        except httpx.HTTPError as e:
            logger.error("Token request for %s failed: %s", order_id, e)
            raise GatewayError(DEFAULT_GATEWAY_ERROR) from e

        if not r.is_success:
            try:
                data = r.json()
            except ValueError:
                data = {}
            if not isinstance(data, dict):
                data = {}
            detail = data.get("details") or data.get("error") or DEFAULT_GATEWAY_ERROR
            logger.error("Token request for %s rejected (%s): %s", order_id, r.status_code, detail)
            raise GatewayError(str(detail), status_code=r.status_code)

        token = (r.json() or {}).get("token")
        if not token:
            raise GatewayError(DEFAULT_GATEWAY_ERROR, status_code=r.status_code)
        return token


class PaymentGateway:
    """Capability injected into the checkout flow: token request plus widget"""

    def __init__(self, token_client: TransactionTokenClient, widget: SnapWidget):
        self.token_client = token_client
        self.widget = widget

    async def request_token(self, order_id: str, amount: int, customer: CustomerDetails) -> str:
        return await self.token_client.request_token(order_id, amount, customer)

    async def open(self, token: str, handlers: PaymentHandlers) -> OneShotHandlers:
        guarded = OneShotHandlers(token, handlers)
        await self.widget.pay(token, guarded)
        return guarded
