"""
Midtrans Snap / Core API client (server key side)
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from app.config.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class MidtransConfig:
    server_key: str
    snap_url: str       # https://app.sandbox.midtrans.com/snap/v1 OR https://app.midtrans.com/snap/v1
    api_url: str        # https://api.sandbox.midtrans.com/v2 OR https://api.midtrans.com/v2
    timeout: float = 20


class MidtransError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[Dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


def default_config() -> MidtransConfig:
    return MidtransConfig(
        server_key=settings.MIDTRANS_SERVER_KEY,
        snap_url=settings.MIDTRANS_SNAP_URL,
        api_url=settings.MIDTRANS_API_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


class MidtransClient:
    def __init__(self, cfg: MidtransConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.cfg = cfg
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        # Basic auth: server key as username, empty password
        return httpx.AsyncClient(
            auth=(self.cfg.server_key, ""),
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            timeout=self.cfg.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                r = await client.request(method, url, json=payload)
        except httpx.HTTPError as e:
            raise MidtransError(f"Midtrans unreachable: {e}") from e
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {"raw": r.text}
        if r.status_code >= 400:
            messages = data.get("error_messages") if isinstance(data, dict) else None
            msg = messages[0] if messages else f"Midtrans {r.status_code}: {data}"
            raise MidtransError(msg, status_code=r.status_code, payload=data)
        return data

    async def create_transaction(self, *, order_id: str, gross_amount: int, customer: Dict[str, str]) -> Dict[str, Any]:
        payload = {
            "transaction_details": {"order_id": order_id, "gross_amount": gross_amount},
            "customer_details": {
                "first_name": customer.get("name", ""),
                "email": customer.get("email", ""),
                "phone": customer.get("phone", ""),
            },
            "credit_card": {"secure": True},
        }
        logger.info("Creating Snap transaction for %s (%s)", order_id, gross_amount)
        data = await self._request("POST", f"{self.cfg.snap_url}/transactions", payload)
        if not data.get("token"):
            raise MidtransError("Midtrans response has no token", payload=data)
        return data

    async def get_status(self, order_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"{self.cfg.api_url}/{order_id}/status")

    def signature_for(self, order_id: str, status_code: str, gross_amount: str) -> str:
        raw = f"{order_id}{status_code}{gross_amount}{self.cfg.server_key}"
        return hashlib.sha512(raw.encode("utf-8")).hexdigest()

    def verify_notification(self, order_id: str, status_code: str, gross_amount: str, signature_key: str) -> bool:
        expected = self.signature_for(order_id, status_code, gross_amount)
        return hmac.compare_digest(expected, signature_key or "")
