"""
Booking persistence - one bookings/{orderId} document per paid checkout,
plus the welcome hand-off flags for the dashboard.
"""
import json
import logging
from typing import Any, Dict, Optional

from app.config.database import Collections
from app.database.db_operations import db_ops, server_timestamp
from app.models.booking import BookingDraft, BookingRecord, JamaahEntry, PackageSummary
from app.services.errors import PersistenceError
from app.services.notifier import Notifier
from app.services.pricing import PriceBreakdown

logger = logging.getLogger(__name__)

SHOW_WELCOME_KEY = "showWelcomeNotification"
WELCOME_DATA_KEY = "welcomeBookingData"


class ClientStorage:
    """Browser local-storage items the client must set; read-once by the dashboard"""

    def __init__(self):
        self._items: Dict[str, str] = {}

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def items(self) -> Dict[str, str]:
        return dict(self._items)


def build_jamaah(draft: BookingDraft):
    contact = draft.primary_contact
    jamaah = [JamaahEntry(name=contact.name, email=contact.email, phone=contact.phone)]
    jamaah.extend(
        JamaahEntry(name=companion.name, phone=companion.whatsapp, email="")
        for companion in draft.companions
    )
    return jamaah


def consume_welcome(storage: ClientStorage) -> Optional[Dict[str, Any]]:
    """What the dashboard does on first render: read the welcome payload once"""
    if storage.get_item(SHOW_WELCOME_KEY) != "true":
        return None
    raw = storage.get_item(WELCOME_DATA_KEY)
    storage.remove_item(SHOW_WELCOME_KEY)
    storage.remove_item(WELCOME_DATA_KEY)
    return json.loads(raw) if raw else None


class BookingPersistence:
    def __init__(self, client_storage: Optional[ClientStorage] = None, notifier: Optional[Notifier] = None):
        self.client_storage = client_storage or ClientStorage()
        self.notifier = notifier or Notifier()

    async def save(self, order_id: str, draft: BookingDraft, totals: PriceBreakdown,
                   payment_result: Dict[str, Any], user_id: str, package: PackageSummary) -> BookingRecord:
        """Write the booking keyed by order id; a second call overwrites the first"""
        now = server_timestamp()
        record = BookingRecord(
            id=order_id,
            user_id=user_id,
            package_id=package.id,
            package_name=package.name,
            package_price=package.price,
            pax_count=draft.pax,
            total_amount=totals.total,
            payment_method=payment_result.get("payment_type") or "unknown",
            midtrans_order_id=order_id,
            midtrans_transaction_id=payment_result.get("transaction_id") or "",
            jamaah=build_jamaah(draft),
            voucher_code=draft.voucher_code or None,
            referral_code=draft.referral_code or None,
            created_at=now,
            paid_at=now,
        )
        try:
            await db_ops.set_by_id(Collections.BOOKINGS, order_id, record.model_dump(by_alias=True))
        except Exception as e:
            logger.error("Paid order %s for user %s was not recorded: %s", order_id, user_id, e)
            raise PersistenceError(f"Booking {order_id} could not be saved: {e}") from e

        logger.info("Booking %s saved (%s pax, total %s)", order_id, draft.pax, totals.total)
        self.client_storage.set_item(SHOW_WELCOME_KEY, "true")
        self.client_storage.set_item(WELCOME_DATA_KEY, json.dumps({
            "packageName": package.name,
            "totalAmount": totals.total,
            "paxCount": draft.pax,
            "orderId": order_id,
        }))
        self.notifier.success("Redirecting to dashboard...")
        return record
