"""
Helper utility functions
"""
from datetime import datetime
import re
import time
import pytz

from app.config.settings import settings

LOCAL_TZ = pytz.timezone(settings.TIMEZONE)

def to_local_isoformat(value: datetime) -> str:
    """ISO timestamp in the agency's timezone; naive datetimes are taken as UTC"""
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(LOCAL_TZ).isoformat()

def generate_order_id() -> str:
    """Timestamp-derived order id, e.g. BOOK-1718000000000"""
    return f"BOOK-{int(time.time() * 1000)}"

def parse_price(value) -> int:
    """Package prices are stored as numbers or numeric strings; only the leading integer part counts"""
    if isinstance(value, bool):
        raise ValueError(f"Invalid price: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    match = re.match(r"\s*(\d+)", str(value or ""))
    if not match:
        raise ValueError(f"Invalid price: {value!r}")
    return int(match.group(1))

def format_rupiah(amount: int) -> str:
    return "Rp " + f"{amount:,}".replace(",", ".")
