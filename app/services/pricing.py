"""
Booking price calculation
"""
from dataclasses import dataclass, asdict
from typing import Optional

from app.config.settings import settings


def calculate_total(unit_price: int, pax: int, voucher_code: Optional[str] = None,
                    voucher_discount: Optional[int] = None) -> int:
    """unit_price * pax, minus one flat voucher discount when a non-empty voucher code is given.

    Never returns a negative amount.
    """
    discount = settings.VOUCHER_DISCOUNT if voucher_discount is None else voucher_discount
    subtotal = unit_price * pax
    if voucher_code:
        subtotal -= discount
    return max(0, subtotal)


@dataclass(frozen=True)
class PriceBreakdown:
    unit_price: int
    pax: int
    subtotal: int
    discount: int
    total: int

    def to_dict(self) -> dict:
        return asdict(self)


def price_breakdown(unit_price: int, pax: int, voucher_code: Optional[str] = None) -> PriceBreakdown:
    """Figures shown both in the active step and in the order summary panel"""
    subtotal = unit_price * pax
    total = calculate_total(unit_price, pax, voucher_code)
    return PriceBreakdown(
        unit_price=unit_price,
        pax=pax,
        subtotal=subtotal,
        discount=subtotal - total,
        total=total,
    )
