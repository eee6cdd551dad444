"""
Booking model and schemas
The draft collected by the checkout screen and the record written after payment
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Literal
from datetime import datetime


class PrimaryContact(BaseModel):
    """The booker; becomes the account holder"""
    name: str = ""
    email: str = ""
    password: str = ""
    phone: str = ""

    def missing_fields(self) -> List[str]:
        return [field for field in ("name", "email", "password", "phone") if not getattr(self, field).strip()]


class Companion(BaseModel):
    """Additional jamaah travelling with the booker"""
    name: str = ""
    whatsapp: str = ""


class BookingDraft(BaseModel):
    """Form state for one checkout session; never persisted as-is"""
    primary_contact: PrimaryContact = Field(default_factory=PrimaryContact)
    pax: int = 1
    companions: List[Companion] = Field(default_factory=list)
    referral_code: str = ""
    voucher_code: str = ""


class PackageSummary(BaseModel):
    """Fields of packages/{id} the checkout screen shows"""
    id: str
    name: str
    price: int
    departure_date: Optional[str] = None
    image: Optional[str] = None


class JamaahEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    email: str = ""
    phone: str = ""
    documents_uploaded: bool = False


class BookingRecord(BaseModel):
    """bookings/{orderId} document, camelCase keys on the wire and in the store"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    user_id: str
    package_id: str
    package_name: str
    package_price: int
    pax_count: int = Field(..., ge=1)
    total_amount: int
    status: Literal["paid"] = "paid"
    payment_method: str = "unknown"
    midtrans_order_id: str
    midtrans_transaction_id: str = ""
    jamaah: List[JamaahEntry]
    voucher_code: Optional[str] = None
    referral_code: Optional[str] = None
    created_at: datetime
    paid_at: datetime
