"""
Payment models - Midtrans Snap transaction token exchange and widget callbacks
"""
from pydantic import BaseModel, Field
from typing import Optional, Literal, Dict, Any


class CustomerDetails(BaseModel):
    name: str
    email: str
    phone: str = ""


class CreateTransactionRequest(BaseModel):
    """Body of POST /api/create-transaction"""
    orderId: str = Field(..., min_length=1)
    grossAmount: int = Field(..., gt=0)
    customerDetails: CustomerDetails


class CreateTransactionResponse(BaseModel):
    token: str
    redirect_url: Optional[str] = None


class PaymentCallback(BaseModel):
    """Snap callback relayed by the browser"""
    event: Literal["success", "pending", "error", "close"]
    result: Optional[Dict[str, Any]] = None


class MidtransNotification(BaseModel):
    """Subset of the Midtrans HTTP notification payload"""
    order_id: str
    status_code: str
    gross_amount: str
    signature_key: str
    transaction_status: Optional[str] = None
    fraud_status: Optional[str] = None
    payment_type: Optional[str] = None
    transaction_id: Optional[str] = None
