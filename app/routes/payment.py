"""
Payment routes - Midtrans Snap transaction tokens and payment notifications
"""
import logging
from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse

from app.config.settings import settings
from app.models.payment import CreateTransactionRequest, CreateTransactionResponse, MidtransNotification
from app.services.midtrans_client import MidtransClient, MidtransError, default_config

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payments"])

def midtrans_client_factory() -> MidtransClient:
    return MidtransClient(default_config())


@router.post("/create-transaction", response_model=CreateTransactionResponse)
async def create_transaction(body: CreateTransactionRequest):
    """Exchange order id, amount and customer details for a Snap token"""
    if not settings.MIDTRANS_SERVER_KEY or not settings.MIDTRANS_CLIENT_KEY:
        logger.error("Missing Midtrans API keys in environment")
        return JSONResponse(status_code=500, content={
            "error": "Konfigurasi Server Salah",
            "details": "API Keys Midtrans belum diset.",
        })

    try:
        transaction = await midtrans_client_factory().create_transaction(
            order_id=body.orderId,
            gross_amount=body.grossAmount,
            customer=body.customerDetails.model_dump(),
        )
    except MidtransError as e:
        logger.error("Midtrans error for %s: %s", body.orderId, e)
        return JSONResponse(status_code=500, content={
            "error": "Gagal menghubungi Midtrans",
            "details": str(e),
        })

    return {"token": transaction["token"], "redirect_url": transaction.get("redirect_url")}


@router.post("/webhook")
async def payment_notification(notification: MidtransNotification):
    """Midtrans HTTP notification. Verified and logged only; bookings are not updated here."""
    client = midtrans_client_factory()
    if not client.verify_notification(
        notification.order_id,
        notification.status_code,
        notification.gross_amount,
        notification.signature_key,
    ):
        logger.warning("Rejected notification with bad signature for %s", notification.order_id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")

    logger.info(
        "Transaction notification received. Order ID: %s. Status: %s. Fraud: %s",
        notification.order_id,
        notification.transaction_status,
        notification.fraud_status,
    )
    return {"status": "OK"}


@router.get("/transactions/{order_id}/status")
async def transaction_status(order_id: str):
    """Ask Midtrans for the current state of an order (support tooling)"""
    try:
        return await midtrans_client_factory().get_status(order_id)
    except MidtransError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
