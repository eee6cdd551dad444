"""
Checkout routes - drive one booking checkout session from the browser
"""
from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from typing import Optional

from app.config.settings import settings
from app.models.payment import PaymentCallback
from app.services.checkout_flow import CheckoutFlow, PackageNotFound, Stage
from app.services.checkout_sessions import checkout_sessions
from app.services.errors import GatewayError, IllegalTransitionError, ValidationError

router = APIRouter(prefix="/checkout", tags=["Checkout"])


class ContactUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    referralCode: Optional[str] = None
    voucherCode: Optional[str] = None


class PaxEdit(BaseModel):
    value: str
    blur: bool = False


class CompanionUpdate(BaseModel):
    name: Optional[str] = None
    whatsapp: Optional[str] = None


def _get_flow(session_id: str) -> CheckoutFlow:
    flow = checkout_sessions.get(session_id)
    if not flow:
        raise HTTPException(status_code=404, detail="Checkout session not found")
    return flow


def _view(session_id: str, flow: CheckoutFlow) -> dict:
    return {"sessionId": session_id, **flow.describe()}


def _run_edit(session_id: str, action) -> dict:
    flow = _get_flow(session_id)
    try:
        action(flow)
    except IllegalTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except IndexError:
        raise HTTPException(status_code=404, detail="Companion not found")
    return _view(session_id, flow)


@router.post("/{package_id}", status_code=status.HTTP_201_CREATED)
async def start_checkout(package_id: str):
    """Mount a checkout session for a package"""
    try:
        flow = await CheckoutFlow.mount(package_id, checkout_sessions.gateway)
    except PackageNotFound:
        raise HTTPException(status_code=404, detail="Paket tidak ditemukan")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Package is not bookable: {e}")
    session_id = checkout_sessions.add(flow)
    return _view(session_id, flow)


@router.get("/sessions/{session_id}")
async def get_checkout(session_id: str):
    return _view(session_id, _get_flow(session_id))


@router.patch("/sessions/{session_id}/contact")
async def update_contact(session_id: str, body: ContactUpdate):
    return _run_edit(session_id, lambda flow: flow.update_contact(
        name=body.name,
        email=body.email,
        password=body.password,
        phone=body.phone,
        referral_code=body.referralCode,
        voucher_code=body.voucherCode,
    ))


@router.post("/sessions/{session_id}/pax/increment")
async def increment_pax(session_id: str):
    return _run_edit(session_id, lambda flow: flow.increment_pax())


@router.post("/sessions/{session_id}/pax/decrement")
async def decrement_pax(session_id: str):
    return _run_edit(session_id, lambda flow: flow.decrement_pax())


@router.put("/sessions/{session_id}/pax")
async def set_pax(session_id: str, body: PaxEdit):
    return _run_edit(session_id, lambda flow: flow.set_pax(body.value, blur=body.blur))


@router.patch("/sessions/{session_id}/companions/{index}")
async def update_companion(session_id: str, index: int, body: CompanionUpdate):
    return _run_edit(session_id, lambda flow: flow.update_companion(index, name=body.name, whatsapp=body.whatsapp))


@router.delete("/sessions/{session_id}/companions/{index}")
async def remove_companion(session_id: str, index: int):
    return _run_edit(session_id, lambda flow: flow.remove_companion(index))


@router.post("/sessions/{session_id}/submit")
async def submit_checkout(session_id: str):
    """Validate the form, get a Snap token and open the payment widget"""
    flow = _get_flow(session_id)
    try:
        ticket = await flow.submit()
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"message": str(e), **_view(session_id, flow)})
    except GatewayError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail={"message": str(e), **_view(session_id, flow)})
    except IllegalTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return {
        **_view(session_id, flow),
        "payment": {
            "orderId": ticket.order_id,
            "token": ticket.token,
            "amount": ticket.amount,
            "clientKey": settings.MIDTRANS_CLIENT_KEY,
        },
    }


@router.post("/sessions/{session_id}/payment-callback")
async def payment_callback(session_id: str, body: PaymentCallback):
    """Relay of the Snap callback (success / pending / error / close) that fired in the browser"""
    flow = _get_flow(session_id)
    if not flow.payment_token or not checkout_sessions.widget.is_open(flow.payment_token):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No payment in progress")
    await checkout_sessions.widget.deliver(flow.payment_token, body.event, body.result)
    view = _view(session_id, flow)
    if flow.stage == Stage.RESULT:
        checkout_sessions.release(session_id)
    return view


@router.post("/sessions/{session_id}/back")
async def back_to_details(session_id: str):
    """'Not me, go back' from the waiting-for-payment screen"""
    return _run_edit(session_id, lambda flow: flow.go_back())


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_checkout(session_id: str):
    _get_flow(session_id)
    checkout_sessions.discard(session_id)
