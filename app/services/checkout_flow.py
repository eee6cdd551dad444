"""
Checkout flow controller

Stages: Details (1) -> AwaitingPayment (2) -> Result (3).

- Details --submit--> token request, widget opened; the widget then reports
  success (provision account, save booking, go to Result), pending (go to
  AwaitingPayment), error or close (stay on / return to Details).
- AwaitingPayment --back--> Details with the draft untouched.
- Result is final.

Once the gateway reports success, later failures only degrade the Result
(account not linked, booking not recorded); they never read as a failed payment.
"""
import logging
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, Optional, Union

from app.config.database import Collections
from app.config.settings import settings
from app.database.db_operations import db_ops
from app.models.booking import BookingDraft, PackageSummary
from app.models.payment import CustomerDetails
from app.services.booking_persistence import BookingPersistence, ClientStorage
from app.services.errors import (
    GatewayError,
    IllegalTransitionError,
    PersistenceError,
    RegistrationError,
    ValidationError,
)
from app.services.identity_provisioner import IdentityProvisioner
from app.services.notifier import Notifier
from app.services.payment_gateway import PaymentGateway, PaymentHandlers
from app.services.pricing import PriceBreakdown, price_breakdown
from app.services.roster import JamaahRoster
from app.utils.auth import create_access_token
from app.utils.helpers import format_rupiah, generate_order_id, parse_price

logger = logging.getLogger(__name__)


class Stage(IntEnum):
    DETAILS = 1
    AWAITING_PAYMENT = 2
    RESULT = 3


class ResultVariant(str, Enum):
    DASHBOARD = "dashboard"
    LOGIN_MANUALLY = "login"


class Completion(str, Enum):
    RECORDED = "recorded"
    NOT_LINKED = "not_linked"        # paid, no account resolved, no booking written
    NOT_RECORDED = "not_recorded"    # paid, account resolved, booking write failed


@dataclass(frozen=True)
class Details:
    draft: BookingDraft
    stage: Stage = Stage.DETAILS


@dataclass(frozen=True)
class AwaitingPayment:
    draft: BookingDraft
    order_id: str
    stage: Stage = Stage.AWAITING_PAYMENT


@dataclass(frozen=True)
class Result:
    order_id: str
    total_amount: int
    variant: ResultVariant
    completion: Completion
    message: str
    redirect_to: str
    follow_up_required: bool = False
    user_id: Optional[str] = None
    access_token: Optional[str] = None
    stage: Stage = Stage.RESULT


CheckoutState = Union[Details, AwaitingPayment, Result]


@dataclass(frozen=True)
class SubmitTicket:
    """What the browser needs to open the widget"""
    order_id: str
    token: str
    amount: int


class PackageNotFound(LookupError):
    pass


async def load_package(package_id: str) -> PackageSummary:
    doc = await db_ops.get_by_id(Collections.PACKAGES, package_id)
    if not doc:
        raise PackageNotFound(package_id)
    return PackageSummary(
        id=str(doc["_id"]),
        name=doc.get("name") or doc.get("title") or "",
        price=parse_price(doc.get("price")),
        departure_date=doc.get("departureDate"),
        image=doc.get("image") or doc.get("photo"),
    )


class CheckoutFlow:
    def __init__(
        self,
        package: PackageSummary,
        gateway: PaymentGateway,
        notifier: Optional[Notifier] = None,
        client_storage: Optional[ClientStorage] = None,
        provisioner: Optional[IdentityProvisioner] = None,
        persistence: Optional[BookingPersistence] = None,
        order_id_factory: Callable[[], str] = generate_order_id,
    ):
        self.package = package
        self.gateway = gateway
        self.notifier = notifier or Notifier()
        self.client_storage = client_storage or ClientStorage()
        self.provisioner = provisioner or IdentityProvisioner(notifier=self.notifier)
        self.persistence = persistence or BookingPersistence(self.client_storage, self.notifier)
        self.order_id_factory = order_id_factory

        draft = BookingDraft()
        self.state: CheckoutState = Details(draft)
        self.roster = JamaahRoster(draft, self.notifier)
        self.payment_token: Optional[str] = None
        self.closed = False

    @classmethod
    async def mount(cls, package_id: str, gateway: PaymentGateway, **kwargs) -> "CheckoutFlow":
        package = await load_package(package_id)
        return cls(package, gateway, **kwargs)

    # -- views ---------------------------------------------------------------

    @property
    def stage(self) -> Stage:
        return self.state.stage

    @property
    def draft(self) -> BookingDraft:
        return self.roster.draft

    @property
    def totals(self) -> PriceBreakdown:
        return price_breakdown(self.package.price, self.draft.pax, self.draft.voucher_code)

    def _require(self, *allowed: Stage) -> None:
        if self.closed:
            raise IllegalTransitionError("Checkout session was abandoned")
        if self.stage not in allowed:
            raise IllegalTransitionError(f"Not allowed in stage {self.stage.name}")

    # -- form edits (Details only) --------------------------------------------

    def update_contact(self, name: Optional[str] = None, email: Optional[str] = None,
                       password: Optional[str] = None, phone: Optional[str] = None,
                       referral_code: Optional[str] = None, voucher_code: Optional[str] = None) -> None:
        self._require(Stage.DETAILS)
        contact = self.draft.primary_contact
        if name is not None:
            contact.name = name
        if email is not None:
            contact.email = email
        if password is not None:
            contact.password = password
        if phone is not None:
            contact.phone = phone
        if referral_code is not None:
            self.draft.referral_code = referral_code.strip().upper()
        if voucher_code is not None:
            self.draft.voucher_code = voucher_code.strip().upper()

    def increment_pax(self) -> None:
        self._require(Stage.DETAILS)
        self.roster.increment()

    def decrement_pax(self) -> None:
        self._require(Stage.DETAILS)
        self.roster.decrement()

    def set_pax(self, text: str, blur: bool = False) -> None:
        self._require(Stage.DETAILS)
        self.roster.set_pax_direct(text, blur=blur)

    def update_companion(self, index: int, name: Optional[str] = None, whatsapp: Optional[str] = None) -> None:
        self._require(Stage.DETAILS)
        self.roster.update_companion(index, name=name, whatsapp=whatsapp)

    def remove_companion(self, index: int) -> bool:
        self._require(Stage.DETAILS)
        return self.roster.remove_companion_at(index)

    # -- transitions -----------------------------------------------------------

    def validate(self) -> None:
        missing = self.draft.primary_contact.missing_fields()
        if missing:
            self.notifier.error("Mohon lengkapi semua data")
            raise ValidationError(f"Missing fields: {', '.join(missing)}")

    async def submit(self) -> SubmitTicket:
        self._require(Stage.DETAILS)
        self.validate()

        order_id = self.order_id_factory()
        # the booking records what was charged, not later edits
        draft = self.draft.model_copy(deep=True)
        totals = self.totals
        amount = totals.total
        contact = draft.primary_contact
        customer = CustomerDetails(name=contact.name, email=contact.email, phone=contact.phone)
        try:
            token = await self.gateway.request_token(order_id, amount, customer)
        except GatewayError as e:
            self.notifier.error(str(e) or "Gagal membuat transaksi")
            raise

        logger.info("Opening payment for %s (%s, %s pax)", order_id, format_rupiah(amount), draft.pax)
        self.payment_token = token
        await self.gateway.open(token, self._handlers(order_id, draft, totals))
        return SubmitTicket(order_id=order_id, token=token, amount=amount)

    def go_back(self) -> None:
        self._require(Stage.AWAITING_PAYMENT)
        self.state = Details(self.draft)

    def abandon(self) -> None:
        """User navigated away; a partially created account is left as is"""
        if not self.closed:
            logger.info("Checkout for package %s abandoned in stage %s", self.package.id, self.stage.name)
        self.closed = True

    # -- gateway callbacks -----------------------------------------------------

    def _handlers(self, order_id: str, draft: BookingDraft, totals: PriceBreakdown) -> PaymentHandlers:
        async def on_success(result: Dict[str, Any]) -> None:
            if self._ignored("success", order_id):
                return
            self.notifier.success("Pembayaran Berhasil!")
            self.state = await self._complete(order_id, draft, totals, result)

        async def on_pending(result: Dict[str, Any]) -> None:
            if self._ignored("pending", order_id):
                return
            self.notifier.info("Menunggu pembayaran Anda...")
            self.state = AwaitingPayment(self.draft, order_id)

        async def on_error(result: Dict[str, Any]) -> None:
            if self._ignored("error", order_id):
                return
            logger.warning("Payment for %s failed: %s", order_id, result.get("status_message"))
            self.notifier.error("Pembayaran Gagal. Silakan coba lagi.")
            self.state = Details(self.draft)

        async def on_close() -> None:
            if self._ignored("close", order_id):
                return
            self.notifier.info("Silakan selesaikan pembayaran untuk konfirmasi.")
            if self.stage == Stage.AWAITING_PAYMENT:
                self.state = Details(self.draft)

        return PaymentHandlers(on_success=on_success, on_pending=on_pending, on_error=on_error, on_close=on_close)

    def _ignored(self, event: str, order_id: str) -> bool:
        if self.stage == Stage.RESULT:
            logger.warning("Ignoring %s for %s: checkout already finished", event, order_id)
            return True
        return False

    async def _complete(self, order_id: str, draft: BookingDraft, totals: PriceBreakdown,
                        payment_result: Dict[str, Any]) -> Result:
        contact = draft.primary_contact
        amount = totals.total
        try:
            user_id = await self.provisioner.provision(contact.email, contact.password, contact.name, contact.phone)
        except RegistrationError as e:
            logger.warning("Order %s paid but not linked to an account: %s", order_id, e)
            return Result(
                order_id=order_id,
                total_amount=amount,
                variant=ResultVariant.LOGIN_MANUALLY,
                completion=Completion.NOT_LINKED,
                message=str(e),
                redirect_to=settings.HOME_PATH,
                follow_up_required=not e.conflict,
            )

        access_token = create_access_token({"sub": user_id, "email": contact.email, "role": settings.CUSTOMER_ROLE})
        try:
            await self.persistence.save(order_id, draft, totals, payment_result, user_id, self.package)
        except PersistenceError as e:
            logger.error("Account %s holds paid order %s with no booking record", user_id, order_id)
            message = "Pembayaran sukses, tapi gagal menyimpan data. Hubungi admin."
            self.notifier.error(message)
            return Result(
                order_id=order_id,
                total_amount=amount,
                variant=ResultVariant.DASHBOARD,
                completion=Completion.NOT_RECORDED,
                message=message,
                redirect_to=settings.DASHBOARD_PATH,
                follow_up_required=True,
                user_id=user_id,
                access_token=access_token,
            )

        return Result(
            order_id=order_id,
            total_amount=amount,
            variant=ResultVariant.DASHBOARD,
            completion=Completion.RECORDED,
            message="Pembayaran Berhasil!",
            redirect_to=settings.DASHBOARD_PATH,
            user_id=user_id,
            access_token=access_token,
        )

    # -- serialization ---------------------------------------------------------

    def describe(self) -> Dict[str, Any]:
        draft = self.draft
        contact = draft.primary_contact
        view: Dict[str, Any] = {
            "stage": int(self.stage),
            "stageName": self.stage.name.lower(),
            "package": self.package.model_dump(),
            "draft": {
                "name": contact.name,
                "email": contact.email,
                "phone": contact.phone,
                "passwordSet": bool(contact.password),
                "pax": draft.pax,
                "paxInput": self.roster.pax_display,
                "companions": [c.model_dump() for c in draft.companions],
                "referralCode": draft.referral_code,
                "voucherCode": draft.voucher_code,
            },
            "totals": {**self.totals.to_dict(), "totalLabel": format_rupiah(self.totals.total)},
            "closed": self.closed,
        }
        if isinstance(self.state, AwaitingPayment):
            view["orderId"] = self.state.order_id
        if isinstance(self.state, Result):
            result = self.state
            view["orderId"] = result.order_id
            view["result"] = {
                "variant": result.variant.value,
                "completion": result.completion.value,
                "message": result.message,
                "totalAmount": result.total_amount,
                "followUpRequired": result.follow_up_required,
                "userId": result.user_id,
                "accessToken": result.access_token,
                "redirectTo": result.redirect_to,
            }
            view["clientStorage"] = self.client_storage.items()
        view["notifications"] = [
            {"kind": n.kind, "message": n.message} for n in self.notifier.drain()
        ]
        return view
