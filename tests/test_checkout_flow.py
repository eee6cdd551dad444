"""
Tests for the checkout state machine: Details -> AwaitingPayment -> Result.
"""
import json
import unittest

from app.config.database import Collections, db_config
from app.services.checkout_flow import (
    AwaitingPayment,
    CheckoutFlow,
    Completion,
    Details,
    PackageNotFound,
    Result,
    ResultVariant,
    Stage,
)
from app.services.errors import GatewayError, IllegalTransitionError, ValidationError
from app.services.payment_gateway import PaymentGateway, RelayedSnapWidget
from app.utils.auth import decode_access_token
from tests.fakes import SAMPLE_PACKAGE, FakeDatabase, FakeTokenClient, order_ids


class CheckoutFlowTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.db = FakeDatabase()
        db_config.database = self.db
        await db_config.ensure_indexes()
        self.db[Collections.PACKAGES].docs[SAMPLE_PACKAGE["_id"]] = dict(SAMPLE_PACKAGE)

        self.tokens = FakeTokenClient()
        self.next_order_id = order_ids()
        self.widget = RelayedSnapWidget()
        self.flow = await self._mount()

    async def asyncTearDown(self):
        db_config.database = None

    async def _mount(self) -> CheckoutFlow:
        gateway = PaymentGateway(self.tokens, self.widget)
        return await CheckoutFlow.mount(SAMPLE_PACKAGE["_id"], gateway, order_id_factory=self.next_order_id)

    def fill_form(self, flow=None, email="ahmad@example.com", password="rahasia123"):
        flow = flow or self.flow
        flow.update_contact(name="Ahmad", email=email, password=password, phone="0812")

    async def pay(self, event, result=None, flow=None):
        flow = flow or self.flow
        await self.widget.deliver(flow.payment_token, event, result)

    @property
    def bookings(self):
        return self.db[Collections.BOOKINGS].docs


class MountAndEditTests(CheckoutFlowTestCase):
    async def test_mount_loads_package(self):
        self.assertIsInstance(self.flow.state, Details)
        self.assertEqual(self.flow.package.name, "Umrah Reguler 9 Hari")
        self.assertEqual(self.flow.package.price, 25_000_000)
        self.assertEqual(self.flow.totals.total, 25_000_000)

    async def test_unknown_package(self):
        with self.assertRaises(PackageNotFound):
            await CheckoutFlow.mount("missing", PaymentGateway(self.tokens, self.widget))

    async def test_codes_are_upper_cased(self):
        self.flow.update_contact(referral_code="agen01", voucher_code="hemat")
        self.assertEqual(self.flow.draft.referral_code, "AGEN01")
        self.assertEqual(self.flow.draft.voucher_code, "HEMAT")

    async def test_blank_codes_are_cleared(self):
        self.flow.update_contact(referral_code="  ", voucher_code="   ")
        self.assertEqual(self.flow.draft.voucher_code, "")
        self.assertEqual(self.flow.draft.referral_code, "")
        self.assertEqual(self.flow.totals.total, 25_000_000)

        self.flow.update_contact(voucher_code=" hemat ")
        self.assertEqual(self.flow.draft.voucher_code, "HEMAT")
        self.assertEqual(self.flow.totals.total, 24_800_000)

    async def test_totals_follow_pax_and_voucher(self):
        self.flow.increment_pax()
        self.assertEqual(self.flow.totals.total, 50_000_000)
        self.flow.update_contact(voucher_code="hemat")
        self.assertEqual(self.flow.totals.total, 49_800_000)
        view = self.flow.describe()
        self.assertEqual(view["totals"]["total"], 49_800_000)
        self.assertEqual(view["draft"]["pax"], 2)


class SubmitTests(CheckoutFlowTestCase):
    async def test_incomplete_form_blocks_submission(self):
        self.flow.update_contact(name="Ahmad", email="ahmad@example.com", phone="0812")

        with self.assertRaises(ValidationError):
            await self.flow.submit()

        self.assertEqual(self.tokens.requests, [])
        self.assertIsInstance(self.flow.state, Details)
        self.assertEqual(self.flow.notifier.pending[-1].message, "Mohon lengkapi semua data")

    async def test_whitespace_only_fields_are_missing(self):
        self.fill_form()
        self.flow.update_contact(phone="   ")
        with self.assertRaises(ValidationError):
            await self.flow.submit()

    async def test_submit_requests_token_for_total(self):
        self.fill_form()
        self.flow.increment_pax()
        self.flow.update_contact(voucher_code="hemat")

        ticket = await self.flow.submit()

        self.assertEqual(ticket.token, "tok-1")
        self.assertEqual(ticket.amount, 49_800_000)
        request = self.tokens.requests[0]
        self.assertEqual(request["order_id"], ticket.order_id)
        self.assertEqual(request["amount"], 49_800_000)
        self.assertEqual(request["customer"].email, "ahmad@example.com")
        self.assertTrue(self.widget.is_open("tok-1"))
        self.assertIsInstance(self.flow.state, Details)

    async def test_gateway_error_keeps_details(self):
        self.tokens.error = GatewayError("API Keys Midtrans belum diset.", status_code=500)
        self.fill_form()

        with self.assertRaises(GatewayError):
            await self.flow.submit()

        self.assertIsInstance(self.flow.state, Details)
        self.assertIsNone(self.flow.payment_token)
        self.assertEqual(self.flow.notifier.pending[-1].message, "API Keys Midtrans belum diset.")


class PaymentOutcomeTests(CheckoutFlowTestCase):
    async def test_success_provisions_account_and_saves_booking(self):
        self.fill_form()
        self.flow.increment_pax()
        self.flow.update_companion(0, name="Aisyah", whatsapp="0813")
        ticket = await self.flow.submit()

        await self.pay("success", {"payment_type": "credit_card", "transaction_id": "trx-1"})

        state = self.flow.state
        self.assertIsInstance(state, Result)
        self.assertEqual(state.completion, Completion.RECORDED)
        self.assertEqual(state.variant, ResultVariant.DASHBOARD)
        self.assertEqual(state.redirect_to, "/dashboard")
        self.assertFalse(state.follow_up_required)

        booking = self.bookings[ticket.order_id]
        self.assertEqual(booking["userId"], state.user_id)
        self.assertEqual(booking["paxCount"], 2)
        self.assertEqual(booking["totalAmount"], 50_000_000)
        self.assertEqual(booking["paymentMethod"], "credit_card")
        self.assertEqual(len(booking["jamaah"]), 2)

        self.assertEqual(decode_access_token(state.access_token)["sub"], state.user_id)
        self.assertEqual(self.flow.client_storage.get_item("showWelcomeNotification"), "true")
        view = self.flow.describe()
        self.assertEqual(view["stage"], 3)
        self.assertEqual(view["result"]["completion"], "recorded")
        self.assertIn("welcomeBookingData", view["clientStorage"])

    async def test_pending_then_back_keeps_draft(self):
        self.fill_form()
        self.flow.increment_pax()
        self.flow.update_companion(0, name="Aisyah")
        ticket = await self.flow.submit()

        await self.pay("pending", {"payment_type": "bank_transfer"})

        self.assertIsInstance(self.flow.state, AwaitingPayment)
        self.assertEqual(self.flow.state.order_id, ticket.order_id)
        self.assertEqual(self.flow.notifier.pending[-1].message, "Menunggu pembayaran Anda...")
        self.assertEqual(self.bookings, {})

        self.flow.go_back()

        self.assertIsInstance(self.flow.state, Details)
        self.assertEqual(self.flow.draft.primary_contact.name, "Ahmad")
        self.assertEqual(self.flow.draft.pax, 2)
        self.assertEqual(self.flow.draft.companions[0].name, "Aisyah")

    async def test_edits_are_blocked_while_awaiting_payment(self):
        self.fill_form()
        await self.flow.submit()
        await self.pay("pending")

        with self.assertRaises(IllegalTransitionError):
            self.flow.increment_pax()
        with self.assertRaises(IllegalTransitionError):
            await self.flow.submit()

    async def test_back_only_from_awaiting_payment(self):
        with self.assertRaises(IllegalTransitionError):
            self.flow.go_back()

    async def test_error_stays_on_details(self):
        self.fill_form()
        await self.flow.submit()

        await self.pay("error", {"status_message": "Card declined"})

        self.assertIsInstance(self.flow.state, Details)
        self.assertEqual(self.flow.notifier.pending[-1].message, "Pembayaran Gagal. Silakan coba lagi.")
        self.assertEqual(self.bookings, {})

    async def test_close_stays_on_details_and_allows_resubmit(self):
        self.fill_form()
        first = await self.flow.submit()
        await self.pay("close")

        self.assertIsInstance(self.flow.state, Details)
        self.assertEqual(self.flow.notifier.pending[-1].kind, "info")

        second = await self.flow.submit()
        self.assertEqual(second.token, "tok-2")
        self.assertNotEqual(first.order_id, second.order_id)

    async def test_edits_after_submit_do_not_change_the_recorded_booking(self):
        self.fill_form()
        ticket = await self.flow.submit()

        self.flow.increment_pax()
        self.flow.update_companion(0, name="Aisyah")
        self.flow.update_contact(voucher_code="hemat", email="lain@example.com")
        await self.pay("success", {"transaction_id": "trx-1"})

        state = self.flow.state
        booking = self.bookings[ticket.order_id]
        self.assertEqual(ticket.amount, 25_000_000)
        self.assertEqual(state.total_amount, 25_000_000)
        self.assertEqual(booking["totalAmount"], 25_000_000)
        self.assertEqual(booking["paxCount"], 1)
        self.assertEqual(len(booking["jamaah"]), 1)
        self.assertIsNone(booking["voucherCode"])
        account = self.db[Collections.AUTH_ACCOUNTS].docs[state.user_id]
        self.assertEqual(account["email"], "ahmad@example.com")
        welcome = json.loads(self.flow.client_storage.get_item("welcomeBookingData"))
        self.assertEqual(welcome["totalAmount"], 25_000_000)
        self.assertEqual(welcome["paxCount"], 1)

    async def test_second_callback_for_same_payment_is_ignored(self):
        self.fill_form()
        ticket = await self.flow.submit()
        await self.pay("success", {"transaction_id": "trx-1"})
        writes = self.db[Collections.BOOKINGS].write_count

        await self.pay("success", {"transaction_id": "trx-1"})
        await self.pay("error")

        self.assertEqual(self.db[Collections.BOOKINGS].write_count, writes)
        self.assertEqual(self.flow.state.completion, Completion.RECORDED)
        self.assertIn(ticket.order_id, self.bookings)


class DegradedSuccessTests(CheckoutFlowTestCase):
    async def test_email_taken_with_other_password_asks_for_manual_login(self):
        # first checkout registers the e-mail
        self.fill_form()
        await self.flow.submit()
        await self.pay("success", {})
        self.assertEqual(len(self.bookings), 1)

        other = await self._mount()
        self.fill_form(flow=other, password="password-lain")
        ticket = await other.submit()
        await self.pay("success", {"transaction_id": "trx-2"}, flow=other)

        state = other.state
        self.assertIsInstance(state, Result)
        self.assertEqual(state.variant, ResultVariant.LOGIN_MANUALLY)
        self.assertEqual(state.completion, Completion.NOT_LINKED)
        self.assertIsNone(state.user_id)
        self.assertIsNone(state.access_token)
        self.assertNotIn(ticket.order_id, self.bookings)
        self.assertEqual(len(self.bookings), 1)
        messages = [n.message for n in other.notifier.pending]
        self.assertIn("Pembayaran Berhasil!", messages)
        self.assertIn("Email sudah terdaftar dengan password berbeda. Silakan login.", messages)

    async def test_same_credentials_reuse_the_account(self):
        self.fill_form()
        await self.flow.submit()
        await self.pay("success", {})
        first_user = self.flow.state.user_id

        other = await self._mount()
        self.fill_form(flow=other)
        await other.submit()
        await self.pay("success", {}, flow=other)

        self.assertEqual(other.state.user_id, first_user)
        self.assertEqual(other.state.completion, Completion.RECORDED)
        self.assertEqual(len(self.db[Collections.USERS].docs), 1)
        self.assertEqual(len(self.bookings), 2)

    async def test_other_registration_failure_flags_follow_up(self):
        self.fill_form(password="123")
        await self.flow.submit()
        await self.pay("success", {})

        state = self.flow.state
        self.assertEqual(state.completion, Completion.NOT_LINKED)
        self.assertEqual(state.variant, ResultVariant.LOGIN_MANUALLY)
        self.assertTrue(state.follow_up_required)
        self.assertEqual(self.bookings, {})

    async def test_booking_write_failure_reports_contact_support(self):
        self.db[Collections.BOOKINGS].fail_writes = RuntimeError("unavailable")
        self.fill_form()
        await self.flow.submit()
        await self.pay("success", {})

        state = self.flow.state
        self.assertIsInstance(state, Result)
        self.assertEqual(state.completion, Completion.NOT_RECORDED)
        self.assertTrue(state.follow_up_required)
        self.assertIsNotNone(state.user_id)
        self.assertEqual(state.message, "Pembayaran sukses, tapi gagal menyimpan data. Hubungi admin.")
        self.assertNotIn("Pembayaran Gagal. Silakan coba lagi.", [n.message for n in self.flow.notifier.pending])
        self.assertIsNone(self.flow.client_storage.get_item("showWelcomeNotification"))

    async def test_abandon_blocks_further_actions(self):
        self.flow.abandon()
        with self.assertRaises(IllegalTransitionError):
            self.flow.increment_pax()
        self.assertEqual(self.flow.stage, Stage.DETAILS)


if __name__ == "__main__":
    unittest.main()
