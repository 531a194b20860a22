import shutil
import tempfile
from types import SimpleNamespace
from unittest import mock

import stripe
from django.core import mail
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from ..models import AccessGrant, EmailLog, Payment, PaymentMethod, PaymentStatus
from ..signatures import payhere_checkout_hash
from ..views import StripeWebhookView
from .helpers import (
    MERCHANT_ID,
    MERCHANT_SECRET,
    PAYMENT_SETTINGS,
    make_admin,
    make_course,
    make_payment,
    make_user,
    payhere_form,
    payhere_notification,
    stripe_event,
    stripe_payload,
    stripe_signature,
)
from elearning.models import Course


class PaymentsAPITestCase(TestCase):
    def setUp(self):
        media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, media_root, ignore_errors=True)
        settings_override = override_settings(MEDIA_ROOT=media_root, **PAYMENT_SETTINGS)
        settings_override.enable()
        self.addCleanup(settings_override.disable)

        self.client = APIClient()
        self.student = make_user(name="Test Student")
        self.admin = make_admin()
        self.course = make_course(title="O/L Mathematics Complete Course", price=15000)


class PayHereNotifyViewTests(PaymentsAPITestCase):
    url = "/api/payments/payhere/notify/"

    def setUp(self):
        super().setUp()
        self.payment = make_payment(self.student, self.course, method=PaymentMethod.HOSTED_CHECKOUT)

    def test_successful_notification(self):
        response = self.client.post(self.url, payhere_form(payhere_notification(self.payment)))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], PaymentStatus.COMPLETED)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)
        self.assertTrue(self.payment.invoice_url.endswith(".pdf"))
        self.assertTrue(AccessGrant.objects.filter(user=self.student, course=self.course).exists())

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, [self.student.email])
        self.assertEqual(len(mail.outbox[0].attachments), 1)
        self.assertEqual(mail.outbox[0].attachments[0][2], "application/pdf")
        self.assertTrue(EmailLog.objects.get().success)

    def test_repeated_notification(self):
        form = payhere_form(payhere_notification(self.payment))
        self.client.post(self.url, form)
        response = self.client.post(self.url, form)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], "duplicate")
        self.assertEqual(AccessGrant.objects.count(), 1)
        self.assertEqual(len(mail.outbox), 1)

    def test_invalid_signature(self):
        form = payhere_form(payhere_notification(self.payment, signature="0" * 32))
        response = self.client.post(self.url, form)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"]["error_code"], "invalid_signature")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.PENDING)

    def test_malformed_notification(self):
        form = payhere_form(payhere_notification(self.payment))
        del form["md5sig"]
        form["payhere_amount"] = "fifteen thousand"

        response = self.client.post(self.url, form)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_order(self):
        other = make_payment(self.student, self.course, method=PaymentMethod.HOSTED_CHECKOUT)
        form = payhere_form(payhere_notification(other))
        other.delete()

        response = self.client.post(self.url, form)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class StripeWebhookViewTests(PaymentsAPITestCase):
    url = "/api/payments/stripe/webhook/"

    def setUp(self):
        super().setUp()
        self.payment = make_payment(
            self.student,
            self.course,
            method=PaymentMethod.CARD_GATEWAY,
            stripe_session_id="cs_test_abc",
        )

    def post_event(self, event, header=None):
        payload = stripe_payload(event)
        return self.client.post(
            self.url,
            data=payload,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=header or stripe_signature(payload),
        )

    def test_checkout_completed(self):
        event = stripe_event(
            "checkout.session.completed",
            {"id": "cs_test_abc", "payment_status": "paid", "payment_intent": "pi_abc"},
        )
        response = self.post_event(event)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json(), {"received": True})
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.COMPLETED)
        self.assertTrue(AccessGrant.objects.filter(user=self.student, course=self.course).exists())

    def test_unrecognized_event(self):
        response = self.post_event(stripe_event("invoice.created", {"id": "in_1"}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json(), {"received": True})
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.PENDING)

    def test_bad_signature(self):
        event = stripe_event("checkout.session.completed", {"id": "cs_test_abc", "payment_status": "paid"})
        response = self.post_event(event, header="t=1,v1=deadbeef")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.PENDING)

    def test_missing_signature_header(self):
        payload = stripe_payload(stripe_event("invoice.created", {"id": "in_1"}))
        response = self.client.post(self.url, data=payload, content_type="application/json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_handler_crash_returns_500(self):
        handler = mock.Mock()
        handler.handle.side_effect = RuntimeError("database is locked")

        with mock.patch.object(StripeWebhookView, "handler_factory", return_value=handler):
            with self.assertLogs("core.payments.views", level="ERROR"):
                response = self.post_event(stripe_event("checkout.session.completed", {"id": "cs_test_abc"}))

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.json(), {"error": "Webhook handler failed"})


class BankTransferDecisionViewTests(PaymentsAPITestCase):
    approve_url = "/api/payments/bank-transfer/approve/"
    reject_url = "/api/payments/bank-transfer/reject/"

    def setUp(self):
        super().setUp()
        self.payment = make_payment(
            self.student, self.course, method=PaymentMethod.BANK_TRANSFER, bank_reference="HNB-5521"
        )

    def test_admin_approves(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            self.approve_url,
            {"paymentId": str(self.payment.pk), "adminId": self.admin.pk, "notes": "Slip verified"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["payment"]["status"], PaymentStatus.COMPLETED)
        self.assertEqual(body["payment"]["admin_notes"], "Slip verified")
        self.assertTrue(body["invoiceNumber"].startswith("INV-"))
        self.assertTrue(body["invoiceUrl"])
        self.assertEqual(AccessGrant.objects.filter(user=self.student, course=self.course).count(), 1)
        self.assertEqual(mail.outbox[0].subject, "Bank Transfer Approved")

    def test_student_is_forbidden(self):
        self.client.force_authenticate(self.student)
        response = self.client.post(
            self.approve_url, {"paymentId": str(self.payment.pk)}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()["error"]["error_code"], "forbidden")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.PENDING)

    def test_anonymous_is_unauthorized(self):
        response = self.client.post(
            self.approve_url, {"paymentId": str(self.payment.pk)}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_rejected_payment_reports_current_status(self):
        Payment.objects.filter(pk=self.payment.pk).update(status=PaymentStatus.REJECTED)
        self.client.force_authenticate(self.admin)

        response = self.client.post(
            self.approve_url, {"paymentId": str(self.payment.pk)}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        error = response.json()["error"]
        self.assertEqual(error["details"]["current_status"], PaymentStatus.REJECTED)
        self.assertEqual(error["message"], "Payment cannot be approved. Current status: rejected")

    def test_invalid_payment_id(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(self.approve_url, {"paymentId": "p1"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_rejects(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            self.reject_url,
            {"paymentId": str(self.payment.pk), "notes": "Reference not found in statement"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["payment"]["status"], PaymentStatus.REJECTED)
        self.assertFalse(AccessGrant.objects.exists())
        self.assertEqual(mail.outbox[0].subject, "Bank Transfer Not Approved")


class CheckoutViewTests(PaymentsAPITestCase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(self.student)

    def test_payhere_start(self):
        response = self.client.post(
            reverse("payments:payhere-start"), {"course_id": self.course.pk}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        payment = Payment.objects.get(pk=body["payment_id"])
        self.assertEqual(payment.method, PaymentMethod.HOSTED_CHECKOUT)
        self.assertEqual(payment.status, PaymentStatus.PENDING)

        fields = body["fields"]
        self.assertEqual(fields["order_id"], str(payment.pk))
        self.assertEqual(fields["amount"], "15000.00")
        self.assertEqual(fields["merchant_id"], MERCHANT_ID)
        self.assertEqual(
            fields["hash"],
            payhere_checkout_hash(MERCHANT_ID, str(payment.pk), "15000.00", "LKR", MERCHANT_SECRET),
        )

    def test_draft_course_cannot_be_bought(self):
        draft = make_course(status=Course.Status.DRAFT)
        response = self.client.post(
            reverse("payments:payhere-start"), {"course_id": draft.pk}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Payment.objects.exists())

    def test_owned_course_cannot_be_bought_again(self):
        AccessGrant.objects.create(user=self.student, course=self.course)
        response = self.client.post(
            reverse("payments:bank-transfer-submit"),
            {"course_id": self.course.pk, "bank_reference": "BOC-1"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["error"]["error_code"], "already_owned")

    def test_unknown_course(self):
        response = self.client.post(
            reverse("payments:bank-transfer-submit"),
            {"course_id": 9999, "bank_reference": "BOC-1"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    @mock.patch("stripe.checkout.Session.create")
    def test_stripe_checkout_session(self, create_session):
        create_session.return_value = SimpleNamespace(
            id="cs_test_new", url="https://checkout.stripe.com/c/pay/cs_test_new"
        )

        response = self.client.post(
            reverse("payments:stripe-checkout-session"), {"course_id": self.course.pk}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(body["id"], "cs_test_new")
        payment = Payment.objects.get(pk=body["payment_id"])
        self.assertEqual(payment.stripe_session_id, "cs_test_new")
        self.assertEqual(payment.method, PaymentMethod.CARD_GATEWAY)

        params = create_session.call_args.kwargs
        self.assertEqual(params["metadata"]["payment_id"], str(payment.pk))
        self.assertEqual(params["payment_intent_data"]["metadata"]["payment_id"], str(payment.pk))
        self.assertEqual(params["line_items"][0]["price_data"]["unit_amount"], 1500000)

    @mock.patch("stripe.checkout.Session.create")
    def test_stripe_error(self, create_session):
        create_session.side_effect = stripe.StripeError("Network unreachable")

        response = self.client.post(
            reverse("payments:stripe-checkout-session"), {"course_id": self.course.pk}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Payment.objects.get().status, PaymentStatus.FAILED)

    @override_settings(STRIPE_PUBLISHABLE_KEY="pk_test_storefront")
    def test_stripe_config_is_public(self):
        self.client.force_authenticate(None)
        response = self.client.get(reverse("payments:stripe-config"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json(), {"publishableKey": "pk_test_storefront"})

    def test_bank_transfer_then_approval_unlocks_course(self):
        response = self.client.post(
            reverse("payments:bank-transfer-submit"),
            {
                "course_id": self.course.pk,
                "bank_reference": "BOC-99812",
                "receipt_url": "https://files.example.lk/slip.jpg",
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()["status"], PaymentStatus.PENDING)

        access_url = reverse("payments:course-access", args=[self.course.pk])
        self.assertFalse(self.client.get(access_url).json()["has_access"])

        admin_client = APIClient()
        admin_client.force_authenticate(self.admin)
        approval = admin_client.post(
            reverse("payments:bank-transfer-approve"),
            {"paymentId": response.json()["id"]},
            format="json",
        )
        self.assertEqual(approval.status_code, status.HTTP_200_OK)

        self.assertTrue(self.client.get(access_url).json()["has_access"])
        my_courses = self.client.get(reverse("payments:my-courses")).json()
        self.assertEqual([course["id"] for course in my_courses], [self.course.pk])
