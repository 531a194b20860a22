"""
Shared builders and fakes for the payments tests.
"""

import hashlib
import hmac
import json
import time
from itertools import count

from django.contrib.auth.models import User

from elearning.models import Course, Profile
from ..access import AccessGrantor
from ..collaborators import EmailSender, RenderedInvoice, SentEmail
from ..dispatch import BestEffortRunner, NotificationDispatcher
from ..models import Payment, PaymentMethod, PaymentStatus
from ..signatures import PayHereNotification, payhere_notification_signature
from ..store import PaymentStore

MERCHANT_ID = "1211149"
MERCHANT_SECRET = "MzE0NzE4OTQ2MjM0NTY3ODkw"
WEBHOOK_SECRET = "whsec_test_secret"

PAYMENT_SETTINGS = {
    "PAYHERE_MERCHANT_ID": MERCHANT_ID,
    "PAYHERE_MERCHANT_SECRET": MERCHANT_SECRET,
    "STRIPE_WEBHOOK_SECRET": WEBHOOK_SECRET,
    "STRIPE_WEBHOOK_TOLERANCE": 300,
}

_sequence = count(1)


def make_user(username=None, role=Profile.Role.STUDENT, email=None, name=""):
    username = username or f"user{next(_sequence)}"
    user = User.objects.create_user(
        username=username,
        email=f"{username}@example.com" if email is None else email,
        password="s3cret-pass",
    )
    profile = user.profile
    profile.role = role
    profile.name = name
    profile.save()
    return user


def make_admin(username=None):
    return make_user(username=username, role=Profile.Role.ADMIN, name="Admin User")


def make_course(title=None, price=15000, currency="LKR", status=Course.Status.PUBLISHED):
    return Course.objects.create(
        title=title or f"Course {next(_sequence)}",
        price=price,
        currency=currency,
        status=status,
    )


def make_payment(user, course, method=PaymentMethod.BANK_TRANSFER, status=PaymentStatus.PENDING, **fields):
    return Payment.objects.create(
        user=user,
        course=course,
        amount=fields.pop("amount", course.price),
        currency=fields.pop("currency", course.currency),
        method=method,
        status=status,
        **fields,
    )


# ---------- PayHere ----------


def payhere_notification(
    payment,
    status_code="2",
    amount=None,
    currency=None,
    merchant_id=MERCHANT_ID,
    secret=MERCHANT_SECRET,
    payhere_payment_id="320025071278",
    signature=None,
):
    amount = amount if amount is not None else f"{payment.amount:.2f}"
    currency = currency or payment.currency
    order_id = str(payment.pk)
    if signature is None:
        signature = payhere_notification_signature(
            merchant_id, order_id, amount, currency, status_code, secret
        )
    return PayHereNotification(
        merchant_id=merchant_id,
        order_id=order_id,
        payment_id=payhere_payment_id,
        amount=amount,
        currency=currency,
        status_code=status_code,
        signature=signature,
        method="VISA",
        status_message="Successfully completed the payment." if status_code == "2" else "",
    )


def payhere_form(notification):
    return {
        "merchant_id": notification.merchant_id,
        "order_id": notification.order_id,
        "payment_id": notification.payment_id,
        "payhere_amount": notification.amount,
        "payhere_currency": notification.currency,
        "status_code": notification.status_code,
        "md5sig": notification.signature,
        "method": notification.method,
        "status_message": notification.status_message,
    }


# ---------- Stripe ----------


def stripe_event(event_type, obj, event_id="evt_test_1"):
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def stripe_payload(event):
    return json.dumps(event).encode("utf-8")


def stripe_signature(payload, secret=WEBHOOK_SECRET, timestamp=None):
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


# ---------- collaborators ----------


class FakeEmailSender:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, to, template_name, template_data, attachments=None):
        if self.fail:
            raise RuntimeError("SMTP connection refused")
        self.sent.append(
            {
                "to": to,
                "template_name": template_name,
                "template_data": template_data,
                "attachments": attachments or [],
            }
        )
        return SentEmail(
            message_id=f"<{len(self.sent)}@test>",
            subject=EmailSender.subject_for(template_name),
        )

    def templates(self):
        return [email["template_name"] for email in self.sent]


class FakeInvoiceRenderer:
    def __init__(self, fail=False):
        self.fail = fail
        self.rendered = []

    def render(self, invoice):
        if self.fail:
            raise RuntimeError("invoice storage unavailable")
        self.rendered.append(invoice)
        return RenderedInvoice(
            invoice_number=invoice.invoice_number,
            public_path=f"/media/invoices/invoice-{invoice.invoice_number}.pdf",
            file_path=f"/tmp/invoice-{invoice.invoice_number}.pdf",
            content=b"%PDF-1.4 invoice",
            filename=f"invoice-{invoice.invoice_number}.pdf",
        )


def build_handler(handler_class, *verifier, email_sender=None, invoice_renderer=None):
    """
    Build a handler wired to fakes; returns (handler, email_sender,
    invoice_renderer, runner).
    """
    email_sender = email_sender or FakeEmailSender()
    invoice_renderer = invoice_renderer or FakeInvoiceRenderer()
    runner = BestEffortRunner()
    store = PaymentStore()
    dispatcher = NotificationDispatcher(runner, email_sender, invoice_renderer, store)
    handler = handler_class(*verifier, store, AccessGrantor(), dispatcher)
    return handler, email_sender, invoice_renderer, runner
