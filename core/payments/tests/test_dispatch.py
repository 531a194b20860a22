import shutil
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest import mock

from django.core import mail
from django.core.files.storage import FileSystemStorage
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase

from ..collaborators import EmailAttachment, EmailSender, InvoiceRenderer
from ..dispatch import (
    BestEffortRunner,
    NotificationDispatcher,
    build_invoice_data,
    build_template_data,
    invoice_number_for,
)
from ..exceptions import DownstreamError
from ..models import EmailLog, PaymentMethod
from ..store import PaymentStore
from .helpers import FakeEmailSender, FakeInvoiceRenderer, make_course, make_payment, make_user


class BestEffortRunnerTests(SimpleTestCase):
    def test_inline_success(self):
        runner = BestEffortRunner()
        self.assertEqual(runner.run("add", lambda a, b: a + b, 2, 3), 5)
        self.assertEqual(runner.failures, [])

    def test_failure_is_recorded_not_raised(self):
        def explode():
            raise ConnectionError("smtp down")

        runner = BestEffortRunner()
        with self.assertLogs("core.payments.dispatch", level="ERROR"):
            result = runner.run("email:payment_success", explode, context={"payment_id": "p1"})

        self.assertIsNone(result)
        self.assertEqual(len(runner.failures), 1)
        failure = runner.failures[0]
        self.assertEqual(failure.label, "email:payment_success")
        self.assertIsInstance(failure.error, DownstreamError)
        self.assertIn("smtp down", failure.error.message)
        self.assertEqual(failure.context, {"payment_id": "p1"})

    def test_executor_result(self):
        with ThreadPoolExecutor(max_workers=1) as executor:
            runner = BestEffortRunner(executor, timeout=5)
            self.assertEqual(runner.run("upper", str.upper, "invoice"), "INVOICE")

    def test_timeout_is_recorded(self):
        release = threading.Event()
        with ThreadPoolExecutor(max_workers=1) as executor:
            runner = BestEffortRunner(executor, timeout=0.05)
            with self.assertLogs("core.payments.dispatch", level="ERROR"):
                result = runner.run("invoice", release.wait, 5)
            release.set()

        self.assertIsNone(result)
        self.assertEqual(runner.last_failure.error.error_code, "downstream_timeout")


class NotificationDispatcherTests(TestCase):
    def setUp(self):
        self.user = make_user(name="Nimal Perera")
        self.course = make_course(title="A/L Pure Mathematics", price=25000)
        self.runner = BestEffortRunner()
        self.email_sender = FakeEmailSender()
        self.invoice_renderer = FakeInvoiceRenderer()
        self.dispatcher = NotificationDispatcher(
            self.runner, self.email_sender, self.invoice_renderer, PaymentStore()
        )

    def test_invoice_data_snapshot(self):
        payment = make_payment(self.user, self.course, method=PaymentMethod.HOSTED_CHECKOUT)
        invoice = build_invoice_data(payment, company={"name": "Math Tutor"})

        self.assertEqual(invoice.invoice_number, invoice_number_for(payment, invoice.issued_on))
        self.assertTrue(invoice.invoice_number.startswith("INV-"))
        self.assertEqual(invoice.customer_name, "Nimal Perera")
        self.assertEqual(invoice.total, 25000)
        self.assertEqual(invoice.items[0].description, "A/L Pure Mathematics")
        self.assertEqual(invoice.company["name"], "Math Tutor")

    def test_confirm_success_attaches_invoice(self):
        payment = make_payment(self.user, self.course, method=PaymentMethod.CARD_GATEWAY)
        rendered = self.dispatcher.confirm_success(payment)

        payment.refresh_from_db()
        self.assertEqual(payment.invoice_number, rendered.invoice_number)
        self.assertEqual(payment.invoice_url, rendered.public_path)

        self.assertEqual(self.email_sender.templates(), ["payment_success"])
        email = self.email_sender.sent[0]
        self.assertEqual(email["to"], self.user.email)
        self.assertEqual(email["template_data"]["invoice_number"], rendered.invoice_number)
        self.assertEqual(len(email["attachments"]), 1)

        log = EmailLog.objects.get()
        self.assertTrue(log.success)
        self.assertEqual(log.payment, payment)
        self.assertEqual(log.message_id, "<1@test>")

    def test_bank_transfer_uses_approval_template(self):
        payment = make_payment(self.user, self.course, method=PaymentMethod.BANK_TRANSFER)
        self.dispatcher.confirm_success(payment)
        self.assertEqual(self.email_sender.templates(), ["bank_approval"])

    def test_invoice_failure_still_sends_email(self):
        self.dispatcher.invoice_renderer = FakeInvoiceRenderer(fail=True)
        payment = make_payment(self.user, self.course)

        with self.assertLogs("core.payments.dispatch", level="ERROR"):
            rendered = self.dispatcher.confirm_success(payment)

        self.assertIsNone(rendered)
        payment.refresh_from_db()
        self.assertEqual(payment.invoice_number, "")
        self.assertEqual(self.email_sender.sent[0]["attachments"], [])
        self.assertEqual(self.runner.failures[0].label, "invoice")

    def test_invoice_reference_write_failure_still_sends_email(self):
        payment = make_payment(self.user, self.course)

        with mock.patch.object(PaymentStore, "attach_invoice", side_effect=DatabaseError("database is locked")):
            with self.assertLogs("core.payments.dispatch", level="ERROR"):
                rendered = self.dispatcher.confirm_success(payment)

        self.assertIsNotNone(rendered)
        self.assertEqual(self.email_sender.templates(), ["payment_success"])
        self.assertEqual(self.email_sender.sent[0]["template_data"]["invoice_number"], rendered.invoice_number)
        self.assertEqual(len(self.email_sender.sent[0]["attachments"]), 1)

    def test_email_failure_is_logged(self):
        self.dispatcher.email_sender = FakeEmailSender(fail=True)
        payment = make_payment(self.user, self.course)

        with self.assertLogs("core.payments.dispatch", level="ERROR"):
            sent = self.dispatcher.notify_failure(payment, "card_declined")

        self.assertFalse(sent)
        log = EmailLog.objects.get()
        self.assertFalse(log.success)
        self.assertEqual(log.template_name, "payment_failed")
        self.assertIn("SMTP connection refused", log.error_message)

    def test_user_without_email_is_skipped(self):
        user = make_user(email="")
        payment = make_payment(user, self.course)

        self.assertFalse(self.dispatcher.notify_rejection(payment, "No slip"))
        self.assertEqual(self.email_sender.sent, [])
        self.assertFalse(EmailLog.objects.exists())


class CollaboratorTests(TestCase):
    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        self.user = make_user(name="Kamala Silva")
        self.course = make_course(title="Foundation Mathematics", price=12000)

    def test_invoice_renderer_writes_pdf(self):
        payment = make_payment(self.user, self.course)
        storage = FileSystemStorage(location=self.media_root, base_url="/media/")
        invoice = build_invoice_data(payment, company={"name": "Math Tutor", "phone": "+94 11 234 5678"})

        rendered = InvoiceRenderer(storage=storage).render(invoice)

        self.assertEqual(rendered.invoice_number, invoice.invoice_number)
        self.assertEqual(rendered.mimetype, "application/pdf")
        self.assertEqual(rendered.filename, f"invoice-{invoice.invoice_number}.pdf")
        self.assertEqual(rendered.public_path, f"/media/invoices/invoice-{invoice.invoice_number}.pdf")

        content = Path(rendered.file_path).read_bytes()
        self.assertTrue(content.startswith(b"%PDF-"))
        self.assertIn(b"%%EOF", content[-32:])
        self.assertEqual(rendered.content, content)

    def test_email_sender_uses_templates(self):
        payment = make_payment(self.user, self.course)

        sent = EmailSender(from_email="noreply@example.lk").send(
            self.user.email,
            "payment_success",
            build_template_data(payment, invoice_number="INV-1"),
            attachments=[EmailAttachment("invoice-INV-1.pdf", b"%PDF-1.4", "application/pdf")],
        )

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.subject, "Payment Confirmed - Course Access Granted")
        self.assertEqual(message.to, [self.user.email])
        self.assertEqual(message.extra_headers["Message-ID"], sent.message_id)
        self.assertIn("Foundation Mathematics", message.body)
        self.assertEqual(message.alternatives[0][1], "text/html")
        self.assertEqual(message.attachments[0][0], "invoice-INV-1.pdf")
