"""
Invoice / Notification Dispatcher
=================================

Everything that happens *after* a payment has been reconciled and access
granted: invoice rendering and notification emails. None of it may change
the outcome of the reconciliation, so every collaborator call goes through
``BestEffortRunner``:

- the call runs on the payments worker pool with a bounded timeout
- exceptions and timeouts are logged and recorded as ``DownstreamFailure``
- the caller always gets a value back (the collaborator result or None)

Only plain snapshots (dataclasses, dicts of strings) are handed to the
worker threads. ORM reads happen before submission and ORM writes
(``EmailLog``, invoice reference) happen after, on the request thread.

Author: DSP Development Team
Date: 2025-09-03
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from .collaborators import (
    EmailAttachment,
    EmailSender,
    InvoiceData,
    InvoiceLineItem,
    RenderedInvoice,
)
from .exceptions import DownstreamError
from .models import EmailLog, Payment, PaymentMethod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownstreamFailure:
    label: str
    error: DownstreamError
    context: Dict[str, Any] = field(default_factory=dict)


class BestEffortRunner:
    """
    Fire-and-log executor for collaborator calls.

    With ``executor=None`` calls run inline on the current thread (still
    guarded); the timeout only applies when an executor is present.
    """

    def __init__(self, executor: Optional[Executor] = None, timeout: Optional[float] = None):
        self.executor = executor
        self.timeout = timeout
        self.failures: List[DownstreamFailure] = []

    def run(self, label: str, func: Callable, *args, context: Optional[Dict[str, Any]] = None, **kwargs):
        context = dict(context or {})
        try:
            if self.executor is None:
                return func(*args, **kwargs)
            future = self.executor.submit(func, *args, **kwargs)
            try:
                return future.result(timeout=self.timeout)
            except FutureTimeoutError:
                future.cancel()
                raise
        except FutureTimeoutError:
            logger.error("%s timed out after %ss (%s)", label, self.timeout, context)
            error = DownstreamError(
                f"{label} timed out after {self.timeout}s",
                error_code="downstream_timeout",
                details=context,
            )
        except Exception as e:
            logger.exception("%s failed (%s): %s", label, context, e)
            error = DownstreamError(f"{label} failed: {e}", details=context)

        self.failures.append(DownstreamFailure(label=label, error=error, context=context))
        return None

    @property
    def last_failure(self) -> Optional[DownstreamFailure]:
        return self.failures[-1] if self.failures else None


# ---------- snapshots ----------


def invoice_number_for(payment: Payment, issued_on=None) -> str:
    issued_on = issued_on or timezone.localdate()
    return f"INV-{issued_on:%Y%m%d}-{str(payment.pk).replace('-', '')[:8].upper()}"


def _customer_name(user) -> str:
    profile = getattr(user, "profile", None)
    if profile is not None and profile.display_name:
        return profile.display_name
    return user.get_full_name() or user.get_username()


def _transaction_reference(payment: Payment) -> str:
    return (
        payment.payhere_payment_id
        or payment.stripe_payment_intent_id
        or payment.stripe_session_id
        or payment.bank_reference
        or str(payment.pk)
    )


def build_invoice_data(payment: Payment, company: Optional[Dict[str, str]] = None) -> InvoiceData:
    issued_on = timezone.localdate()
    course = payment.course
    return InvoiceData(
        invoice_number=invoice_number_for(payment, issued_on),
        issued_on=issued_on,
        customer_name=_customer_name(payment.user),
        customer_email=payment.user.email,
        currency=payment.currency,
        total=payment.amount,
        payment_method=payment.get_method_display(),
        transaction_id=_transaction_reference(payment),
        items=(
            InvoiceLineItem(
                description=course.title,
                quantity=1,
                unit_price=payment.amount,
                total=payment.amount,
            ),
        ),
        company=dict(company if company is not None else getattr(settings, "INVOICE_COMPANY", {})),
    )


def build_template_data(payment: Payment, **extra) -> Dict[str, Any]:
    data = {
        "customer_name": _customer_name(payment.user),
        "course_title": payment.course.title,
        "course_id": payment.course_id,
        "payment_id": str(payment.pk),
        "amount": f"{payment.amount:,}",
        "currency": payment.currency,
        "payment_method": payment.get_method_display(),
        "transaction_id": _transaction_reference(payment),
        "date": timezone.localdate().isoformat(),
        "course_url": f"{settings.FRONTEND_URL}/courses/{payment.course_id}",
        "support_email": getattr(settings, "SUPPORT_EMAIL", settings.DEFAULT_FROM_EMAIL),
    }
    data.update(extra)
    return data


# ---------- dispatcher ----------


class NotificationDispatcher:
    def __init__(self, runner: BestEffortRunner, email_sender, invoice_renderer, store):
        self.runner = runner
        self.email_sender = email_sender
        self.invoice_renderer = invoice_renderer
        self.store = store

    def issue_invoice(self, payment: Payment) -> Optional[RenderedInvoice]:
        invoice = build_invoice_data(payment)
        rendered = self.runner.run(
            "invoice",
            self.invoice_renderer.render,
            invoice,
            context={"payment_id": str(payment.pk), "invoice_number": invoice.invoice_number},
        )
        if rendered is None:
            return None

        try:
            self.store.attach_invoice(payment, rendered.invoice_number, rendered.public_path)
        except DatabaseError:
            # the document exists and is still attached to the email
            logger.exception(
                "Could not store invoice %s on payment %s", rendered.invoice_number, payment.pk
            )
        return rendered

    def send_notification(
        self,
        payment: Payment,
        template_name: str,
        attachments: Optional[List[EmailAttachment]] = None,
        **extra,
    ) -> bool:
        recipient = payment.user.email
        if not recipient:
            logger.warning("User %s has no email; skipping %s", payment.user_id, template_name)
            return False

        template_data = build_template_data(payment, **extra)
        failures_before = len(self.runner.failures)
        sent = self.runner.run(
            f"email:{template_name}",
            self.email_sender.send,
            recipient,
            template_name,
            template_data,
            attachments,
            context={"payment_id": str(payment.pk), "to": recipient},
        )

        error_message = ""
        if sent is None and len(self.runner.failures) > failures_before:
            error_message = self.runner.last_failure.error.message
        self._log_email(payment, recipient, template_name, sent, error_message)
        return sent is not None

    def confirm_success(self, payment: Payment) -> Optional[RenderedInvoice]:
        """Invoice plus the success (or bank approval) email with the invoice attached."""
        rendered = self.issue_invoice(payment)

        attachments = None
        if rendered is not None and rendered.content:
            attachments = [
                EmailAttachment(
                    filename=rendered.filename or f"invoice-{rendered.invoice_number}.pdf",
                    content=rendered.content,
                    mimetype=rendered.mimetype,
                )
            ]

        template_name = (
            "bank_approval" if payment.method == PaymentMethod.BANK_TRANSFER else "payment_success"
        )
        self.send_notification(
            payment,
            template_name,
            attachments=attachments,
            invoice_number=rendered.invoice_number if rendered else "",
            invoice_url=rendered.public_path if rendered else "",
            admin_notes=payment.admin_notes,
        )
        return rendered

    def notify_failure(self, payment: Payment, reason: str = "") -> bool:
        return self.send_notification(payment, "payment_failed", reason=reason)

    def notify_rejection(self, payment: Payment, notes: str = "") -> bool:
        return self.send_notification(payment, "bank_rejection", reason=notes)

    def _log_email(self, payment, recipient, template_name, sent, error_message) -> None:
        try:
            EmailLog.objects.create(
                to_email=recipient,
                subject=sent.subject if sent else EmailSender.subject_for(template_name),
                template_name=template_name,
                success=sent is not None,
                error_message=error_message,
                message_id=sent.message_id if sent else "",
                payment=payment,
            )
        except DatabaseError:
            logger.exception("Could not write email log for payment %s", payment.pk)
