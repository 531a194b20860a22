"""
Payment Reconciliation Handlers
===============================

One handler per source of truth about a payment:

- ``PayHereCallbackHandler``       hosted-checkout server notification
- ``StripeWebhookHandler``         card-gateway webhook delivery
- ``BankTransferApprovalHandler``  admin approval of a bank transfer
- ``BankTransferRejectionHandler`` admin rejection of a bank transfer

Common shape
------------
1. authenticity / authorization, before any store access
2. payment lookup and eligibility checks, before any mutation
3. guarded status transition and, for a success, the access grant, both in
   one database transaction
4. invoice and emails through the dispatcher, only when step 3 actually
   changed the payment

A re-delivered notification therefore finds the payment already in its
target state, gets ``changed=False`` back and produces no second invoice,
grant or email.

Author: DSP Development Team
Date: 2025-09-03
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from django.db import transaction

from elearning.users.models import is_admin_user
from .access import AccessGrantor
from .collaborators import RenderedInvoice
from .dispatch import NotificationDispatcher
from .exceptions import AuthorizationError, NotFoundError, ValidationError
from .models import Payment, PaymentMethod, PaymentStatus
from .signatures import PayHereNotification, PayHereVerifier, StripeWebhookVerifier
from .store import PaymentStore, TransitionResult
from .webhook_events import CheckoutSessionCompleted, PaymentFailed, parse_event

logger = logging.getLogger(__name__)

CONFLICTING_TRANSITION = "conflicting_transition"


@dataclass(frozen=True)
class ReconciliationOutcome:
    """
    Result of processing one notification.

    ``action`` is one of: completed, failed, rejected, pending, duplicate,
    ignored.
    """

    action: str
    payment: Optional[Payment] = None
    changed: bool = False
    event_type: str = ""


@dataclass(frozen=True)
class ApprovalOutcome:
    payment: Payment
    invoice: Optional[RenderedInvoice] = None

    @property
    def invoice_number(self) -> str:
        return self.invoice.invoice_number if self.invoice else ""

    @property
    def invoice_url(self) -> str:
        return self.invoice.public_path if self.invoice else ""


class ReconciliationHandler:
    def __init__(
        self,
        store: PaymentStore,
        grantor: AccessGrantor,
        dispatcher: NotificationDispatcher,
    ):
        self.store = store
        self.grantor = grantor
        self.dispatcher = dispatcher

    def complete_and_grant(self, payment: Payment, **transition_kwargs) -> TransitionResult:
        """
        Move the payment to ``completed`` and grant the course in one
        transaction. The grant is re-applied on re-delivery, which is a
        no-op when it already exists.
        """
        with transaction.atomic():
            result = self.store.transition_to_success(payment, **transition_kwargs)
            self.grantor.grant(result.payment.user, result.payment.course, result.payment)
        return result

    @staticmethod
    def is_conflict(error: ValidationError) -> bool:
        return error.error_code == CONFLICTING_TRANSITION

    @staticmethod
    def check_amount(payment: Payment, amount: Decimal, currency: str) -> None:
        """Reject a provider-reported amount or currency that differs from the Payment."""
        if currency.upper() != payment.currency.upper():
            raise ValidationError(
                f"Currency mismatch for payment {payment.pk}",
                error_code="currency_mismatch",
                details={"expected": payment.currency, "received": currency},
            )
        if amount != Decimal(payment.amount):
            raise ValidationError(
                f"Amount mismatch for payment {payment.pk}",
                error_code="amount_mismatch",
                details={"expected": str(payment.amount), "received": str(amount)},
            )


# ---------- PayHere ----------


class PayHereCallbackHandler(ReconciliationHandler):
    def __init__(self, verifier: PayHereVerifier, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.verifier = verifier

    def handle(self, notification: PayHereNotification) -> ReconciliationOutcome:
        payhere_status = self.verifier.verify(notification)

        payment = self.store.find_by_id(notification.order_id)
        if payment is None:
            logger.warning("PayHere notification for unknown order %s", notification.order_id)
            raise NotFoundError.for_resource("Payment", notification.order_id)

        self.check_amount(payment, notification.decimal_amount, notification.currency)

        target = payhere_status.to_payment_status()
        if target is None:
            logger.info(
                "PayHere reports order %s still pending (%s)",
                payment.pk,
                notification.status_message or payhere_status.name,
            )
            return ReconciliationOutcome(action="pending", payment=payment)

        try:
            if target == PaymentStatus.COMPLETED:
                result = self.complete_and_grant(
                    payment, external_payment_id=notification.payment_id
                )
            else:
                reason = notification.status_message or f"PayHere status {payhere_status.name}"
                result = self.store.transition_to_failure(
                    payment, reason=reason, external_payment_id=notification.payment_id
                )
        except ValidationError as e:
            if not self.is_conflict(e):
                raise
            # Provider retries cannot resolve this; acknowledge and leave it for an admin.
            logger.error(
                "PayHere reported %s for order %s which is already %s",
                payhere_status.name,
                payment.pk,
                e.current_status,
            )
            return ReconciliationOutcome(action="ignored", payment=payment)

        if not result.changed:
            return ReconciliationOutcome(action="duplicate", payment=result.payment)

        if target == PaymentStatus.COMPLETED:
            self.dispatcher.confirm_success(result.payment)
        else:
            self.dispatcher.notify_failure(result.payment, result.payment.failure_reason)
        return ReconciliationOutcome(action=target, payment=result.payment, changed=True)



# ---------- Stripe ----------


class StripeWebhookHandler(ReconciliationHandler):
    def __init__(self, verifier: StripeWebhookVerifier, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.verifier = verifier

    def handle(self, payload: bytes, signature_header: Optional[str]) -> ReconciliationOutcome:
        event = parse_event(self.verifier.verify(payload, signature_header))

        if isinstance(event, CheckoutSessionCompleted):
            return self.on_session_completed(event)
        if isinstance(event, PaymentFailed):
            return self.on_payment_failed(event)

        logger.info("Unhandled Stripe event type %s (%s)", event.event_type, event.event_id)
        return ReconciliationOutcome(action="ignored", event_type=event.event_type)

    def on_session_completed(self, event: CheckoutSessionCompleted) -> ReconciliationOutcome:
        payment = self.store.find_by_external_reference(event.session_id)
        if payment is None:
            logger.warning("No payment for Stripe session %s (%s)", event.session_id, event.event_id)
            return ReconciliationOutcome(action="ignored", event_type=event.event_type)

        if not event.is_paid:
            logger.info(
                "Stripe session %s completed with payment_status=%s; waiting for async result",
                event.session_id,
                event.payment_status,
            )
            return ReconciliationOutcome(action="pending", payment=payment, event_type=event.event_type)

        if event.amount_total is not None:
            self.check_amount(payment, event.major_amount, event.currency or payment.currency)

        try:
            result = self.complete_and_grant(payment, external_payment_id=event.payment_intent_id)
        except ValidationError as e:
            if not self.is_conflict(e):
                raise
            logger.error(
                "Stripe session %s succeeded but payment %s is already %s",
                event.session_id,
                payment.pk,
                e.current_status,
            )
            return ReconciliationOutcome(action="ignored", payment=payment, event_type=event.event_type)

        if not result.changed:
            return ReconciliationOutcome(
                action="duplicate", payment=result.payment, event_type=event.event_type
            )

        self.dispatcher.confirm_success(result.payment)
        return ReconciliationOutcome(
            action=PaymentStatus.COMPLETED,
            payment=result.payment,
            changed=True,
            event_type=event.event_type,
        )

    def on_payment_failed(self, event: PaymentFailed) -> ReconciliationOutcome:
        payment = (
            self.store.find_by_external_reference(event.payment_intent_id)
            or self.store.find_by_external_reference(event.session_id)
            or self.store.find_by_id(event.payment_reference)
        )
        if payment is None:
            logger.warning(
                "No payment for failed Stripe intent %s (%s)", event.payment_intent_id, event.event_id
            )
            return ReconciliationOutcome(action="ignored", event_type=event.event_type)

        try:
            result = self.store.transition_to_failure(
                payment,
                reason=event.failure_message,
                external_payment_id=event.payment_intent_id,
            )
        except ValidationError as e:
            if not self.is_conflict(e):
                raise
            logger.error(
                "Stripe reported failure for payment %s which is already %s",
                payment.pk,
                e.current_status,
            )
            return ReconciliationOutcome(action="ignored", payment=payment, event_type=event.event_type)

        if not result.changed:
            return ReconciliationOutcome(
                action="duplicate", payment=result.payment, event_type=event.event_type
            )

        self.dispatcher.notify_failure(result.payment, event.failure_message)
        return ReconciliationOutcome(
            action=PaymentStatus.FAILED,
            payment=result.payment,
            changed=True,
            event_type=event.event_type,
        )


# ---------- Bank transfer (admin) ----------


class BankTransferDecisionHandler(ReconciliationHandler):
    verb = "decided"

    def authorize(self, principal, admin_id: Any = None) -> None:
        if not is_admin_user(principal):
            logger.warning("Non-admin %s attempted to %s a bank transfer", getattr(principal, "pk", None), self.verb)
            raise AuthorizationError("Admin access required")
        if admin_id is not None and str(admin_id) != str(principal.pk):
            raise AuthorizationError(
                "adminId does not match the authenticated admin",
                details={"admin_id": str(admin_id)},
            )

    def load_pending_transfer(self, payment_id) -> Payment:
        payment = self.store.find_by_id(payment_id)
        if payment is None:
            raise NotFoundError.for_resource("Payment", payment_id)
        if payment.method != PaymentMethod.BANK_TRANSFER:
            raise ValidationError(
                f"Only bank transfer payments can be {self.verb}",
                current_status=payment.status,
                error_code="not_bank_transfer",
            )
        if payment.status != PaymentStatus.PENDING:
            raise self.ineligible(payment.status)
        return payment

    def ineligible(self, current_status: str) -> ValidationError:
        return ValidationError(
            f"Payment cannot be {self.verb}. Current status: {current_status}",
            current_status=current_status,
            error_code="invalid_status",
        )


class BankTransferApprovalHandler(BankTransferDecisionHandler):
    verb = "approved"

    def approve(self, payment_id, principal, admin_id: Any = None, notes: str = "") -> ApprovalOutcome:
        self.authorize(principal, admin_id)
        payment = self.load_pending_transfer(payment_id)

        try:
            result = self.complete_and_grant(payment, approved_by=principal, notes=notes)
        except ValidationError as e:
            if not self.is_conflict(e):
                raise
            raise self.ineligible(e.current_status) from None

        if not result.changed:
            # another admin approved it between our read and our update
            raise self.ineligible(result.payment.status)

        logger.info("Bank transfer %s approved by admin %s", payment.pk, principal.pk)
        invoice = self.dispatcher.confirm_success(result.payment)
        return ApprovalOutcome(payment=result.payment, invoice=invoice)


class BankTransferRejectionHandler(BankTransferDecisionHandler):
    verb = "rejected"

    def reject(self, payment_id, principal, admin_id: Any = None, notes: str = "") -> Payment:
        self.authorize(principal, admin_id)
        payment = self.load_pending_transfer(payment_id)

        reason = notes or "Bank transfer could not be verified"
        try:
            result = self.store.transition_to_failure(
                payment, reason=reason, status=PaymentStatus.REJECTED, notes=notes
            )
        except ValidationError as e:
            if not self.is_conflict(e):
                raise
            raise self.ineligible(e.current_status) from None

        if not result.changed:
            raise self.ineligible(result.payment.status)

        logger.info("Bank transfer %s rejected by admin %s", payment.pk, principal.pk)
        self.dispatcher.notify_rejection(result.payment, reason)
        return result.payment


def outcome_summary(outcome: ReconciliationOutcome) -> Dict[str, Any]:
    return {
        "status": outcome.action,
        "payment_id": str(outcome.payment.pk) if outcome.payment else None,
    }
