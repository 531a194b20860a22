"""
Payment Record Store
====================

The only writer of ``Payment.status``. Every status change is a single
conditional UPDATE guarded by ``status = 'pending'``, so concurrent
deliveries for the same payment produce exactly one transition; every other
caller re-reads the row and takes the idempotent path.

Transition outcomes
-------------------
- pending -> target          : ``TransitionResult(changed=True)``
- already at the same target : ``TransitionResult(changed=False)`` (re-delivery)
- any other terminal         : ``ValidationError`` naming the current status

Author: DSP Development Team
Date: 2025-09-03
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Q
from django.utils import timezone

from .exceptions import ValidationError
from .models import Payment, PaymentMethod, PaymentStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    payment: Payment
    changed: bool


class PaymentStore:
    def create(
        self,
        *,
        user,
        course,
        amount: int,
        currency: str,
        method: str,
        **references,
    ) -> Payment:
        """
        Create a pending payment.

        Args:
            references: Optional external references such as
                ``stripe_session_id``, ``bank_reference`` or ``receipt_url``.
        """
        if method not in PaymentMethod.values:
            raise ValidationError(f"Unknown payment method: {method}")
        if amount is None or int(amount) <= 0:
            raise ValidationError("Amount must be greater than 0")

        payment = Payment.objects.create(
            user=user,
            course=course,
            amount=int(amount),
            currency=currency.upper(),
            method=method,
            status=PaymentStatus.PENDING,
            **references,
        )
        logger.info(
            "Created pending %s payment %s (user=%s, course=%s, amount=%s %s)",
            method,
            payment.id,
            user.pk,
            course.pk,
            payment.amount,
            payment.currency,
        )
        return payment

    def find_by_id(self, payment_id: Union[str, UUID, None]) -> Optional[Payment]:
        if not payment_id:
            return None
        try:
            return Payment.objects.select_related("user", "course").get(pk=payment_id)
        except (Payment.DoesNotExist, DjangoValidationError, ValueError):
            return None

    def find_by_external_reference(self, reference: Optional[str]) -> Optional[Payment]:
        """
        Look up a payment by any provider-side reference (Stripe session,
        Stripe PaymentIntent or PayHere payment id).
        """
        if not reference:
            return None
        return (
            Payment.objects.select_related("user", "course")
            .filter(
                Q(stripe_session_id=reference)
                | Q(stripe_payment_intent_id=reference)
                | Q(payhere_payment_id=reference)
            )
            .order_by("created_at")
            .first()
        )

    def transition_to_success(
        self,
        payment: Payment,
        external_payment_id: Optional[str] = None,
        approved_by=None,
        notes: Optional[str] = None,
    ) -> TransitionResult:
        now = timezone.now()
        fields = {
            "status": PaymentStatus.COMPLETED,
            "completed_at": now,
            "updated_at": now,
        }
        fields.update(self._external_reference(payment, external_payment_id))
        if approved_by is not None:
            fields["approved_by"] = approved_by
        if notes:
            fields["admin_notes"] = notes

        return self._transition(payment, PaymentStatus.COMPLETED, fields)

    def transition_to_failure(
        self,
        payment: Payment,
        reason: str = "",
        status: str = PaymentStatus.FAILED,
        external_payment_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> TransitionResult:
        if status not in PaymentStatus.failure_terminals():
            raise ValueError(f"{status!r} is not a failure status")

        fields = {
            "status": status,
            "failure_reason": (reason or "")[:500],
            "updated_at": timezone.now(),
        }
        fields.update(self._external_reference(payment, external_payment_id))
        if notes:
            fields["admin_notes"] = notes

        return self._transition(payment, status, fields)

    def attach_invoice(self, payment: Payment, invoice_number: str, invoice_url: str) -> Payment:
        Payment.objects.filter(pk=payment.pk).update(
            invoice_number=invoice_number,
            invoice_url=invoice_url,
            updated_at=timezone.now(),
        )
        payment.invoice_number = invoice_number
        payment.invoice_url = invoice_url
        return payment

    def attach_stripe_session(self, payment: Payment, session_id: str) -> Payment:
        Payment.objects.filter(pk=payment.pk).update(
            stripe_session_id=session_id, updated_at=timezone.now()
        )
        payment.stripe_session_id = session_id
        return payment

    # ---------- internals ----------

    @staticmethod
    def _external_reference(payment: Payment, external_payment_id: Optional[str]) -> dict:
        if not external_payment_id:
            return {}
        reference_field = {
            PaymentMethod.HOSTED_CHECKOUT: "payhere_payment_id",
            PaymentMethod.CARD_GATEWAY: "stripe_payment_intent_id",
        }.get(payment.method)
        return {reference_field: external_payment_id} if reference_field else {}

    def _transition(self, payment: Payment, target: str, fields: dict) -> TransitionResult:
        updated = Payment.objects.filter(pk=payment.pk, status=PaymentStatus.PENDING).update(**fields)
        payment.refresh_from_db()

        if updated:
            logger.info("Payment %s transitioned pending -> %s", payment.pk, target)
            return TransitionResult(payment=payment, changed=True)

        if payment.status == target:
            logger.info("Payment %s already %s; ignoring re-delivery", payment.pk, target)
            return TransitionResult(payment=payment, changed=False)

        logger.error(
            "Refusing transition of payment %s to %s: already %s",
            payment.pk,
            target,
            payment.status,
        )
        raise ValidationError(
            f"Payment cannot move to {target}. Current status: {payment.status}",
            current_status=payment.status,
            error_code="conflicting_transition",
        )
