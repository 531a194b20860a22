"""
Checkout Initiation
===================

Creates the pending ``Payment`` rows that the reconciliation handlers later
resolve, one entry point per payment method:

- ``start_payhere``         returns the form fields for the PayHere hosted checkout
- ``create_stripe_session`` creates a Stripe Checkout Session
- ``submit_bank_transfer``  records a student's bank-transfer claim for admin review

The local payment id travels with every provider request (PayHere
``order_id``, Stripe session and PaymentIntent metadata) so notifications
can always be matched back to the row created here.

Author: DSP Development Team
Date: 2025-09-03
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

import stripe
from django.conf import settings

from elearning.models import Course
from .access import has_access
from .exceptions import NotFoundError, ValidationError
from .models import Payment, PaymentMethod
from .signatures import PayHereVerifier, format_payhere_amount
from .store import PaymentStore

logger = logging.getLogger(__name__)


class CheckoutService:
    def __init__(self, store: PaymentStore, payhere_verifier: PayHereVerifier = None):
        self.store = store
        self.payhere_verifier = payhere_verifier

    def purchasable_course(self, user, course_id) -> Course:
        try:
            course = Course.objects.get(pk=course_id)
        except (Course.DoesNotExist, ValueError, TypeError):
            raise NotFoundError.for_resource("Course", course_id) from None

        if not course.is_purchasable:
            raise ValidationError("Course is not available for purchase", error_code="course_unavailable")
        if has_access(user, course):
            raise ValidationError("You already have access to this course", error_code="already_owned")
        return course

    def start_payhere(self, user, course_id) -> Tuple[Payment, Dict[str, Any]]:
        if self.payhere_verifier is None:
            raise ValueError("PayHere checkout requires a verifier")

        course = self.purchasable_course(user, course_id)
        payment = self.store.create(
            user=user,
            course=course,
            amount=course.price,
            currency=course.currency,
            method=PaymentMethod.HOSTED_CHECKOUT,
        )

        order_id = str(payment.pk)
        amount = format_payhere_amount(payment.amount)
        fields = {
            "merchant_id": self.payhere_verifier.merchant_id,
            "return_url": settings.PAYHERE_RETURN_URL,
            "cancel_url": settings.PAYHERE_CANCEL_URL,
            "notify_url": settings.PAYHERE_NOTIFY_URL,
            "order_id": order_id,
            "items": course.title,
            "currency": payment.currency,
            "amount": amount,
            "first_name": user.first_name or user.get_username(),
            "last_name": user.last_name,
            "email": user.email,
            "hash": self.payhere_verifier.checkout_hash(order_id, amount, payment.currency),
        }
        return payment, {"checkout_url": settings.PAYHERE_CHECKOUT_URL, "fields": fields}

    def create_stripe_session(self, user, course_id):
        course = self.purchasable_course(user, course_id)
        payment = self.store.create(
            user=user,
            course=course,
            amount=course.price,
            currency=course.currency,
            method=PaymentMethod.CARD_GATEWAY,
        )

        metadata = {
            "payment_id": str(payment.pk),
            "course_id": str(course.pk),
            "user_id": str(user.pk),
        }
        params = dict(
            mode="payment",
            line_items=[
                {
                    "price_data": {
                        "currency": payment.currency.lower(),
                        "unit_amount": payment.amount * 100,
                        "product_data": {"name": course.title},
                    },
                    "quantity": 1,
                }
            ],
            customer_email=user.email or None,
            client_reference_id=str(payment.pk),
            success_url=(
                f"{settings.FRONTEND_URL}"
                f"/payment-success?session_id={{CHECKOUT_SESSION_ID}}&course={course.pk}"
            ),
            cancel_url=f"{settings.FRONTEND_URL}/payment-cancel?course={course.pk}",
            metadata=metadata,
            payment_intent_data={"metadata": metadata},
        )

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.error("Stripe checkout session for payment %s failed: %s", payment.pk, e)
            self.store.transition_to_failure(payment, reason="Checkout session could not be created")
            raise

        self.store.attach_stripe_session(payment, session.id)
        return payment, session

    def submit_bank_transfer(self, user, course_id, bank_reference: str, receipt_url: str = "") -> Payment:
        course = self.purchasable_course(user, course_id)
        return self.store.create(
            user=user,
            course=course,
            amount=course.price,
            currency=course.currency,
            method=PaymentMethod.BANK_TRANSFER,
            bank_reference=bank_reference,
            receipt_url=receipt_url or "",
        )
