"""
Payment Notification Signature Verification
===========================================

Authenticity checks for inbound payment notifications. Both checks run
before a handler touches the payment store.

PayHere (hosted checkout)
-------------------------
PayHere signs server-to-server notifications with an MD5 digest::

    hash1     = upper(md5(merchant_secret))
    signature = upper(md5(merchant_id + order_id + amount + currency + status_code + hash1))

The same construction without ``status_code`` produces the checkout hash the
browser posts when the payment starts. ``amount`` is always the two-decimal
string PayHere echoes back (e.g. ``"15000.00"``); the digest is computed over
the exact strings received, never over re-formatted values.

Status codes are mapped to ``PayHereStatus`` here so the rest of the code
never compares provider strings.

Stripe (card gateway)
---------------------
Stripe signs the raw request body (``Stripe-Signature`` header, HMAC-SHA256
with the endpoint secret and a timestamp). Verification runs on the exact
bytes received, before JSON parsing, through the official SDK.

Author: DSP Development Team
Date: 2025-09-03
"""

from __future__ import annotations

import enum
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import stripe
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .exceptions import AuthenticityError, ValidationError
from .models import PaymentStatus

logger = logging.getLogger(__name__)


# ---------- PayHere ----------


class PayHereStatus(enum.Enum):
    SUCCESS = "2"
    PENDING = "0"
    CANCELED = "-1"
    FAILED = "-2"
    CHARGED_BACK = "-3"

    @classmethod
    def parse(cls, raw: str) -> "PayHereStatus":
        try:
            return cls(str(raw).strip())
        except ValueError:
            raise ValidationError(
                f"Unknown PayHere status code: {raw!r}", error_code="unknown_status_code"
            ) from None

    def to_payment_status(self) -> Optional[str]:
        """
        Internal status this provider code resolves to, or None when the
        payment is still in flight.
        """
        if self is PayHereStatus.SUCCESS:
            return PaymentStatus.COMPLETED
        if self is PayHereStatus.PENDING:
            return None
        return PaymentStatus.FAILED


@dataclass(frozen=True)
class PayHereNotification:
    merchant_id: str
    order_id: str
    payment_id: str
    amount: str
    currency: str
    status_code: str
    signature: str
    method: str = ""
    status_message: str = ""

    @property
    def decimal_amount(self) -> Decimal:
        try:
            return Decimal(self.amount)
        except InvalidOperation:
            raise ValidationError(f"Invalid amount: {self.amount!r}") from None


def format_payhere_amount(amount) -> str:
    return f"{Decimal(amount):.2f}"


def payhere_hashed_secret(merchant_secret: str) -> str:
    return hashlib.md5(merchant_secret.encode("utf-8")).hexdigest().upper()


def payhere_checkout_hash(
    merchant_id: str, order_id: str, amount: str, currency: str, merchant_secret: str
) -> str:
    raw = f"{merchant_id}{order_id}{amount}{currency}{payhere_hashed_secret(merchant_secret)}"
    return hashlib.md5(raw.encode("utf-8")).hexdigest().upper()


def payhere_notification_signature(
    merchant_id: str,
    order_id: str,
    amount: str,
    currency: str,
    status_code: str,
    merchant_secret: str,
) -> str:
    raw = (
        f"{merchant_id}{order_id}{amount}{currency}{status_code}"
        f"{payhere_hashed_secret(merchant_secret)}"
    )
    return hashlib.md5(raw.encode("utf-8")).hexdigest().upper()


class PayHereVerifier:
    """
    Verifies PayHere notifications against the configured merchant.
    """

    def __init__(self, merchant_id: str, merchant_secret: str):
        if not merchant_id or not merchant_secret:
            raise ImproperlyConfigured("PayHere merchant id/secret are not configured")
        self.merchant_id = str(merchant_id)
        self._merchant_secret = merchant_secret

    @classmethod
    def from_settings(cls) -> "PayHereVerifier":
        return cls(settings.PAYHERE_MERCHANT_ID, settings.PAYHERE_MERCHANT_SECRET)

    def checkout_hash(self, order_id: str, amount: str, currency: str) -> str:
        return payhere_checkout_hash(
            self.merchant_id, order_id, amount, currency, self._merchant_secret
        )

    def verify(self, notification: PayHereNotification) -> PayHereStatus:
        """
        Check merchant and signature, then return the reported status.

        Raises:
            AuthenticityError: merchant mismatch or signature mismatch
            ValidationError: signature valid but status code unknown
        """
        if notification.merchant_id != self.merchant_id:
            logger.warning(
                "PayHere notification for foreign merchant %s (order=%s)",
                notification.merchant_id,
                notification.order_id,
            )
            raise AuthenticityError("Merchant mismatch")

        expected = payhere_notification_signature(
            notification.merchant_id,
            notification.order_id,
            notification.amount,
            notification.currency,
            notification.status_code,
            self._merchant_secret,
        )
        received = (notification.signature or "").upper()
        if not hmac.compare_digest(expected, received):
            logger.warning("Invalid PayHere signature for order %s", notification.order_id)
            raise AuthenticityError("Invalid payment signature")

        return PayHereStatus.parse(notification.status_code)

    def is_successful_payment(self, notification: PayHereNotification) -> bool:
        """True only for an authentic notification carrying the success code."""
        try:
            return self.verify(notification) is PayHereStatus.SUCCESS
        except (AuthenticityError, ValidationError):
            return False


# ---------- Stripe ----------


class StripeWebhookVerifier:
    """
    Verifies Stripe webhook deliveries and decodes the event envelope.
    """

    def __init__(self, endpoint_secret: str, tolerance: int = 300):
        if not endpoint_secret:
            raise ImproperlyConfigured("STRIPE_WEBHOOK_SECRET is not configured")
        self._endpoint_secret = endpoint_secret
        self.tolerance = tolerance

    @classmethod
    def from_settings(cls) -> "StripeWebhookVerifier":
        return cls(
            settings.STRIPE_WEBHOOK_SECRET,
            tolerance=getattr(settings, "STRIPE_WEBHOOK_TOLERANCE", 300),
        )

    def verify(self, payload: bytes, signature_header: Optional[str]) -> Dict[str, Any]:
        """
        Verify the signature over the raw body and return the decoded event.

        Raises:
            AuthenticityError: header missing or signature invalid
            ValidationError: authentic body that is not a JSON event object
        """
        if not signature_header:
            raise AuthenticityError("Missing Stripe-Signature header")

        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError:
            raise AuthenticityError("Webhook payload is not valid UTF-8") from None

        try:
            stripe.WebhookSignature.verify_header(
                text, signature_header, self._endpoint_secret, self.tolerance
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Stripe webhook signature verification failed: %s", e)
            raise AuthenticityError(f"Webhook Error: {e}") from None

        try:
            event = json.loads(text)
        except ValueError:
            raise ValidationError("Webhook payload is not valid JSON") from None

        if not isinstance(event, dict):
            raise ValidationError("Webhook payload is not an event object")
        return event
