"""
Stripe Webhook Event Parsing

Turns a verified Stripe event envelope into one of a small set of typed
variants. Handlers branch on the variant class, never on raw type strings.

Handled event types:
- ``checkout.session.completed``               -> CheckoutSessionCompleted
- ``checkout.session.async_payment_succeeded`` -> CheckoutSessionCompleted
- ``payment_intent.payment_failed``            -> PaymentFailed
- ``checkout.session.async_payment_failed``    -> PaymentFailed
- anything else                                -> UnknownEvent (acknowledged, ignored)

Author: DSP Development Team
Date: 2025-09-03
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from .exceptions import ValidationError

SESSION_SUCCEEDED_TYPES = frozenset(
    {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
)
INTENT_FAILED_TYPE = "payment_intent.payment_failed"
SESSION_FAILED_TYPE = "checkout.session.async_payment_failed"

PAID_STATUSES = frozenset({"paid", "no_payment_required"})


@dataclass(frozen=True)
class CheckoutSessionCompleted:
    event_id: str
    event_type: str
    session_id: str
    payment_status: str
    payment_intent_id: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    amount_total: Optional[int] = None
    currency: str = ""

    @property
    def is_paid(self) -> bool:
        return self.payment_status in PAID_STATUSES

    @property
    def major_amount(self) -> Optional[Decimal]:
        """``amount_total`` converted from minor units (cents) to whole units."""
        if self.amount_total is None:
            return None
        return Decimal(self.amount_total) / 100


@dataclass(frozen=True)
class PaymentFailed:
    event_id: str
    event_type: str
    payment_intent_id: Optional[str] = None
    session_id: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    failure_message: str = ""

    @property
    def payment_reference(self) -> Optional[str]:
        """Local payment id carried in metadata at checkout creation."""
        return self.metadata.get("payment_id")


@dataclass(frozen=True)
class UnknownEvent:
    event_id: str
    event_type: str


StripeEvent = Union[CheckoutSessionCompleted, PaymentFailed, UnknownEvent]


def _metadata(obj: Dict[str, Any]) -> Dict[str, str]:
    metadata = obj.get("metadata") or {}
    if not isinstance(metadata, dict):
        return {}
    return {str(k): str(v) for k, v in metadata.items()}


def _minor_amount(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _require_id(obj: Dict[str, Any], event_type: str) -> str:
    object_id = obj.get("id")
    if not object_id or not isinstance(object_id, str):
        raise ValidationError(f"{event_type} event without object id")
    return object_id


def parse_event(event: Dict[str, Any]) -> StripeEvent:
    event_type = event.get("type")
    if not event_type or not isinstance(event_type, str):
        raise ValidationError("Webhook event has no type")

    event_id = str(event.get("id") or "")
    data = event.get("data") or {}
    obj = data.get("object") if isinstance(data, dict) else None
    if not isinstance(obj, dict):
        obj = {}

    if event_type in SESSION_SUCCEEDED_TYPES:
        return CheckoutSessionCompleted(
            event_id=event_id,
            event_type=event_type,
            session_id=_require_id(obj, event_type),
            payment_status=str(obj.get("payment_status") or ""),
            payment_intent_id=obj.get("payment_intent") or None,
            metadata=_metadata(obj),
            amount_total=_minor_amount(obj.get("amount_total")),
            currency=str(obj.get("currency") or "").upper(),
        )

    if event_type == INTENT_FAILED_TYPE:
        last_error = obj.get("last_payment_error")
        if not isinstance(last_error, dict):
            last_error = {}
        return PaymentFailed(
            event_id=event_id,
            event_type=event_type,
            payment_intent_id=_require_id(obj, event_type),
            metadata=_metadata(obj),
            failure_message=str(last_error.get("message") or "Payment failed"),
        )

    if event_type == SESSION_FAILED_TYPE:
        return PaymentFailed(
            event_id=event_id,
            event_type=event_type,
            session_id=_require_id(obj, event_type),
            payment_intent_id=obj.get("payment_intent") or None,
            metadata=_metadata(obj),
            failure_message="Asynchronous payment failed",
        )

    return UnknownEvent(event_id=event_id, event_type=event_type)
