"""
Wiring for the payments subsystem.

Handlers are plain objects built from explicitly constructed collaborators.
Views call the factories below; tests build handlers directly with fakes.
"""

from django.apps import apps
from django.conf import settings

from .access import AccessGrantor
from .checkout import CheckoutService
from .collaborators import EmailSender, InvoiceRenderer
from .dispatch import BestEffortRunner, NotificationDispatcher
from .handlers import (
    BankTransferApprovalHandler,
    BankTransferRejectionHandler,
    PayHereCallbackHandler,
    StripeWebhookHandler,
)
from .signatures import PayHereVerifier, StripeWebhookVerifier
from .store import PaymentStore


def build_runner() -> BestEffortRunner:
    config = apps.get_app_config("payments")
    return BestEffortRunner(
        executor=config.side_effect_executor,
        timeout=getattr(settings, "PAYMENTS_SIDE_EFFECT_TIMEOUT", 30),
    )


def build_dispatcher(store: PaymentStore, runner: BestEffortRunner = None) -> NotificationDispatcher:
    return NotificationDispatcher(
        runner=runner or build_runner(),
        email_sender=EmailSender(),
        invoice_renderer=InvoiceRenderer(),
        store=store,
    )


def _core_components():
    store = PaymentStore()
    return store, AccessGrantor(), build_dispatcher(store)


def payhere_callback_handler() -> PayHereCallbackHandler:
    return PayHereCallbackHandler(PayHereVerifier.from_settings(), *_core_components())


def stripe_webhook_handler() -> StripeWebhookHandler:
    return StripeWebhookHandler(StripeWebhookVerifier.from_settings(), *_core_components())


def bank_transfer_approval_handler() -> BankTransferApprovalHandler:
    return BankTransferApprovalHandler(*_core_components())


def bank_transfer_rejection_handler() -> BankTransferRejectionHandler:
    return BankTransferRejectionHandler(*_core_components())


def checkout_service() -> CheckoutService:
    return CheckoutService(PaymentStore())


def payhere_checkout_service() -> CheckoutService:
    return CheckoutService(PaymentStore(), payhere_verifier=PayHereVerifier.from_settings())
