"""
Payments AppConfig
==================

Django application configuration for ``core.payments``.

The app owns the worker pool used for best-effort side effects (invoice
rendering, notification emails). The pool is created once per process in
``ready()`` and shut down at interpreter exit; handlers receive it through
``core.payments.container`` instead of reaching for a global.

Operational notes
-----------------
- ``ready()`` makes no DB or network calls.
- Pool size and per-task timeout come from ``PAYMENTS_SIDE_EFFECT_WORKERS``
  and ``PAYMENTS_SIDE_EFFECT_TIMEOUT``.
- The Stripe SDK is configured here once: API key and an HTTP client with
  ``STRIPE_REQUEST_TIMEOUT``.

Author: DSP Development Team
Date: 2025-09-03
"""

import atexit
from concurrent.futures import ThreadPoolExecutor

import stripe
from django.apps import AppConfig
from django.conf import settings


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.payments"
    label = "payments"
    verbose_name = "Payments"

    side_effect_executor: ThreadPoolExecutor = None

    def ready(self):
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.default_http_client = stripe.RequestsClient(
            timeout=getattr(settings, "STRIPE_REQUEST_TIMEOUT", 20)
        )

        workers = getattr(settings, "PAYMENTS_SIDE_EFFECT_WORKERS", 4)
        self.side_effect_executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="payments-side-effects"
        )
        atexit.register(self.side_effect_executor.shutdown, wait=False)
