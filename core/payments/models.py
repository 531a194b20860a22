"""
Payment Reconciliation Models

Models:
- Payment: One attempt by one user to pay for one course
- AccessGrant: Durable right of a user to access a course (one per user/course)
- EmailLog: Audit trail of every notification email attempt

Status lifecycle:
    pending -> completed | failed | rejected

``completed`` is the only success terminal. ``failed`` is a gateway outcome,
``rejected`` an admin decision on a bank transfer. Terminal states are sinks;
status is only ever changed through ``core.payments.store.PaymentStore``.

Author: DSP Development Team
Version: 1.0.0
"""

import uuid

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class PaymentStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    COMPLETED = "completed", _("Completed")
    FAILED = "failed", _("Failed")
    REJECTED = "rejected", _("Rejected")

    @classmethod
    def success_terminals(cls) -> frozenset:
        return frozenset({cls.COMPLETED})

    @classmethod
    def failure_terminals(cls) -> frozenset:
        return frozenset({cls.FAILED, cls.REJECTED})

    @classmethod
    def is_terminal(cls, value: str) -> bool:
        return value in cls.success_terminals() | cls.failure_terminals()


class PaymentMethod(models.TextChoices):
    HOSTED_CHECKOUT = "hosted_checkout", _("PayHere")
    CARD_GATEWAY = "card_gateway", _("Card (Stripe)")
    BANK_TRANSFER = "bank_transfer", _("Bank Transfer")


class Payment(models.Model):
    """
    A single payment attempt for a course.

    For PayHere the payment id doubles as the ``order_id`` sent to the
    provider; for Stripe the Checkout Session id is stored in
    ``stripe_session_id``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
        verbose_name=_("User"),
    )
    course = models.ForeignKey(
        "elearning.Course",
        on_delete=models.PROTECT,
        related_name="payments",
        verbose_name=_("Course"),
    )

    amount = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text=_("Amount in whole major currency units"),
    )
    currency = models.CharField(max_length=3, default="LKR")
    method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    status = models.CharField(
        max_length=10,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
    )

    # External references
    stripe_session_id = models.CharField(max_length=255, unique=True, null=True, blank=True)
    stripe_payment_intent_id = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    payhere_payment_id = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    bank_reference = models.CharField(max_length=255, blank=True, default="")
    receipt_url = models.URLField(max_length=500, blank=True, default="")

    # Outcome
    completed_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_payments",
        verbose_name=_("Approved By"),
    )
    admin_notes = models.TextField(blank=True, default="")
    failure_reason = models.CharField(max_length=500, blank=True, default="")

    invoice_number = models.CharField(max_length=64, blank=True, default="")
    invoice_url = models.CharField(max_length=500, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Payment")
        verbose_name_plural = _("Payments")
        ordering = ["-created_at"]
        db_table = "payments_payment"
        indexes = [
            models.Index(fields=["method", "status"], name="payment_method_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.get_method_display()} {self.amount} {self.currency} ({self.status})"

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, method={self.method}, status={self.status})>"

    @property
    def is_pending(self) -> bool:
        return self.status == PaymentStatus.PENDING

    @property
    def is_successful(self) -> bool:
        return self.status in PaymentStatus.success_terminals()

    @property
    def is_terminal(self) -> bool:
        return PaymentStatus.is_terminal(self.status)


class AccessGrant(models.Model):
    """
    A user's durable right to a course.

    The unique constraint on (user, course) is what makes granting
    idempotent under concurrent deliveries.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="course_access_grants",
        verbose_name=_("User"),
    )
    course = models.ForeignKey(
        "elearning.Course",
        on_delete=models.CASCADE,
        related_name="access_grants",
        verbose_name=_("Course"),
    )
    payment = models.ForeignKey(
        Payment,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="access_grants",
        help_text=_("Payment that first unlocked the course"),
    )
    access_granted = models.BooleanField(default=True)
    granted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = _("Access Grant")
        verbose_name_plural = _("Access Grants")
        db_table = "payments_access_grant"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "course"], name="unique_access_grant_per_user_course"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user} -> {self.course}"


class EmailLog(models.Model):
    to_email = models.EmailField()
    subject = models.CharField(max_length=255)
    template_name = models.CharField(max_length=100)
    success = models.BooleanField(default=False)
    error_message = models.TextField(blank=True, default="")
    message_id = models.CharField(max_length=255, blank=True, default="")
    payment = models.ForeignKey(
        Payment,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="email_logs",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Email Log")
        verbose_name_plural = _("Email Logs")
        ordering = ["-created_at"]
        db_table = "payments_email_log"

    def __str__(self) -> str:
        state = "sent" if self.success else "failed"
        return f"{self.template_name} to {self.to_email} ({state})"
