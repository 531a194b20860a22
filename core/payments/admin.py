"""
Payments Django Admin Configuration

Read-mostly views of payments, access grants and the email log. Status is
never edited directly; bank transfers are decided through the same handlers
the API uses, via admin actions.
"""

from django.contrib import admin, messages
from django.utils.translation import gettext_lazy as _

from . import container
from .exceptions import ReconciliationError
from .models import AccessGrant, EmailLog, Payment, PaymentMethod, PaymentStatus


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "user",
        "course",
        "amount",
        "currency",
        "method",
        "status",
        "created_at",
    )
    list_filter = ("status", "method", "currency")
    search_fields = (
        "id",
        "user__username",
        "user__email",
        "course__title",
        "stripe_session_id",
        "stripe_payment_intent_id",
        "payhere_payment_id",
        "bank_reference",
    )
    list_select_related = ("user", "course")
    ordering = ("-created_at",)
    readonly_fields = (
        "id",
        "user",
        "course",
        "amount",
        "currency",
        "method",
        "status",
        "stripe_session_id",
        "stripe_payment_intent_id",
        "payhere_payment_id",
        "completed_at",
        "approved_by",
        "failure_reason",
        "invoice_number",
        "invoice_url",
        "created_at",
        "updated_at",
    )
    actions = ["approve_bank_transfers", "reject_bank_transfers"]

    def _decide(self, request, queryset, handler, decide):
        done = 0
        for payment in queryset.filter(method=PaymentMethod.BANK_TRANSFER, status=PaymentStatus.PENDING):
            try:
                decide(handler, payment, request.user)
                done += 1
            except ReconciliationError as e:
                self.message_user(request, f"{payment.pk}: {e.message}", level=messages.ERROR)
        return done

    @admin.action(description=_("Approve selected bank transfers"))
    def approve_bank_transfers(self, request, queryset):
        done = self._decide(
            request,
            queryset,
            container.bank_transfer_approval_handler(),
            lambda handler, payment, user: handler.approve(payment.pk, user),
        )
        self.message_user(request, f"{done} bank transfer(s) approved.", level=messages.SUCCESS)

    @admin.action(description=_("Reject selected bank transfers"))
    def reject_bank_transfers(self, request, queryset):
        done = self._decide(
            request,
            queryset,
            container.bank_transfer_rejection_handler(),
            lambda handler, payment, user: handler.reject(payment.pk, user),
        )
        self.message_user(request, f"{done} bank transfer(s) rejected.", level=messages.SUCCESS)


@admin.register(AccessGrant)
class AccessGrantAdmin(admin.ModelAdmin):
    list_display = ("user", "course", "access_granted", "granted_at", "payment")
    list_filter = ("access_granted",)
    search_fields = ("user__username", "user__email", "course__title")
    list_select_related = ("user", "course", "payment")
    raw_id_fields = ("payment",)


@admin.register(EmailLog)
class EmailLogAdmin(admin.ModelAdmin):
    list_display = ("to_email", "template_name", "subject", "success", "created_at")
    list_filter = ("success", "template_name")
    search_fields = ("to_email", "subject", "message_id")
    readonly_fields = [f.name for f in EmailLog._meta.fields]
