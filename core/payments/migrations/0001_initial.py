import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("elearning", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.PositiveIntegerField(help_text="Amount in whole major currency units", validators=[django.core.validators.MinValueValidator(1)])),
                ("currency", models.CharField(default="LKR", max_length=3)),
                ("method", models.CharField(choices=[("hosted_checkout", "PayHere"), ("card_gateway", "Card (Stripe)"), ("bank_transfer", "Bank Transfer")], max_length=20)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("completed", "Completed"), ("failed", "Failed"), ("rejected", "Rejected")], db_index=True, default="pending", max_length=10)),
                ("stripe_session_id", models.CharField(blank=True, max_length=255, null=True, unique=True)),
                ("stripe_payment_intent_id", models.CharField(blank=True, db_index=True, max_length=255, null=True)),
                ("payhere_payment_id", models.CharField(blank=True, db_index=True, max_length=255, null=True)),
                ("bank_reference", models.CharField(blank=True, default="", max_length=255)),
                ("receipt_url", models.URLField(blank=True, default="", max_length=500)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("admin_notes", models.TextField(blank=True, default="")),
                ("failure_reason", models.CharField(blank=True, default="", max_length=500)),
                ("invoice_number", models.CharField(blank=True, default="", max_length=64)),
                ("invoice_url", models.CharField(blank=True, default="", max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("approved_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="approved_payments", to=settings.AUTH_USER_MODEL, verbose_name="Approved By")),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="elearning.course", verbose_name="Course")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to=settings.AUTH_USER_MODEL, verbose_name="User")),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "db_table": "payments_payment",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["method", "status"], name="payment_method_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="AccessGrant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("access_granted", models.BooleanField(default=True)),
                ("granted_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="access_grants", to="elearning.course", verbose_name="Course")),
                ("payment", models.ForeignKey(blank=True, help_text="Payment that first unlocked the course", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="access_grants", to="payments.payment")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="course_access_grants", to=settings.AUTH_USER_MODEL, verbose_name="User")),
            ],
            options={
                "verbose_name": "Access Grant",
                "verbose_name_plural": "Access Grants",
                "db_table": "payments_access_grant",
                "constraints": [models.UniqueConstraint(fields=("user", "course"), name="unique_access_grant_per_user_course")],
            },
        ),
        migrations.CreateModel(
            name="EmailLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("to_email", models.EmailField(max_length=254)),
                ("subject", models.CharField(max_length=255)),
                ("template_name", models.CharField(max_length=100)),
                ("success", models.BooleanField(default=False)),
                ("error_message", models.TextField(blank=True, default="")),
                ("message_id", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("payment", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="email_logs", to="payments.payment")),
            ],
            options={
                "verbose_name": "Email Log",
                "verbose_name_plural": "Email Logs",
                "db_table": "payments_email_log",
                "ordering": ["-created_at"],
            },
        ),
    ]
