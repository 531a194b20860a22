"""
Payments Serializers

Input serializers validate the shape of provider callbacks and admin
requests before any handler runs; output serializers project Payment and
Course rows for API responses.
"""

from rest_framework import serializers

from elearning.models import Course
from .models import Payment
from .signatures import PayHereNotification


class PayHereNotificationSerializer(serializers.Serializer):
    """
    PayHere server-to-server notification (form-encoded).

    Values are kept as the exact strings received since the signature is
    computed over them.
    """

    merchant_id = serializers.CharField(max_length=64, trim_whitespace=False)
    order_id = serializers.CharField(max_length=64, trim_whitespace=False)
    payment_id = serializers.CharField(max_length=64, trim_whitespace=False)
    payhere_amount = serializers.RegexField(r"^\d+(\.\d{1,2})?$", max_length=20, trim_whitespace=False)
    payhere_currency = serializers.CharField(max_length=3, min_length=3, trim_whitespace=False)
    status_code = serializers.RegexField(r"^-?\d+$", max_length=3, trim_whitespace=False)
    md5sig = serializers.CharField(max_length=64, trim_whitespace=False)
    method = serializers.CharField(required=False, allow_blank=True, default="")
    status_message = serializers.CharField(required=False, allow_blank=True, default="")

    def to_notification(self) -> PayHereNotification:
        data = self.validated_data
        return PayHereNotification(
            merchant_id=data["merchant_id"],
            order_id=data["order_id"],
            payment_id=data["payment_id"],
            amount=data["payhere_amount"],
            currency=data["payhere_currency"],
            status_code=data["status_code"],
            signature=data["md5sig"],
            method=data.get("method", ""),
            status_message=data.get("status_message", ""),
        )


class BankTransferDecisionSerializer(serializers.Serializer):
    paymentId = serializers.UUIDField()
    adminId = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="", max_length=500)


class CourseCheckoutSerializer(serializers.Serializer):
    course_id = serializers.IntegerField(min_value=1)


class BankTransferSubmissionSerializer(CourseCheckoutSerializer):
    bank_reference = serializers.CharField(max_length=255)
    receipt_url = serializers.URLField(required=False, allow_blank=True, default="", max_length=500)


class PaymentSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source="course.title", read_only=True)
    user_email = serializers.EmailField(source="user.email", read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "user",
            "user_email",
            "course",
            "course_title",
            "amount",
            "currency",
            "method",
            "status",
            "bank_reference",
            "receipt_url",
            "admin_notes",
            "failure_reason",
            "approved_by",
            "completed_at",
            "invoice_number",
            "invoice_url",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CourseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Course
        fields = ["id", "title", "description", "price", "currency", "status"]
        read_only_fields = fields
