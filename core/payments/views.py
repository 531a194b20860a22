"""
Payments API Views (core.payments)
==================================

REST endpoints of the payment reconciliation subsystem.

Provider callbacks (no user authentication, authenticity is the signature)
-------------------------------------------------------------------------
1. PayHereNotifyView
   - URL: /api/payments/payhere/notify/
   - Method: POST (form-encoded)
   - Purpose: PayHere server-to-server payment notification.

2. StripeWebhookView
   - URL: /api/payments/stripe/webhook/
   - Method: POST (raw JSON + ``Stripe-Signature``)
   - Purpose: Stripe event delivery. ``{"received": true}`` on success,
     400 on signature/payload errors, 500 when processing a recognised event
     fails so Stripe retries.

Admin
-----
3. BankTransferApproveView  - POST /api/payments/bank-transfer/approve/
4. BankTransferRejectView   - POST /api/payments/bank-transfer/reject/
   Body: {"paymentId": "<uuid>", "adminId": 1, "notes": "..."}

Students
--------
5. PayHereStartView          - POST /api/payments/payhere/start/
6. StripeCheckoutSessionView - POST /api/payments/stripe/checkout-session/
7. StripeConfigView          - GET  /api/payments/stripe/config/
8. BankTransferSubmitView    - POST /api/payments/bank-transfer/
9. CourseAccessView          - GET  /api/payments/courses/<id>/access/
10. MyCoursesView            - GET  /api/payments/my-courses/

Errors raised by the handlers are rendered by
``core.payments.exceptions.api_exception_handler``.

Author: DSP Development Team
Date: 2025-09-03
"""

import logging

import stripe
from django.conf import settings
from rest_framework import status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from elearning.models import Course
from . import container
from .access import accessible_courses, has_access
from .exceptions import NotFoundError, ReconciliationError
from .handlers import outcome_summary
from .serializers import (
    BankTransferDecisionSerializer,
    BankTransferSubmissionSerializer,
    CourseCheckoutSerializer,
    CourseSerializer,
    PayHereNotificationSerializer,
    PaymentSerializer,
)

logger = logging.getLogger(__name__)


class PayHereNotifyView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    parser_classes = [FormParser, MultiPartParser]

    handler_factory = staticmethod(container.payhere_callback_handler)

    def post(self, request):
        serializer = PayHereNotificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = self.handler_factory().handle(serializer.to_notification())
        return Response(outcome_summary(outcome), status=status.HTTP_200_OK)


class StripeWebhookView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    handler_factory = staticmethod(container.stripe_webhook_handler)

    def post(self, request):
        # signature covers the exact bytes; request.data must not be touched first
        payload = request.body
        signature = request.META.get("HTTP_STRIPE_SIGNATURE")

        try:
            outcome = self.handler_factory().handle(payload, signature)
        except ReconciliationError:
            raise
        except Exception:
            logger.exception("Stripe webhook handler failed")
            return Response(
                {"error": "Webhook handler failed"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        logger.info(
            "Stripe webhook %s processed: %s",
            outcome.event_type or "event",
            outcome.action,
        )
        return Response({"received": True}, status=status.HTTP_200_OK)


class BankTransferApproveView(APIView):
    permission_classes = [IsAuthenticated]

    handler_factory = staticmethod(container.bank_transfer_approval_handler)

    def post(self, request):
        serializer = BankTransferDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        outcome = self.handler_factory().approve(
            data["paymentId"],
            request.user,
            admin_id=data.get("adminId"),
            notes=data.get("notes", ""),
        )
        return Response(
            {
                "success": True,
                "message": "Payment approved successfully",
                "payment": PaymentSerializer(outcome.payment).data,
                "invoiceNumber": outcome.invoice_number,
                "invoiceUrl": outcome.invoice_url,
            },
            status=status.HTTP_200_OK,
        )


class BankTransferRejectView(APIView):
    permission_classes = [IsAuthenticated]

    handler_factory = staticmethod(container.bank_transfer_rejection_handler)

    def post(self, request):
        serializer = BankTransferDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        payment = self.handler_factory().reject(
            data["paymentId"],
            request.user,
            admin_id=data.get("adminId"),
            notes=data.get("notes", ""),
        )
        return Response(
            {
                "success": True,
                "message": "Payment rejected",
                "payment": PaymentSerializer(payment).data,
            },
            status=status.HTTP_200_OK,
        )


class PayHereStartView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CourseCheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        payment, checkout = container.payhere_checkout_service().start_payhere(
            request.user, serializer.validated_data["course_id"]
        )
        return Response(
            {"payment_id": str(payment.pk), **checkout},
            status=status.HTTP_201_CREATED,
        )


class StripeCheckoutSessionView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CourseCheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            payment, session = container.checkout_service().create_stripe_session(
                request.user, serializer.validated_data["course_id"]
            )
        except stripe.StripeError as e:
            return Response(
                {
                    "detail": "Stripe checkout could not be created.",
                    "stripe_error": getattr(e, "user_message", None) or str(e),
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        return Response(
            {"checkout_url": session.url, "id": session.id, "payment_id": str(payment.pk)},
            status=status.HTTP_200_OK,
        )


class StripeConfigView(APIView):
    """
    endpoint so the frontend can initialize Stripe.js
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({"publishableKey": settings.STRIPE_PUBLISHABLE_KEY}, status=200)


class BankTransferSubmitView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = BankTransferSubmissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        payment = container.checkout_service().submit_bank_transfer(
            request.user,
            data["course_id"],
            bank_reference=data["bank_reference"],
            receipt_url=data.get("receipt_url", ""),
        )
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


class CourseAccessView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, course_id: int):
        try:
            course = Course.objects.get(pk=course_id)
        except Course.DoesNotExist:
            raise NotFoundError.for_resource("Course", course_id) from None

        return Response({"course_id": course.pk, "has_access": has_access(request.user, course)})


class MyCoursesView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        courses = accessible_courses(request.user)
        return Response(CourseSerializer(courses, many=True).data)
