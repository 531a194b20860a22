from django.urls import path

from . import views

app_name = "payments"

urlpatterns = [
    # Provider callbacks
    path("payhere/notify/", views.PayHereNotifyView.as_view(), name="payhere-notify"),
    path("stripe/webhook/", views.StripeWebhookView.as_view(), name="stripe-webhook"),
    # Checkout
    path("payhere/start/", views.PayHereStartView.as_view(), name="payhere-start"),
    path(
        "stripe/checkout-session/",
        views.StripeCheckoutSessionView.as_view(),
        name="stripe-checkout-session",
    ),
    path("stripe/config/", views.StripeConfigView.as_view(), name="stripe-config"),
    path("bank-transfer/", views.BankTransferSubmitView.as_view(), name="bank-transfer-submit"),
    # Admin
    path(
        "bank-transfer/approve/",
        views.BankTransferApproveView.as_view(),
        name="bank-transfer-approve",
    ),
    path(
        "bank-transfer/reject/",
        views.BankTransferRejectView.as_view(),
        name="bank-transfer-reject",
    ),
    # Access
    path("courses/<int:course_id>/access/", views.CourseAccessView.as_view(), name="course-access"),
    path("my-courses/", views.MyCoursesView.as_view(), name="my-courses"),
]
