from django.urls import path

from payments.views import (
    InitiatePaymentView,
    PaymentStatusView,
    PaymentHistoryView,
    PaymentCallbackView,
)

app_name = "payments"

urlpatterns = [
    path("initiate/", InitiatePaymentView.as_view(), name="initiate"),
    path("status/", PaymentStatusView.as_view(), name="status"),
    path("history/", PaymentHistoryView.as_view(), name="history"),
    path("callback/", PaymentCallbackView.as_view(), name="callback"),
]
