# backend/payments/urls.py
from django.urls import path

from .views import PaymentConfigView

# NOTE: The Stripe webhook is mounted in core/urls.py at /stripe/webhook/

app_name = "payments"

urlpatterns = [
    path("config/", PaymentConfigView.as_view(), name="payments-config"),
]
