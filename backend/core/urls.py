# backend/core/urls.py
from __future__ import annotations

from django.contrib import admin
from django.http import HttpResponse
from django.urls import path, include

from payments.webhooks import stripe_webhook


def health(_request):
    return HttpResponse("ok", content_type="text/plain")


urlpatterns = [
    # Admin & health
    path("admin/", admin.site.urls),
    path("healthz", health, name="health"),

    # Auth (register / JWT login / refresh / me)
    path("api/auth/", include(("accounts.urls", "accounts"), namespace="accounts")),

    # Jobs & proposals
    path("api/", include(("marketplace.urls", "marketplace"), namespace="marketplace")),

    # Contract lifecycle
    path("api/contracts/", include(("contracts.urls", "contracts"), namespace="contracts")),

    # Payments (intent creation lives on the contract; this is the gateway config)
    path("api/payments/", include(("payments.urls", "payments"), namespace="payments")),

    # Stripe webhook
    path("stripe/webhook/", stripe_webhook, name="stripe-webhook"),
]
