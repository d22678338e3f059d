# backend/payments/views.py
from __future__ import annotations

from django.conf import settings
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .gateway import stripe_enabled


class PaymentConfigView(APIView):
    """
    GET /api/payments/config/
    What the frontend needs to mount Stripe Elements.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response(
            {
                "enabled": stripe_enabled(),
                "publishable_key": getattr(settings, "STRIPE_PUBLIC_KEY", None) if stripe_enabled() else None,
                "currency": getattr(settings, "STRIPE_CURRENCY", "inr"),
            },
            status=status.HTTP_200_OK,
        )
