# backend/payments/gateway.py
"""
Stripe PaymentIntents for contract funding.

With STRIPE_ENABLED off the gateway runs in development mode: intents get a
`pi_dev_...` id and any non-empty reference counts as confirmed.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Tuple

import stripe
from django.conf import settings

log = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """The payment processor refused or could not be reached."""


def stripe_enabled() -> bool:
    return bool(
        getattr(settings, "STRIPE_ENABLED", False)
        and getattr(settings, "STRIPE_SECRET_KEY", None)
    )


def _configure() -> None:
    stripe.api_key = settings.STRIPE_SECRET_KEY
    api_version = getattr(settings, "STRIPE_API_VERSION", None)
    if api_version:
        stripe.api_version = api_version


def to_minor_units(amount) -> int:
    # Stripe wants paise/cents
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


class PaymentGateway:
    def create_intent(self, contract) -> Tuple[str, str]:
        """Return (intent_id, client_secret) for the contract's total."""
        if not stripe_enabled():
            return f"pi_dev_{contract.id}_{contract.version}", ""

        _configure()
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(contract.total_amount),
                currency=getattr(settings, "STRIPE_CURRENCY", "inr"),
                metadata={"contract_id": str(contract.id)},
            )
        except stripe.StripeError as e:
            log.error("PaymentIntent creation failed for contract %s: %s", contract.id, e)
            raise PaymentGatewayError(str(e)) from e

        log.info("PaymentIntent %s created for contract %s", intent.id, contract.id)
        return intent.id, intent.client_secret

    def resume_intent(self, contract) -> Tuple[str, str]:
        """
        Return (intent_id, client_secret) for the intent already recorded on
        the contract. A canceled intent can no longer be paid, so it is
        replaced by a new one.
        """
        if not stripe_enabled():
            return contract.payment_intent_id, ""

        _configure()
        try:
            intent = stripe.PaymentIntent.retrieve(contract.payment_intent_id)
        except stripe.StripeError as e:
            log.error("Could not retrieve PaymentIntent %s for contract %s: %s",
                      contract.payment_intent_id, contract.id, e)
            raise PaymentGatewayError(str(e)) from e

        if intent.get("status") == "canceled":
            log.info("PaymentIntent %s was canceled; creating a new one for contract %s",
                     intent.id, contract.id)
            return self.create_intent(contract)
        return intent.id, intent.client_secret

    def confirm(self, reference: str, contract_id) -> bool:
        """True when `reference` is a succeeded PaymentIntent for this contract."""
        if not reference:
            return False
        if not stripe_enabled():
            return True

        _configure()
        try:
            intent = stripe.PaymentIntent.retrieve(reference)
        except stripe.StripeError as e:
            log.warning("Could not retrieve PaymentIntent %s: %s", reference, e)
            return False

        metadata = intent.get("metadata") or {}
        if str(metadata.get("contract_id")) != str(contract_id):
            log.warning("PaymentIntent %s does not belong to contract %s", reference, contract_id)
            return False
        return intent.get("status") == "succeeded"
