# backend/payments/webhooks.py
# Stripe webhook: contract funding via PaymentIntent success.

import logging

from django.conf import settings
from django.http import HttpResponse, HttpResponseBadRequest
from django.views.decorators.csrf import csrf_exempt

log = logging.getLogger(__name__)


def _webhook_secret() -> str:
    return (getattr(settings, "STRIPE_WEBHOOK_SECRET", None) or "").strip()


def handle_payment_succeeded(intent: dict, lifecycle=None):
    """
    Mark the contract named in the intent's metadata as paid, on behalf of
    its business. Replays come back as AlreadyPaid and change nothing.
    Returns the lifecycle Outcome, or None when the event names no contract.
    """
    from contracts.domain import Caller
    from contracts.lifecycle import build_lifecycle
    from contracts.models import SignerRole

    contract_id = (intent.get("metadata") or {}).get("contract_id")
    if not contract_id:
        log.info("payment_intent.succeeded %s has no contract_id", intent.get("id"))
        return None

    lifecycle = lifecycle or build_lifecycle()
    record = lifecycle.store.get(contract_id)
    if record is None:
        log.warning("Webhook received for non-existent contract ID=%s", contract_id)
        return None

    caller = Caller(user_id=record.business_id, role=SignerRole.BUSINESS)
    outcome = lifecycle.complete_payment(record.id, caller, intent.get("id"))
    if outcome.ok:
        log.info("Contract %s paid via PaymentIntent %s", record.id, intent.get("id"))
    else:
        log.info("PaymentIntent %s for contract %s not applied: %s",
                 intent.get("id"), record.id, outcome.failure.kind.value)
    return outcome


@csrf_exempt
def stripe_webhook(request):
    """
    - HEAD/GET: 200 OK with brief text (health checks)
    - POST: verify signature and process payment_intent.succeeded with
      metadata.contract_id
    Unexpected exceptions are logged and still answered with 200 so Stripe
    does not retry forever.
    """
    try:
        if request.method in ("GET", "HEAD"):
            return HttpResponse("Stripe webhook endpoint is live.", status=200, content_type="text/plain")

        if request.method != "POST":
            return HttpResponseBadRequest("Invalid method")

        secret = _webhook_secret()
        if not secret:
            log.warning("Stripe webhook called but STRIPE_WEBHOOK_SECRET not configured.")
            return HttpResponseBadRequest("Webhook secret not configured")

        import stripe

        payload = request.body
        sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")

        try:
            event = stripe.Webhook.construct_event(payload=payload, sig_header=sig_header, secret=secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            log.warning("Stripe webhook signature verification failed: %s", exc)
            return HttpResponseBadRequest(f"Webhook signature verification failed: {exc}")

        event_type = event.get("type")
        data_obj = (event.get("data") or {}).get("object") or {}

        if event_type == "payment_intent.succeeded":
            handle_payment_succeeded(data_obj)
        elif event_type == "payment_intent.payment_failed":
            log.info("PaymentIntent %s failed for contract %s",
                     data_obj.get("id"), (data_obj.get("metadata") or {}).get("contract_id"))
        else:
            log.debug("Ignoring Stripe event %s", event_type)

        return HttpResponse(status=200)

    except Exception as exc:
        log.exception("Unhandled error in stripe_webhook: %s", exc)
        return HttpResponse("ok", status=200, content_type="text/plain")
