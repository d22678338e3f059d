# contracts/tasks.py

import logging

from celery import shared_task
from django.apps import apps
from django.conf import settings

from core.notifications import send_notification
from .notifications import EVENT_SUBJECTS

logger = logging.getLogger(__name__)


@shared_task(name="send_contract_notification")
def task_send_contract_notification(event: str, contract_id: int, user_id: int):
    """
    Tell one party about a contract lifecycle event by e-mail (and SMS when
    Twilio is configured).
    """
    Contract = apps.get_model("contracts", "Contract")
    User = apps.get_model(settings.AUTH_USER_MODEL)
    try:
        contract = Contract.objects.select_related("business", "student").get(pk=contract_id)
        recipient = User.objects.get(pk=user_id)
    except (Contract.DoesNotExist, User.DoesNotExist):
        logger.warning("Contract %s or user %s missing for %s notification.", contract_id, user_id, event)
        return False

    subject = EVENT_SUBJECTS.get(event, "Contract update")
    context = {
        "event": event,
        "subject": subject,
        "contract": contract,
        "recipient": recipient,
        "contract_url": f"{settings.FRONTEND_URL}/contracts/{contract.pk}",
        "sms_text": f"CampusGig: {subject} ({contract.title})",
    }
    sent = send_notification(recipient, subject, "emails/contract_event", context)
    if sent:
        logger.info("Sent %s notification for contract %s to user %s", event, contract_id, user_id)
    return sent
