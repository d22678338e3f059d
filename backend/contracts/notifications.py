# backend/contracts/notifications.py
import logging

logger = logging.getLogger(__name__)

# Subject line per lifecycle event
EVENT_SUBJECTS = {
    "contract_created": "A new contract is waiting for you",
    "submitted_for_review": "Contract ready for your review",
    "accepted": "Your contract was accepted",
    "changes_requested": "Changes requested on your contract",
    "revised": "Your contract was revised",
    "payment_completed": "Contract payment received",
    "payment_reset": "Contract payment was reset",
    "signed": "Your contract has a new signature",
    "fully_signed": "Contract fully signed",
    "milestone_updated": "A milestone was updated",
    "completed": "Contract completed",
}


class CeleryNotificationSink:
    """
    Fire-and-forget: queue one notification task per recipient. A broker
    outage is logged and never reaches the lifecycle.
    """

    def notify(self, event, contract_id, recipients):
        from .tasks import task_send_contract_notification

        for user_id in recipients:
            try:
                task_send_contract_notification.delay(event, contract_id, user_id)
            except Exception as e:
                logger.error("Could not queue %s notification for contract %s to user %s: %s",
                             event, contract_id, user_id, e)
