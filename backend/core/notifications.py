# core/notifications.py

import logging
from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import render_to_string
from twilio.rest import Client as TwilioClient
from twilio.base.exceptions import TwilioRestException

logger = logging.getLogger(__name__)


def _twilio_client():
    sid = getattr(settings, "TWILIO_ACCOUNT_SID", None)
    token = getattr(settings, "TWILIO_AUTH_TOKEN", None)
    if not (sid and token and getattr(settings, "TWILIO_PHONE_NUMBER", None)):
        return None
    return TwilioClient(sid, token)


def send_notification(recipient, subject, template_prefix, context) -> bool:
    """
    E-mail the recipient (text + html rendered from `template_prefix`) and,
    when Twilio is configured and the recipient has a phone, send an SMS.
    Returns True if the e-mail went out. Delivery errors are logged, not raised.
    """
    email = getattr(recipient, "email", None)
    if not email:
        logger.warning("Attempted to send notification to recipient %s but they have no email.", recipient)
        return False

    text_body = render_to_string(f"{template_prefix}.txt", context)
    html_body = render_to_string(f"{template_prefix}.html", context)

    sent = False
    try:
        send_mail(
            subject=subject,
            message=text_body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[email],
            html_message=html_body,
            fail_silently=False,
        )
        sent = True
    except Exception as e:
        logger.error("Failed to send email for template %s to %s: %s", template_prefix, email, e)

    phone_number = getattr(recipient, "phone", None) or getattr(recipient, "phone_number", None)
    client = _twilio_client()
    if client and phone_number:
        sms_body = context.get("sms_text", text_body[:160])
        try:
            client.messages.create(
                body=sms_body,
                from_=settings.TWILIO_PHONE_NUMBER,
                to=str(phone_number),
            )
        except TwilioRestException as e:
            logger.error("Failed to send SMS to %s: %s", phone_number, e)

    return sent
