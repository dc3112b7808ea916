"""
Outbound SMS notifications.

Sending is fire-and-forget: every public helper returns a bool and logs, but
never raises, so a failed text cannot undo the workflow change it reports.
"""
import logging
import re
from typing import List, Optional

import requests
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from . import module
from .models import PlatformSettings, ResolutionType, UserContact

logger = logging.getLogger(__name__)

SMS_MAX_LENGTH = module.SETTINGS['sms_max_length']

RESOLUTION_MESSAGES = {
    ResolutionType.REFUND: "a full refund will be issued",
    ResolutionType.REDELIVER: "your trainer will deliver the item again",
    ResolutionType.PARTIAL_REFUND: "a partial refund will be issued",
    ResolutionType.CLOSED: "the issue has been closed",
}


def normalize_phone_number(phone: str, default_country: Optional[str] = None) -> Optional[str]:
    """E.164 form of a UK or US number, or None when it cannot be read."""
    if not phone:
        return None
    country = default_country or getattr(settings, 'EARNINGS_DEFAULT_COUNTRY', 'GB')
    cleaned = re.sub(r'[^\d+]', '', phone)

    if cleaned.startswith('+') and len(cleaned) >= 11:
        return cleaned
    if cleaned.startswith('0') and len(cleaned) == 11:
        return '+44' + cleaned[1:]
    if len(cleaned) == 10 and cleaned.startswith('7') and country == 'GB':
        return '+44' + cleaned
    if len(cleaned) == 10 and not cleaned.startswith('0'):
        return '+1' + cleaned
    if len(cleaned) == 11 and cleaned.startswith('1'):
        return '+' + cleaned

    logger.warning("Could not normalize phone number %r", phone)
    return None


def send_sms(to: str, message: str) -> bool:
    if not to or not message:
        logger.warning("SMS missing recipient or message")
        return False

    phone = normalize_phone_number(to)
    if phone is None:
        return False
    if len(message) > SMS_MAX_LENGTH:
        logger.warning("SMS too long (%d chars, max %d)", len(message), SMS_MAX_LENGTH)
        return False

    url = getattr(settings, 'EARNINGS_SMS_API_URL', '')
    if not url:
        logger.warning("SMS gateway not configured; message to %s not sent", phone)
        return False

    try:
        response = requests.post(
            url,
            json={
                'phone': phone,
                'message': message,
                'sender': getattr(settings, 'EARNINGS_SMS_SENDER', ''),
            },
            headers={'Authorization': f"Bearer {getattr(settings, 'EARNINGS_SMS_API_KEY', '')}"},
            timeout=getattr(settings, 'EARNINGS_SMS_TIMEOUT', 10),
        )
    except requests.RequestException:
        logger.exception("SMS to %s failed", phone)
        return False

    if not response.ok:
        logger.warning("SMS to %s rejected (%s): %s", phone, response.status_code, response.text[:200])
        return False
    logger.info("SMS sent to %s", phone)
    return True


def send_after_commit(func, *args) -> None:
    """Run a notification once the surrounding transaction has committed."""
    transaction.on_commit(lambda: func(*args))


# =============================================================================
# Directory lookups
# =============================================================================

def _contact(user_id) -> Optional[UserContact]:
    if user_id is None:
        return None
    return UserContact.objects.filter(user_id=user_id).first()


def _first_name(contact: Optional[UserContact], fallback: str = 'there') -> str:
    if contact and contact.name:
        return contact.name.split()[0]
    return fallback


def _manager_contacts() -> List[UserContact]:
    return list(
        UserContact.objects.filter(role__in=['manager', 'coordinator']).exclude(phone='')
    )


# =============================================================================
# Delivery notifications
# =============================================================================

def notify_dispute_reported(delivery) -> int:
    """Alert the trainer and every manager with a phone. Returns texts sent."""
    try:
        if not PlatformSettings.get_settings().notify_disputes:
            return 0
        client = _contact(delivery.client_id)
        trainer = _contact(delivery.trainer_id)
        issue = (delivery.client_notes or '')[:200]
        sent = 0

        if trainer and trainer.phone:
            sent += send_sms(trainer.phone, (
                f"Hi {_first_name(trainer)}, {_first_name(client, 'your client')} reported an issue "
                f"with the delivery of \"{delivery.product_name}\": {issue}"
            ))
        for manager in _manager_contacts():
            sent += send_sms(manager.phone, (
                f"Delivery dispute #{delivery.pk}: {_first_name(client, 'a client')} reported an issue "
                f"with \"{delivery.product_name}\" (trainer {delivery.trainer_id}): {issue}"
            ))
        return sent
    except Exception:
        logger.exception("Dispute notification failed for delivery %s", delivery.pk)
        return 0


def notify_dispute_resolved(delivery) -> bool:
    try:
        if not PlatformSettings.get_settings().notify_resolutions:
            return False
        client = _contact(delivery.client_id)
        if not client or not client.phone:
            return False
        outcome = RESOLUTION_MESSAGES.get(delivery.resolution_type, "it has been resolved")
        message = (
            f"Hi {_first_name(client)}, your issue with \"{delivery.product_name}\" "
            f"has been reviewed: {outcome}."
        )
        if delivery.resolution_notes:
            message += f" Note: {delivery.resolution_notes}"
        return send_sms(client.phone, message)
    except Exception:
        logger.exception("Resolution notification failed for delivery %s", delivery.pk)
        return False


def notify_reschedule_requested(delivery) -> bool:
    try:
        trainer = _contact(delivery.trainer_id)
        if not trainer or not trainer.phone:
            return False
        client = _contact(delivery.client_id)
        proposed = timezone.localtime(delivery.reschedule_requested_date).strftime('%a %d %b')
        return send_sms(trainer.phone, (
            f"Hi {_first_name(trainer)}, {_first_name(client, 'your client')} asked to move the "
            f"delivery of \"{delivery.product_name}\" to {proposed}: {delivery.reschedule_reason}"
        ))
    except Exception:
        logger.exception("Reschedule request notification failed for delivery %s", delivery.pk)
        return False


def notify_reschedule_answered(delivery) -> bool:
    try:
        client = _contact(delivery.client_id)
        if not client or not client.phone:
            return False
        answer = 'approved' if delivery.reschedule_status == 'approved' else 'declined'
        message = (
            f"Hi {_first_name(client)}, your request to reschedule \"{delivery.product_name}\" "
            f"was {answer}."
        )
        if delivery.reschedule_response_note:
            message += f" {delivery.reschedule_response_note}"
        return send_sms(client.phone, message)
    except Exception:
        logger.exception("Reschedule answer notification failed for delivery %s", delivery.pk)
        return False


def notify_delivery_reminder(delivery) -> bool:
    """Remind the trainer to bring a product due tomorrow."""
    try:
        trainer = _contact(delivery.trainer_id)
        if not trainer or not trainer.phone:
            return False
        client = _contact(delivery.client_id)
        when = timezone.localtime(delivery.scheduled_date).strftime('%a %d %b')
        return send_sms(trainer.phone, (
            f"Hi {_first_name(trainer)}, reminder: you have a product delivery tomorrow ({when}). "
            f"Please bring \"{delivery.product_name}\" for {client.name if client else 'your client'}."
        ))
    except Exception:
        logger.exception("Reminder failed for delivery %s", delivery.pk)
        return False
