"""
Lead notification store and tenant resolution.
"""
import logging
import re
from typing import Optional, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction

from calls.models import Lead, LeadNotification, TenantPhoneNumber

logger = logging.getLogger(__name__)

NON_DIGITS = re.compile(r'[^0-9]')


def _digits(phone: str) -> str:
    return NON_DIGITS.sub('', phone or '')


def resolve_tenant(receiver_phone: Optional[str]) -> str:
    """
    Resolve the owning tenant for a receiving phone number.

    Looks up the exact number first, then any mapping with the same digits.
    Falls back to settings.DEFAULT_TENANT_ID when nothing matches.
    """
    default_tenant = settings.DEFAULT_TENANT_ID
    if not receiver_phone:
        return default_tenant

    mapping = TenantPhoneNumber.objects.filter(phone_number=receiver_phone).first()
    if mapping is None:
        digits = _digits(receiver_phone)
        if digits:
            for candidate in TenantPhoneNumber.objects.filter(phone_number__endswith=digits[-4:]):
                if _digits(candidate.phone_number) == digits:
                    mapping = candidate
                    break

    if mapping is None:
        logger.info(f"No tenant mapped to {receiver_phone}, using default tenant {default_tenant}")
        return default_tenant
    return mapping.owner_id


def upsert_lead_notification(
    conversation_id: str,
    caller_phone: str,
    receiver_phone: Optional[str] = None,
    summary: Optional[str] = None,
    transcript: Optional[str] = None,
) -> Tuple[LeadNotification, bool]:
    """
    Upsert the LeadNotification for a conversation.

    Contact details are refreshed on re-delivery; summary and transcript are
    only filled in, never cleared. Status and lead link are left untouched.

    Returns:
        (notification, created)
    """
    owner_id = resolve_tenant(receiver_phone)
    defaults = {
        'caller_phone': caller_phone,
        'receiver_phone': receiver_phone,
        'owner_id': owner_id,
    }
    try:
        with transaction.atomic():
            notification, created = LeadNotification.objects.get_or_create(
                conversation_id=conversation_id,
                defaults={**defaults, 'summary': summary, 'transcript': transcript},
            )
    except IntegrityError:
        notification = LeadNotification.objects.get(conversation_id=conversation_id)
        created = False

    if not created:
        for name, value in defaults.items():
            setattr(notification, name, value)
        if summary and not notification.summary:
            notification.summary = summary
        if transcript and not notification.transcript:
            notification.transcript = transcript
        notification.save()

    logger.info(
        f"LeadNotification {notification.id} for {conversation_id} "
        f"{'created' if created else 'updated'}, tenant={owner_id}"
    )
    return notification, created


def link_lead(
    conversation_id: str,
    lead: Lead,
    summary: Optional[str] = None,
    transcript: Optional[str] = None,
) -> Optional[LeadNotification]:
    """
    Mark the conversation's notification as processed and attach the lead.

    Returns None when no notification exists for the conversation.
    """
    notification = LeadNotification.objects.filter(conversation_id=conversation_id).first()
    if notification is None:
        return None

    notification.lead = lead
    notification.status = LeadNotification.Status.PROCESSED
    if summary and not notification.summary:
        notification.summary = summary
    if transcript and not notification.transcript:
        notification.transcript = transcript
    notification.save()

    logger.info(f"LeadNotification {notification.id} linked to Lead {lead.id}")
    return notification
