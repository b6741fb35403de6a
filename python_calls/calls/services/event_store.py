"""
Event store: idempotent persistence of webhook deliveries, one row per conversation.
"""
import logging
from typing import Optional, Tuple

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from calls.models import WebhookEvent

logger = logging.getLogger(__name__)


def record_webhook_event(
    conversation_id: str,
    raw_payload: dict,
    event_type: str = WebhookEvent.EventType.POST_CALL,
) -> Tuple[WebhookEvent, bool]:
    """
    Upsert the WebhookEvent for a conversation.

    A re-delivery replaces the stored payload and puts the row back to
    pending; attempt counters and error history are kept.

    Returns:
        (event, created)
    """
    defaults = {
        'event_type': event_type,
        'raw_payload': raw_payload,
        'processing_status': WebhookEvent.ProcessingStatus.PENDING,
    }
    try:
        with transaction.atomic():
            event, created = WebhookEvent.objects.update_or_create(
                external_conversation_id=conversation_id,
                defaults=defaults,
            )
    except IntegrityError:
        # Another writer inserted the same conversation between our read and insert.
        logger.info(f"Concurrent insert for conversation {conversation_id}, merging")
        WebhookEvent.objects.filter(external_conversation_id=conversation_id).update(
            **defaults, updated_at=timezone.now()
        )
        event = WebhookEvent.objects.get(external_conversation_id=conversation_id)
        created = False

    logger.info(
        f"WebhookEvent {conversation_id} {'created' if created else 'merged'} "
        f"(type={event.event_type})"
    )
    return event, created


def create_reconciled_event(conversation_id: str, detail: dict) -> Tuple[WebhookEvent, bool]:
    """
    Insert a synthetic event for a conversation the webhook never delivered.

    Never overwrites an existing row: a live delivery that raced the
    sweeper wins.
    """
    try:
        with transaction.atomic():
            return WebhookEvent.objects.get_or_create(
                external_conversation_id=conversation_id,
                defaults={
                    'event_type': WebhookEvent.EventType.RECONCILED,
                    'raw_payload': detail,
                    'processing_status': WebhookEvent.ProcessingStatus.PENDING,
                },
            )
    except IntegrityError:
        return WebhookEvent.objects.get(external_conversation_id=conversation_id), False


def get_event(conversation_id: str) -> Optional[WebhookEvent]:
    return WebhookEvent.objects.filter(external_conversation_id=conversation_id).first()


def _record_attempt(event: WebhookEvent, status: str, error: Optional[str] = None) -> None:
    now = timezone.now()
    changes = {
        'processing_status': status,
        'last_attempt_at': now,
        'last_error': error,
        'processing_attempts': F('processing_attempts') + 1,
        'updated_at': now,
    }
    if status == WebhookEvent.ProcessingStatus.SUCCESS:
        changes['processed_at'] = now
    WebhookEvent.objects.filter(pk=event.pk).update(**changes)
    event.refresh_from_db()


def mark_processed(event: WebhookEvent) -> None:
    """Record a successful processing attempt."""
    _record_attempt(event, WebhookEvent.ProcessingStatus.SUCCESS)


def mark_failed(event: WebhookEvent, error: str) -> None:
    """Record a failed processing attempt. The event is not retried here."""
    _record_attempt(event, WebhookEvent.ProcessingStatus.FAILED, error)


def mark_error(event: WebhookEvent, error: str) -> None:
    """Record that the stored payload cannot be processed at all."""
    _record_attempt(event, WebhookEvent.ProcessingStatus.ERROR, error)
