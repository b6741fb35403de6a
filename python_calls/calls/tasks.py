"""
Celery tasks for call completion processing and reconciliation.
"""
import logging
from typing import Optional

from celery import shared_task

from calls.models import WebhookEvent, CallRecord, Lead
from calls.services import event_store
from calls.services.call_records import (
    upsert_call_record,
    get_lead_for_call,
    create_lead_for_call,
)
from calls.services.extraction import extract_call_details
from calls.services.intent import call_text, matched_phrases
from calls.services.notifications import link_lead, resolve_tenant
from calls.services.reconciliation import reconcile

logger = logging.getLogger(__name__)


@shared_task
def process_call_completion(conversation_id: str) -> Optional[str]:
    """
    Turn a stored webhook delivery into a CallRecord and, on booking intent, a Lead.

    Workflow:
    1. Load the WebhookEvent for the conversation
    2. Extract structured call fields from the raw payload
    3. Upsert the CallRecord (existing records only get empty fields filled)
    4. Detect booking intent on transcript + summary; create a Lead if none exists
    5. Link the LeadNotification to the Lead
    6. Record the outcome on the WebhookEvent

    Failures are recorded on the WebhookEvent and never re-raised; they are
    not retried here.

    Args:
        conversation_id: External conversation id of the WebhookEvent

    Returns:
        The final processing status, or None if the event does not exist
    """
    # 1. Load event
    event = event_store.get_event(conversation_id)
    if event is None:
        logger.error(f"WebhookEvent {conversation_id} not found in database")
        return None

    logger.info(
        f"Processing conversation {conversation_id}, "
        f"current status: {event.processing_status}, attempts: {event.processing_attempts}"
    )

    if event.event_type == WebhookEvent.EventType.POST_CALL_ERROR:
        event_store.mark_error(event, 'Payload could not be parsed')
        logger.error(f"Conversation {conversation_id} ERROR: unparseable payload")
        return event.processing_status

    try:
        # 2. Extract
        details = extract_call_details(event.raw_payload)
        details['external_conversation_id'] = conversation_id
        details['owner_id'] = details['owner_id'] or resolve_tenant(details['receiver_phone'])

        # 3. Upsert call record
        record, created = upsert_call_record(
            details,
            source=CallRecord.Source.WEBHOOK,
            delivery_status=CallRecord.DeliveryStatus.SUCCESS,
        )

        # 4. Intent detection
        lead = get_lead_for_call(record)
        phrases = matched_phrases(call_text(record.transcript, record.summary))
        if phrases and lead is None:
            if record.caller_phone:
                lead, _ = create_lead_for_call(
                    record,
                    source=Lead.Source.VOICE_AGENT,
                    company_name=details.get('company_name'),
                    mc_number=details.get('mc_number'),
                    notes=f"Booking intent detected on call: {', '.join(phrases)}",
                )
            else:
                logger.warning(
                    f"Conversation {conversation_id}: booking intent detected "
                    f"but no caller phone, no lead created"
                )
        elif not phrases:
            logger.debug(f"Conversation {conversation_id}: no booking intent")

        # 5. Link notification
        if lead is not None:
            link_lead(conversation_id, lead, summary=record.summary, transcript=record.transcript)

        # 6. Success
        event_store.mark_processed(event)
        logger.info(
            f"Conversation {conversation_id} processed: CallRecord {record.id} "
            f"({'created' if created else 'existing'}), "
            f"lead={'none' if lead is None else lead.id}"
        )

    except Exception as e:
        logger.error(
            f"Conversation {conversation_id} FAILED: {e}",
            exc_info=True
        )
        try:
            event_store.mark_failed(event, f"{e.__class__.__name__}: {e}")
        except Exception as mark_error:
            logger.error(
                f"Could not record failure for {conversation_id}: {mark_error}",
                exc_info=True
            )

    return event.processing_status


@shared_task
def reconcile_calls(hours_back: Optional[int] = None) -> dict:
    """
    Scheduled reconciliation of local call state against the voice platform.

    Returns:
        The reconciliation report as a dict
    """
    report = reconcile(hours_back=hours_back)
    return report.as_dict()
