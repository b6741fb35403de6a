"""
Reconciliation of local call state against the voice platform's call history.

Webhook delivery is not guaranteed, so a periodic sweep lists recent
conversations from the platform and repairs what is missing locally:

- a CallRecord without a summary gets its summary backfilled;
- a conversation with no WebhookEvent at all is a missed delivery and gets a
  synthetic event, a CallRecord and, on booking intent, a Lead flagged for
  callback;
- a conversation whose WebhookEvent failed or errored before any CallRecord
  was written is rebuilt the same way, reusing the existing event.

Re-running over overlapping windows is safe: once the synthetic WebhookEvent
exists the conversation is never treated as missed again.
"""
import logging
import time
from dataclasses import dataclass, asdict
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.utils import timezone

from calls.models import CallRecord, Lead, WebhookEvent
from calls.services import event_store, voice_client
from calls.services.call_records import (
    FAILED_PROCESSING_ANNOTATION,
    FAILED_PROCESSING_REASON,
    MISSED_DELIVERY_ANNOTATION,
    MISSED_DELIVERY_REASON,
    backfill_summary,
    create_lead_for_call,
    find_call_record,
    reconciled_lead_notes,
    upsert_call_record,
)
from calls.services.extraction import extract_call_details, extract_summary
from calls.services.intent import call_text, matched_phrases
from calls.services.notifications import resolve_tenant
from calls.services.voice_client import VoicePlatformError

logger = logging.getLogger(__name__)

REPAIRABLE_STATUSES = (
    WebhookEvent.ProcessingStatus.FAILED,
    WebhookEvent.ProcessingStatus.ERROR,
)


@dataclass
class ReconciliationReport:
    """Aggregate counters for one reconciliation run."""

    hours_back: int
    checked: int = 0
    reconciled: int = 0
    call_records_created: int = 0
    leads_created: int = 0
    summaries_backfilled: int = 0
    skipped_wrong_agent: int = 0
    errors: int = 0
    pages_fetched: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def _belongs_to_agent(conversation: dict, agent_id: Optional[str]) -> bool:
    return not agent_id or conversation.get('agent_id') == agent_id


def _backfill_summary(record: CallRecord, conversation_id: str, report: ReconciliationReport) -> None:
    detail = voice_client.get_conversation(conversation_id)
    summary = extract_summary(detail)
    if summary is None:
        logger.info(f"Conversation {conversation_id}: platform has no summary yet")
        return
    if backfill_summary(record, summary):
        report.summaries_backfilled += 1


def _fetch_agent_detail(
    conversation_id: str,
    agent_id: Optional[str],
    report: ReconciliationReport,
) -> Optional[dict]:
    """Fetch a conversation detail, or None when it belongs to another agent."""
    detail = voice_client.get_conversation(conversation_id)
    if not _belongs_to_agent(detail, agent_id):
        logger.warning(
            f"Detail mismatch: {conversation_id} has agent {detail.get('agent_id')}, "
            f"expected {agent_id}"
        )
        report.skipped_wrong_agent += 1
        return None
    return detail


def _rebuild_from_detail(
    event: WebhookEvent,
    conversation_id: str,
    detail: dict,
    report: ReconciliationReport,
    delivery_status: str,
    error_annotation: str,
    lead_reason: str,
) -> None:
    """Create the CallRecord and, on booking intent, the Lead from a conversation detail."""
    try:
        details = extract_call_details(detail)
        details['external_conversation_id'] = conversation_id
        details['owner_id'] = details['owner_id'] or resolve_tenant(details['receiver_phone'])
        phrases = matched_phrases(call_text(details['transcript'], details['summary']))

        record, created = upsert_call_record(
            details,
            source=CallRecord.Source.RECONCILIATION,
            delivery_status=delivery_status,
            error_annotation=error_annotation,
        )
        if created:
            report.call_records_created += 1

        if phrases and record.caller_phone:
            _, lead_created = create_lead_for_call(
                record,
                source=Lead.Source.VOICE_AGENT_RECONCILED,
                company_name=details.get('company_name'),
                mc_number=details.get('mc_number'),
                notes=reconciled_lead_notes(conversation_id, phrases, reason=lead_reason),
                requires_callback=True,
            )
            if lead_created:
                report.leads_created += 1
        elif phrases:
            logger.warning(
                f"Conversation {conversation_id}: booking intent detected "
                f"but caller phone unknown, no lead created"
            )
    except Exception as e:
        event_store.mark_failed(event, f"{e.__class__.__name__}: {e}")
        raise

    event_store.mark_processed(event)


def _heal_missed_delivery(conversation_id: str, agent_id: Optional[str], report: ReconciliationReport) -> None:
    detail = _fetch_agent_detail(conversation_id, agent_id, report)
    if detail is None:
        return

    event, created = event_store.create_reconciled_event(conversation_id, detail)
    if not created:
        # A live delivery landed while the detail was being fetched.
        logger.info(f"Conversation {conversation_id}: webhook arrived during sweep, skipping")
        return
    report.reconciled += 1
    logger.warning(f"Conversation {conversation_id}: missed webhook delivery, reconciling")

    _rebuild_from_detail(
        event,
        conversation_id,
        detail,
        report,
        delivery_status=CallRecord.DeliveryStatus.MISSED,
        error_annotation=MISSED_DELIVERY_ANNOTATION,
        lead_reason=MISSED_DELIVERY_REASON,
    )


def _repair_failed_processing(
    event: WebhookEvent,
    agent_id: Optional[str],
    report: ReconciliationReport,
) -> None:
    """Rebuild a call whose stored event failed before any CallRecord was written."""
    conversation_id = event.external_conversation_id
    detail = _fetch_agent_detail(conversation_id, agent_id, report)
    if detail is None:
        return

    report.reconciled += 1
    logger.warning(
        f"Conversation {conversation_id}: event {event.processing_status} without call record, "
        f"rebuilding from platform detail"
    )
    delivery_status = (
        CallRecord.DeliveryStatus.MISSED
        if event.event_type == WebhookEvent.EventType.RECONCILED
        else CallRecord.DeliveryStatus.SUCCESS
    )
    _rebuild_from_detail(
        event,
        conversation_id,
        detail,
        report,
        delivery_status=delivery_status,
        error_annotation=FAILED_PROCESSING_ANNOTATION.format(error=event.last_error or 'unknown error'),
        lead_reason=FAILED_PROCESSING_REASON,
    )


def reconcile(
    hours_back: Optional[int] = None,
    agent_id: Optional[str] = None,
    sleep_seconds: Optional[float] = None,
) -> ReconciliationReport:
    """
    Compare the platform's recent conversations with local state and repair gaps.

    Conversations are handled one at a time with a short sleep between them.
    A platform failure on one conversation is counted in the report and the
    sweep moves on.

    Args:
        hours_back: Lookback window (defaults to settings.RECONCILE_HOURS_BACK)
        agent_id: Only reconcile this agent's calls (defaults to settings.VOICE_AGENT_ID)
        sleep_seconds: Pause between conversations (defaults to settings.RECONCILE_SLEEP_SECONDS)

    Returns:
        ReconciliationReport with aggregate counters
    """
    hours_back = hours_back or settings.RECONCILE_HOURS_BACK
    agent_id = agent_id if agent_id is not None else settings.VOICE_AGENT_ID
    if sleep_seconds is None:
        sleep_seconds = settings.RECONCILE_SLEEP_SECONDS

    report = ReconciliationReport(hours_back=hours_back)
    since = timezone.now() - timedelta(hours=hours_back)
    logger.info(f"Reconciliation started: window {hours_back}h (since {since.isoformat()})")

    try:
        conversations, report.pages_fetched = voice_client.list_conversations(
            since,
            agent_id=agent_id or None,
            page_delay=sleep_seconds,
        )
    except VoicePlatformError as e:
        logger.error(f"Reconciliation aborted, conversation listing failed: {e}")
        report.errors += 1
        return report

    for index, conversation in enumerate(conversations):
        conversation_id = conversation.get('conversation_id')
        if not conversation_id:
            logger.warning(f"Listed conversation without id skipped: {conversation}")
            continue
        if not _belongs_to_agent(conversation, agent_id):
            logger.warning(
                f"Skipping conversation {conversation_id} - wrong agent: {conversation.get('agent_id')}"
            )
            report.skipped_wrong_agent += 1
            continue

        report.checked += 1
        try:
            record = find_call_record(conversation_id)
            if record is not None:
                if not record.summary:
                    _backfill_summary(record, conversation_id, report)
            else:
                event = event_store.get_event(conversation_id)
                if event is None:
                    _heal_missed_delivery(conversation_id, agent_id, report)
                elif event.processing_status in REPAIRABLE_STATUSES:
                    _repair_failed_processing(event, agent_id, report)
        except VoicePlatformError as e:
            logger.warning(f"Conversation {conversation_id} skipped, platform unavailable: {e}")
            report.errors += 1
        except Exception as e:
            logger.error(f"Error reconciling {conversation_id}: {e}", exc_info=True)
            report.errors += 1

        if sleep_seconds and index < len(conversations) - 1:
            time.sleep(sleep_seconds)

    logger.info(f"Reconciliation complete: {report.as_dict()}")
    return report
