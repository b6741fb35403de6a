"""
Call record and lead persistence.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q

from calls.models import CallRecord, Lead

logger = logging.getLogger(__name__)

# Share of the per-minute price attributed to the LLM
LLM_COST_SHARE = 0.3

FOUR_PLACES = Decimal('0.0001')

# Fields copied from extracted call details onto a CallRecord
CALL_RECORD_FIELDS = (
    'agent_id',
    'owner_id',
    'caller_phone',
    'receiver_phone',
    'direction',
    'started_at',
    'ended_at',
    'duration_seconds',
    'status',
    'outcome',
    'transcript',
    'summary',
    'recording_url',
    'ended_reason',
    'call_cost_credits',
    'call_cost_usd',
    'llm_cost_usd_total',
    'llm_cost_usd_per_min',
)

RECONCILED_LEAD_NOTES = (
    "Recovered via reconciliation: the post-call webhook for conversation {conversation_id} "
    "{reason}. Booking intent detected ({phrases}). "
    "Manual follow-up required: call the carrier back."
)

MISSED_DELIVERY_REASON = 'was never delivered'
FAILED_PROCESSING_REASON = 'was delivered but could not be processed'

MISSED_DELIVERY_ANNOTATION = (
    "Webhook delivery missed; call record created by reconciliation from the "
    "voice platform's conversation history."
)

FAILED_PROCESSING_ANNOTATION = (
    "Webhook delivered but processing failed ({error}); call record rebuilt by "
    "reconciliation from the voice platform's conversation history."
)


def _money(value: float) -> Decimal:
    return Decimal(str(value)).quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)


def estimate_costs(duration_seconds: int, call_cost_credits: Optional[float] = None) -> dict:
    """
    Estimate call costs in USD.

    Platform credits are used when reported; otherwise the cost is derived
    from the duration at settings.COST_PER_MINUTE.
    """
    minutes = (duration_seconds or 0) / 60
    estimated = minutes * settings.COST_PER_MINUTE
    call_cost = call_cost_credits * settings.COST_PER_CREDIT if call_cost_credits else estimated
    llm_total = estimated * LLM_COST_SHARE
    llm_per_min = llm_total / minutes if minutes > 0 else 0
    return {
        'call_cost_usd': _money(call_cost),
        'llm_cost_usd_total': _money(llm_total),
        'llm_cost_usd_per_min': _money(llm_per_min),
    }


def _is_empty(value) -> bool:
    return value is None or value == '' or value == 0


def find_call_record(conversation_id: str) -> Optional[CallRecord]:
    return (
        CallRecord.objects
        .filter(external_conversation_id=conversation_id)
        .order_by('created_at')
        .first()
    )


def upsert_call_record(
    details: dict,
    source: str = CallRecord.Source.WEBHOOK,
    delivery_status: str = CallRecord.DeliveryStatus.SUCCESS,
    error_annotation: Optional[str] = None,
) -> Tuple[CallRecord, bool]:
    """
    Create the CallRecord for a conversation or fill gaps in the existing one.

    An existing record only receives values for fields that are still empty;
    populated fields, including summary, are never overwritten.

    Returns:
        (record, created)
    """
    conversation_id = details['external_conversation_id']
    values = {name: details.get(name) for name in CALL_RECORD_FIELDS}
    if values['duration_seconds'] is None:
        values['duration_seconds'] = 0
    if values['call_cost_usd'] is None:
        values.update(estimate_costs(values['duration_seconds'], values['call_cost_credits']))

    record = find_call_record(conversation_id)
    if record is None:
        try:
            with transaction.atomic():
                record = CallRecord.objects.create(
                    external_conversation_id=conversation_id,
                    source=source,
                    webhook_delivery_status=delivery_status,
                    error_annotation=error_annotation,
                    **{name: value for name, value in values.items() if value is not None},
                )
        except IntegrityError:
            # Another worker inserted the record for this conversation first.
            logger.info(f"Concurrent CallRecord insert for {conversation_id}, merging")
            record = CallRecord.objects.get(external_conversation_id=conversation_id)
        else:
            logger.info(f"CallRecord {record.id} created for {conversation_id} (source={source})")
            return record, True

    filled = []
    for name, value in values.items():
        if name == 'summary':
            continue
        if _is_empty(getattr(record, name)) and not _is_empty(value):
            setattr(record, name, value)
            filled.append(name)
    if filled:
        record.save(update_fields=filled + ['updated_at'])
    backfill_summary(record, values['summary'])

    logger.info(
        f"CallRecord {record.id} for {conversation_id} already exists, "
        f"filled {len(filled)} empty field(s)"
    )
    return record, False


def backfill_summary(record: CallRecord, summary: Optional[str]) -> bool:
    """
    Set the summary only if the record has none yet.

    Returns:
        True if the summary was written
    """
    if not summary:
        return False
    updated = (
        CallRecord.objects
        .filter(pk=record.pk)
        .filter(Q(summary__isnull=True) | Q(summary=''))
        .update(summary=summary)
    )
    if updated:
        record.summary = summary
        logger.info(f"CallRecord {record.id}: summary backfilled")
    return bool(updated)


def get_lead_for_call(record: CallRecord) -> Optional[Lead]:
    return Lead.objects.filter(call_record=record).first()


def create_lead_for_call(
    record: CallRecord,
    source: str = Lead.Source.VOICE_AGENT,
    company_name: Optional[str] = None,
    mc_number: Optional[str] = None,
    notes: str = '',
    requires_callback: bool = False,
) -> Tuple[Lead, bool]:
    """
    Create the Lead for a call unless one already exists.

    Returns:
        (lead, created)
    """
    defaults = {
        'phone': record.caller_phone or '',
        'owner_id': record.owner_id,
        'company_name': company_name,
        'mc_number': mc_number,
        'source': source,
        'notes': notes,
        'requires_callback': requires_callback,
    }
    try:
        with transaction.atomic():
            lead, created = Lead.objects.get_or_create(call_record=record, defaults=defaults)
    except IntegrityError:
        lead, created = Lead.objects.get(call_record=record), False

    if created:
        logger.info(f"Lead {lead.id} created for CallRecord {record.id} (source={source})")
    return lead, created


def reconciled_lead_notes(conversation_id: str, phrases, reason: str = MISSED_DELIVERY_REASON) -> str:
    return RECONCILED_LEAD_NOTES.format(
        conversation_id=conversation_id,
        reason=reason,
        phrases=', '.join(f'"{phrase}"' for phrase in phrases) or 'unknown phrase',
    )
