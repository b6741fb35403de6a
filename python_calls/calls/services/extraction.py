"""
Extraction service for voice platform payloads.

The platform reports the same logical value under different keys depending on
the webhook version and on whether the payload came from a webhook delivery or
from the conversation detail API. Each value is therefore described by an
ordered list of extractor functions; the first one returning a non-empty value
wins.
"""
import logging
import time
import uuid
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Callable, Iterable, List, Optional

from django.utils.dateparse import parse_datetime

logger = logging.getLogger(__name__)

Extractor = Callable[[dict], Any]

FALLBACK_ID_PREFIX = 'unknown_'

DEFAULT_OUTCOME = 'completed'


def get_nested_value(data: dict, path: str, default=None):
    """
    Get a value from a nested dictionary using dot notation.

    Args:
        data: The dictionary to search
        path: Dot-separated path (e.g., 'data.metadata.phone_call')
        default: Default value if path not found

    Returns:
        The value at the path or default
    """
    keys = path.split('.')
    value = data
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def field(path: str) -> Extractor:
    """Build an extractor reading a dot-separated path."""
    def extract(payload: dict) -> Any:
        return get_nested_value(payload, path)
    extract.__name__ = f"field({path})"
    return extract


def fields(*paths: str) -> List[Extractor]:
    return [field(path) for path in paths]


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict)):
        return bool(value)
    return True


def first_present(extractors: Iterable[Extractor], payload: dict) -> Any:
    """
    Run extractors in priority order and return the first non-empty result.

    Strings are returned stripped. Returns None when nothing matched.
    """
    if not isinstance(payload, dict):
        return None
    for extractor in extractors:
        value = extractor(payload)
        if is_present(value):
            return value.strip() if isinstance(value, str) else value
    return None


def _analysis(payload: dict) -> dict:
    analysis = first_present(
        fields('analysis', 'parameters.analysis', 'data.analysis'),
        payload,
    )
    return analysis if isinstance(analysis, dict) else {}


def _collected_flag(results: dict, key: str) -> bool:
    """Read a data collection result, which is either a raw value or a {'value': ...} dict."""
    entry = results.get(key)
    if isinstance(entry, dict):
        entry = entry.get('value')
    if isinstance(entry, str):
        return entry.strip().lower() in ('true', 'yes', '1')
    return bool(entry)


def outcome_from_analysis(payload: dict) -> Optional[str]:
    results = _analysis(payload).get('data_collection_results')
    if not isinstance(results, dict):
        return None
    if _collected_flag(results, 'callback_requested'):
        return 'callback_requested'
    if _collected_flag(results, 'declined'):
        return 'declined'
    if _collected_flag(results, 'confirmed'):
        return 'confirmed'
    return None


OUTCOME_LABELS = {
    'callback_requested': 'Caller requested a callback.',
    'declined': 'Caller declined the offer.',
    'confirmed': 'Caller confirmed the booking.',
}


def synthesize_outcome_summary(payload: dict) -> Optional[str]:
    """Build a one-line summary from structured analysis data, if there is any."""
    analysis = _analysis(payload)
    parts = []

    outcome = outcome_from_analysis(payload)
    if outcome:
        parts.append(OUTCOME_LABELS[outcome])

    call_successful = analysis.get('call_successful')
    if call_successful in (True, 'success'):
        parts.append('Call marked successful by the agent.')
    elif call_successful in (False, 'failure'):
        parts.append('Call marked unsuccessful by the agent.')

    if not parts:
        return None
    return 'Call outcome: ' + ' '.join(parts)


CONVERSATION_ID_EXTRACTORS = fields(
    'conversation_id',
    'parameters.conversation_id',
    'call.conversation_id',
    'parameters.call.conversation_id',
    'data.conversation_id',
    'call_id',
    'parameters.call_id',
    'call.call_id',
)

AGENT_ID_EXTRACTORS = fields(
    'agent_id',
    'parameters.agent_id',
    'data.agent_id',
)

CALLER_PHONE_EXTRACTORS = fields(
    'callback_phone',
    'parameters.callback_phone',
    'contact_number',
    'parameters.contact_number',
    'phone',
    'parameters.phone',
    'caller_number',
    'parameters.caller_number',
    'phone_number',
    'parameters.phone_number',
    'from_number',
    'parameters.from_number',
    'caller_id',
    'parameters.caller_id',
    'call.from_number',
    'call.caller_id',
    'call.phone_number',
    'metadata.phone_call.external_number',
    'data.metadata.phone_call.external_number',
)

RECEIVER_PHONE_EXTRACTORS = fields(
    'to_number',
    'parameters.to_number',
    'receiver_number',
    'parameters.receiver_number',
    'agent_number',
    'parameters.agent_number',
    'call.to_number',
    'metadata.phone_call.agent_number',
    'data.metadata.phone_call.agent_number',
)

DIRECTION_EXTRACTORS = fields(
    'direction',
    'parameters.direction',
    'call.direction',
    'metadata.phone_call.direction',
    'data.metadata.phone_call.direction',
)

STARTED_AT_EXTRACTORS = fields(
    'started_at',
    'parameters.started_at',
    'call.started_at',
    'call.start_time',
    'start_time_unix_secs',
    'metadata.start_time_unix_secs',
    'data.metadata.start_time_unix_secs',
)

ENDED_AT_EXTRACTORS = fields(
    'ended_at',
    'parameters.ended_at',
    'call.ended_at',
    'call.end_time',
    'end_time_unix_secs',
)

DURATION_EXTRACTORS = fields(
    'call.call_duration_secs',
    'call.call_duration',
    'call.duration',
    'analysis.call_duration',
    'analysis.duration',
    'call_duration_secs',
    'metadata.call_duration_secs',
    'data.metadata.call_duration_secs',
    'duration_seconds',
    'parameters.duration_seconds',
    'duration',
    'parameters.duration',
    'call_duration',
    'parameters.call_duration',
)

TRANSCRIPT_EXTRACTORS = fields(
    'transcript',
    'parameters.transcript',
    'analysis.transcript',
    'data.transcript',
)

SUMMARY_EXTRACTORS = fields(
    'summary',
    'parameters.summary',
    'analysis.summary',
    'analysis.transcript_summary',
    'data.analysis.summary',
    'data.analysis.transcript_summary',
) + [synthesize_outcome_summary]

OUTCOME_EXTRACTORS = [outcome_from_analysis] + fields(
    'call_outcome',
    'parameters.call_outcome',
    'outcome',
    'parameters.outcome',
)

STATUS_EXTRACTORS = fields(
    'status',
    'parameters.status',
    'data.status',
)

OWNER_EXTRACTORS = fields(
    'owner_id',
    'parameters.owner_id',
    'user_id',
    'parameters.user_id',
    'account_id',
    'parameters.account_id',
)

COST_CREDITS_EXTRACTORS = fields(
    'call.call_cost_credits',
    'call_cost_credits',
    'metadata.cost',
    'data.metadata.cost',
)

RECORDING_URL_EXTRACTORS = fields(
    'call.recording_url',
    'recording_url',
    'parameters.recording_url',
)

ENDED_REASON_EXTRACTORS = fields(
    'call.ended_reason',
    'ended_reason',
    'metadata.termination_reason',
    'data.metadata.termination_reason',
)

COMPANY_NAME_EXTRACTORS = fields('company_name', 'parameters.company_name')

MC_NUMBER_EXTRACTORS = fields('mc_number', 'parameters.mc_number')


def generate_fallback_conversation_id() -> str:
    """Generate an id for deliveries that carry no conversation id."""
    return f"{FALLBACK_ID_PREFIX}{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def extract_conversation_id(payload: dict) -> Optional[str]:
    value = first_present(CONVERSATION_ID_EXTRACTORS, payload)
    return str(value) if value is not None else None


def extract_caller_phone(payload: dict) -> Optional[str]:
    value = first_present(CALLER_PHONE_EXTRACTORS, payload)
    return str(value) if value is not None else None


def extract_receiver_phone(payload: dict) -> Optional[str]:
    value = first_present(RECEIVER_PHONE_EXTRACTORS, payload)
    return str(value) if value is not None else None


def extract_summary(payload: dict) -> Optional[str]:
    value = first_present(SUMMARY_EXTRACTORS, payload)
    return str(value) if value is not None else None


def flatten_transcript(transcript: Any) -> Optional[str]:
    """
    Convert a transcript into plain text.

    Message lists become one "role: text" line per message.
    """
    if transcript is None:
        return None
    if isinstance(transcript, str):
        return transcript or None
    if isinstance(transcript, list):
        lines = []
        for message in transcript:
            if isinstance(message, dict):
                role = message.get('role') or 'unknown'
                text = message.get('message') or message.get('text') or message.get('content') or ''
                lines.append(f"{role}: {text}")
            elif message is not None:
                lines.append(str(message))
        return '\n'.join(lines) or None
    return str(transcript)


def extract_transcript(payload: dict) -> Optional[str]:
    return flatten_transcript(first_present(TRANSCRIPT_EXTRACTORS, payload))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse unix seconds or an ISO-8601 string into an aware UTC datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=dt_timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return datetime.fromtimestamp(int(text), tz=dt_timezone.utc)
        try:
            parsed = parse_datetime(text.replace('Z', '+00:00'))
        except ValueError:
            parsed = None
        if parsed is None:
            logger.warning(f"Unparseable timestamp: {value!r}")
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=dt_timezone.utc)
        return parsed
    return None


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def extract_call_details(payload: dict) -> dict:
    """
    Extract structured call fields from a webhook payload or a conversation detail.

    Returns:
        Dict keyed by CallRecord field names plus 'company_name' and 'mc_number'.
        Missing values are None; duration defaults to 0.
    """
    started_at = parse_timestamp(first_present(STARTED_AT_EXTRACTORS, payload))
    ended_at = parse_timestamp(first_present(ENDED_AT_EXTRACTORS, payload))

    duration = _to_number(first_present(DURATION_EXTRACTORS, payload))
    if duration is None and started_at and ended_at:
        duration = (ended_at - started_at).total_seconds()
    duration_seconds = max(int(round(duration)), 0) if duration is not None else 0

    if ended_at is None and started_at and duration_seconds:
        ended_at = started_at + timedelta(seconds=duration_seconds)

    direction = first_present(DIRECTION_EXTRACTORS, payload)
    if direction not in ('inbound', 'outbound'):
        direction = 'inbound'

    status = first_present(STATUS_EXTRACTORS, payload)
    owner_id = first_present(OWNER_EXTRACTORS, payload)

    details = {
        'external_conversation_id': extract_conversation_id(payload),
        'agent_id': first_present(AGENT_ID_EXTRACTORS, payload),
        'owner_id': str(owner_id) if owner_id is not None else None,
        'caller_phone': extract_caller_phone(payload),
        'receiver_phone': extract_receiver_phone(payload),
        'direction': direction,
        'started_at': started_at,
        'ended_at': ended_at,
        'duration_seconds': duration_seconds,
        'status': str(status) if status is not None else None,
        'outcome': first_present(OUTCOME_EXTRACTORS, payload) or DEFAULT_OUTCOME,
        'transcript': extract_transcript(payload),
        'summary': extract_summary(payload),
        'recording_url': first_present(RECORDING_URL_EXTRACTORS, payload),
        'ended_reason': first_present(ENDED_REASON_EXTRACTORS, payload),
        'call_cost_credits': _to_number(first_present(COST_CREDITS_EXTRACTORS, payload)),
        'company_name': first_present(COMPANY_NAME_EXTRACTORS, payload),
        'mc_number': first_present(MC_NUMBER_EXTRACTORS, payload),
    }

    logger.debug(
        f"Extracted call details for {details['external_conversation_id']}: "
        f"duration={duration_seconds}s, transcript={'yes' if details['transcript'] else 'no'}, "
        f"summary={'yes' if details['summary'] else 'no'}"
    )
    return details
