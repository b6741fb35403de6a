"""
Booking intent detection for call transcripts and summaries.
"""
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

# Matching is a plain case-insensitive substring test against this list.
BOOKING_INTENT_PHRASES = (
    "i'll take it",
    'book it',
    'confirm',
    'sounds good',
    "let's do it",
    'i want it',
    "i'm interested",
    'sign me up',
    'callback',
    'call me back',
    'have dispatch call',
    'speak to dispatch',
    'talk to dispatch',
    'interested in the load',
    'want to book',
)


def normalize_text(text: Optional[str]) -> str:
    """Lowercase text and fold typographic apostrophes to ASCII."""
    if not text:
        return ''
    return text.replace('’', "'").replace('‘', "'").lower()


def matched_phrases(text: Optional[str]) -> List[str]:
    """Return every booking intent phrase found in text, in list order."""
    normalized = normalize_text(text)
    return [phrase for phrase in BOOKING_INTENT_PHRASES if phrase in normalized]


def detect_booking_intent(text: Optional[str]) -> bool:
    """
    Detect booking intent in call text.

    Args:
        text: Transcript and summary joined with a space

    Returns:
        True if any booking intent phrase is present
    """
    normalized = normalize_text(text)
    return any(phrase in normalized for phrase in BOOKING_INTENT_PHRASES)


def call_text(transcript: Optional[str], summary: Optional[str]) -> str:
    """Join transcript and summary into the text the detector scans."""
    return f"{transcript or ''} {summary or ''}".strip()
