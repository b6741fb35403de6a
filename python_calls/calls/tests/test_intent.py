"""
Unit tests for booking intent detection.
"""
import pytest

from calls.services.intent import (
    BOOKING_INTENT_PHRASES,
    call_text,
    detect_booking_intent,
    matched_phrases,
)

REQUIRED_PHRASES = [
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
]


class TestDetectBookingIntent:
    """Tests for detect_booking_intent."""

    def test_phrase_list_contains_required_phrases(self):
        """Every required phrase is part of the detector's list."""
        for phrase in REQUIRED_PHRASES:
            assert phrase in BOOKING_INTENT_PHRASES

    @pytest.mark.parametrize('phrase', REQUIRED_PHRASES)
    def test_each_phrase_lowercase_detected(self, phrase):
        assert detect_booking_intent(phrase) is True

    @pytest.mark.parametrize('phrase', REQUIRED_PHRASES)
    def test_each_phrase_uppercase_detected(self, phrase):
        assert detect_booking_intent(phrase.upper()) is True

    @pytest.mark.parametrize('phrase', REQUIRED_PHRASES)
    def test_each_phrase_title_case_in_sentence_detected(self, phrase):
        text = f"Caller said: {phrase.title()}. Then hung up."
        assert detect_booking_intent(text) is True

    def test_no_phrase_not_detected(self):
        text = 'Carrier asked about the rate for the Dallas load and said they would think about it.'
        assert detect_booking_intent(text) is False

    def test_empty_and_none_not_detected(self):
        assert detect_booking_intent('') is False
        assert detect_booking_intent(None) is False

    def test_typographic_apostrophe_detected(self):
        """Transcripts often contain curly apostrophes."""
        assert detect_booking_intent('Yeah, I’ll take it') is True
        assert detect_booking_intent('LET’S DO IT') is True

    def test_substring_inside_longer_word_detected(self):
        """Matching is plain substring matching."""
        assert detect_booking_intent('Booking confirmed for Tuesday') is True


class TestMatchedPhrases:
    """Tests for matched_phrases."""

    def test_returns_all_matches_in_list_order(self):
        text = "Sounds good. Have dispatch call me back, I'm interested."
        assert matched_phrases(text) == [
            'sounds good',
            "i'm interested",
            'call me back',
            'have dispatch call',
        ]

    def test_returns_empty_list_when_nothing_matches(self):
        assert matched_phrases('no thanks, wrong lane') == []


class TestCallText:
    """Tests for call_text."""

    def test_joins_transcript_and_summary(self):
        assert call_text('user: hello', 'Caller wants to book it') == 'user: hello Caller wants to book it'

    def test_handles_missing_parts(self):
        assert call_text(None, 'summary') == 'summary'
        assert call_text('transcript', None) == 'transcript'
        assert call_text(None, None) == ''

