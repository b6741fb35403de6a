"""
Unit tests for Celery tasks.
"""
import pytest
from unittest.mock import patch

from calls.models import CallRecord, Lead, LeadNotification, TenantPhoneNumber, WebhookEvent
from calls.services.event_store import record_webhook_event
from calls.services.notifications import upsert_lead_notification
from calls.tasks import process_call_completion


def _deliver(payload, conversation_id='c1', with_notification=True):
    """Store a delivery the way the webhook view does, without dispatching."""
    event, _ = record_webhook_event(conversation_id, payload)
    if with_notification:
        upsert_lead_notification(conversation_id, '+15551234567', receiver_phone='+15559870000')
    return event


@pytest.mark.django_db
class TestProcessCallCompletionHappyPath:
    """Tests for successful call processing."""

    def test_booking_call_creates_record_and_lead(self, post_call_payload):
        """Test successful flow: pending event → CallRecord + Lead, notification linked."""
        _deliver(post_call_payload)

        status = process_call_completion('c1')

        assert status == WebhookEvent.ProcessingStatus.SUCCESS
        event = WebhookEvent.objects.get(external_conversation_id='c1')
        assert event.processing_attempts == 1
        assert event.processed_at is not None
        assert event.last_error is None

        record = CallRecord.objects.get(external_conversation_id='c1')
        assert record.caller_phone == '+15551234567'
        assert record.receiver_phone == '+15559870000'
        assert record.duration_seconds == 210
        assert record.summary == 'Carrier agreed to haul the Dallas to Atlanta load.'
        assert "let's book it" in record.transcript
        assert record.source == CallRecord.Source.WEBHOOK
        assert record.webhook_delivery_status == CallRecord.DeliveryStatus.SUCCESS
        assert record.owner_id == 'tenant-default'

        lead = Lead.objects.get(call_record=record)
        assert lead.phone == '+15551234567'
        assert lead.company_name == 'Blue Line Freight'
        assert lead.mc_number == 'MC123456'
        assert lead.source == Lead.Source.VOICE_AGENT
        assert lead.status == Lead.Status.NEW
        assert lead.requires_callback is False
        assert 'book it' in lead.notes

        notification = LeadNotification.objects.get(conversation_id='c1')
        assert notification.status == LeadNotification.Status.PROCESSED
        assert notification.lead_id == lead.id
        assert notification.summary == record.summary

    def test_owner_resolved_from_receiver_number(self, post_call_payload):
        TenantPhoneNumber.objects.create(phone_number='+15559870000', owner_id='tenant-a')
        _deliver(post_call_payload)

        process_call_completion('c1')

        record = CallRecord.objects.get(external_conversation_id='c1')
        assert record.owner_id == 'tenant-a'
        assert Lead.objects.get(call_record=record).owner_id == 'tenant-a'

    def test_reprocessing_is_idempotent(self, post_call_payload):
        _deliver(post_call_payload)

        process_call_completion('c1')
        process_call_completion('c1')

        assert CallRecord.objects.count() == 1
        assert Lead.objects.count() == 1
        event = WebhookEvent.objects.get(external_conversation_id='c1')
        assert event.processing_attempts == 2
        assert event.processing_status == WebhookEvent.ProcessingStatus.SUCCESS

    def test_existing_record_keeps_its_summary(self, post_call_payload):
        """A record created earlier only gets its empty fields filled."""
        CallRecord.objects.create(external_conversation_id='c1', summary='Summary from earlier sweep')
        _deliver(post_call_payload)

        process_call_completion('c1')

        assert CallRecord.objects.count() == 1
        record = CallRecord.objects.get(external_conversation_id='c1')
        assert record.summary == 'Summary from earlier sweep'
        assert record.caller_phone == '+15551234567'
        assert record.duration_seconds == 210
        assert "let's book it" in record.transcript

    def test_existing_lead_is_linked_not_duplicated(self, post_call_payload):
        record = CallRecord.objects.create(external_conversation_id='c1', caller_phone='+15551234567')
        lead = Lead.objects.create(
            phone='+15551234567', source=Lead.Source.VOICE_AGENT, call_record=record
        )
        _deliver(post_call_payload)

        process_call_completion('c1')

        assert Lead.objects.count() == 1
        notification = LeadNotification.objects.get(conversation_id='c1')
        assert notification.lead_id == lead.id
        assert notification.status == LeadNotification.Status.PROCESSED


@pytest.mark.django_db
class TestProcessCallCompletionNoLead:
    """Tests for calls that must not produce a Lead."""

    def test_no_booking_intent(self, post_call_payload):
        post_call_payload['transcript'] = [
            {'role': 'agent', 'message': 'Hi, this is Jess with dispatch.'},
            {'role': 'user', 'message': 'No thanks, the rate is too low.'},
        ]
        post_call_payload['analysis'] = {'summary': 'Carrier passed on the load.'}
        _deliver(post_call_payload)

        status = process_call_completion('c1')

        assert status == WebhookEvent.ProcessingStatus.SUCCESS
        assert CallRecord.objects.count() == 1
        assert Lead.objects.count() == 0
        notification = LeadNotification.objects.get(conversation_id='c1')
        assert notification.status == LeadNotification.Status.PENDING
        assert notification.lead_id is None

    def test_intent_without_caller_phone(self, post_call_payload):
        del post_call_payload['parameters']['caller_number']
        _deliver(post_call_payload, with_notification=False)

        status = process_call_completion('c1')

        assert status == WebhookEvent.ProcessingStatus.SUCCESS
        record = CallRecord.objects.get(external_conversation_id='c1')
        assert record.caller_phone is None
        assert Lead.objects.count() == 0


@pytest.mark.django_db
class TestProcessCallCompletionFailures:
    """Tests for failure scenarios."""

    def test_missing_event_returns_none(self):
        assert process_call_completion('does-not-exist') is None
        assert CallRecord.objects.count() == 0

    @patch('calls.tasks.upsert_call_record')
    def test_failure_recorded_on_event(self, mock_upsert, post_call_payload):
        """Test a processing exception marks the event FAILED without raising."""
        mock_upsert.side_effect = RuntimeError('database unavailable')
        _deliver(post_call_payload)

        status = process_call_completion('c1')

        assert status == WebhookEvent.ProcessingStatus.FAILED
        event = WebhookEvent.objects.get(external_conversation_id='c1')
        assert event.processing_attempts == 1
        assert event.last_error == 'RuntimeError: database unavailable'
        assert event.last_attempt_at is not None
        assert event.processed_at is None
        assert Lead.objects.count() == 0

    def test_unparseable_payload_marked_error(self):
        record_webhook_event(
            'unknown_1_abcdef12',
            {'_raw': '{"invalid": json}'},
            WebhookEvent.EventType.POST_CALL_ERROR,
        )

        status = process_call_completion('unknown_1_abcdef12')

        assert status == WebhookEvent.ProcessingStatus.ERROR
        event = WebhookEvent.objects.get(external_conversation_id='unknown_1_abcdef12')
        assert event.processing_attempts == 1
        assert event.last_error
        assert CallRecord.objects.count() == 0
