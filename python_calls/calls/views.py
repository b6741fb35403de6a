"""
API views for Call Gateway Service.
"""
import logging
import uuid
from rest_framework.exceptions import ParseError, UnsupportedMediaType
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from calls.models import WebhookEvent
from calls.services.dispatch import dispatch_processing
from calls.services.event_store import record_webhook_event
from calls.services.extraction import (
    extract_caller_phone,
    extract_conversation_id,
    extract_receiver_phone,
    extract_summary,
    extract_transcript,
    generate_fallback_conversation_id,
)
from calls.services.notifications import upsert_lead_notification
from calls.services.reconciliation import reconcile

logger = logging.getLogger(__name__)


@method_decorator(csrf_exempt, name='dispatch')
class CallWebhookView(APIView):
    """
    Webhook endpoint for post-call events from the voice platform.

    POST /webhooks/calls/
    - Accepts any JSON payload shape
    - Upserts the WebhookEvent for the conversation
    - Upserts a LeadNotification when a caller phone is present
    - Hands processing to the background
    - Always returns 200 OK so the platform never enters a retry loop
    """

    authentication_classes = []
    permission_classes = []

    def post(self, request):
        """
        Handle a post-call webhook delivery.

        Returns:
            200 OK: {received, stored, conversationId, leadNotificationId, error?}
        """
        # Generate correlation ID for request tracing
        correlation_id = str(uuid.uuid4())
        errors = []

        # 1. Parse payload and resolve conversation id
        event_type = WebhookEvent.EventType.POST_CALL
        try:
            raw_body = request.body.decode('utf-8', errors='replace')
        except Exception:
            raw_body = ''
        try:
            payload = request.data
            if not isinstance(payload, dict):
                payload = {'payload': payload}
        except (ParseError, UnsupportedMediaType) as e:
            logger.warning(
                f"Unparseable webhook payload: {e}, "
                f"correlation_id={correlation_id}"
            )
            payload = {'_raw': raw_body}
            event_type = WebhookEvent.EventType.POST_CALL_ERROR
            errors.append('Malformed payload')

        conversation_id = extract_conversation_id(payload)
        if not conversation_id:
            conversation_id = generate_fallback_conversation_id()
            logger.warning(
                f"No conversation id in payload, using fallback {conversation_id}, "
                f"correlation_id={correlation_id}"
            )

        # 2. Store the event
        stored = False
        try:
            record_webhook_event(conversation_id, payload, event_type)
            stored = True
        except Exception as e:
            logger.error(
                f"Failed to store WebhookEvent {conversation_id}: {e}, "
                f"correlation_id={correlation_id}",
                exc_info=True
            )
            errors.append('Failed to store event')

        # 3. Surface the call for review
        lead_notification_id = None
        caller_phone = extract_caller_phone(payload)
        if caller_phone:
            try:
                notification, _ = upsert_lead_notification(
                    conversation_id,
                    caller_phone,
                    receiver_phone=extract_receiver_phone(payload),
                    summary=extract_summary(payload),
                    transcript=extract_transcript(payload),
                )
                lead_notification_id = notification.id
            except Exception as e:
                logger.error(
                    f"Failed to upsert LeadNotification for {conversation_id}: {e}, "
                    f"correlation_id={correlation_id}",
                    exc_info=True
                )
                errors.append('Failed to store lead notification')
        else:
            logger.info(f"No caller phone for {conversation_id}, no lead notification")

        # 4. Hand off to background processing
        if stored:
            dispatch_processing(conversation_id)

        logger.info(
            f"Webhook for {conversation_id} acknowledged (stored={stored}), "
            f"correlation_id={correlation_id}"
        )

        body = {
            'received': True,
            'stored': stored,
            'conversationId': conversation_id,
            'leadNotificationId': lead_notification_id,
            'correlation_id': correlation_id,
        }
        if errors:
            body['error'] = '; '.join(errors)
        return Response(body, status=status.HTTP_200_OK)


def _parse_hours_back(raw_hours) -> int:
    """Accept a positive integer, or a string of digits; reject floats and booleans."""
    if isinstance(raw_hours, bool):
        raise ValueError('hoursBack must be an integer')
    if isinstance(raw_hours, str):
        if not raw_hours.strip().isdigit():
            raise ValueError('hoursBack must be an integer')
        raw_hours = int(raw_hours.strip())
    if not isinstance(raw_hours, int):
        raise ValueError('hoursBack must be an integer')
    if raw_hours <= 0:
        raise ValueError('hoursBack must be positive')
    return raw_hours


@method_decorator(csrf_exempt, name='dispatch')
class ReconciliationView(APIView):
    """
    On-demand reconciliation trigger.

    POST /webhooks/calls/reconcile/
    - Optional JSON body: {"hoursBack": <int>}
    - Runs the reconciliation sweep synchronously
    - Returns the aggregate report
    """

    authentication_classes = []
    permission_classes = []

    def post(self, request):
        hours_back = None
        try:
            data = request.data if isinstance(request.data, dict) else {}
            raw_hours = data.get('hoursBack', request.query_params.get('hoursBack'))
            if raw_hours not in (None, ''):
                hours_back = _parse_hours_back(raw_hours)
        except (ParseError, UnsupportedMediaType, TypeError, ValueError) as e:
            return Response(
                {'success': False, 'error': f'Invalid hoursBack: {e}'},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            report = reconcile(hours_back=hours_back)
        except Exception as e:
            logger.error(f"Reconciliation failed: {e}", exc_info=True)
            return Response(
                {'success': False, 'error': 'Reconciliation failed'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        return Response(
            {'success': True, 'results': report.as_dict()},
            status=status.HTTP_200_OK
        )
