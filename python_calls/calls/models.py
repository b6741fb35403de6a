"""
Data models for Call Gateway Service.
"""
from django.db import models


class WebhookEvent(models.Model):
    """
    Represents one external conversation reported by the voice platform.
    Re-deliveries of the same conversation merge into a single row.
    """

    class EventType(models.TextChoices):
        POST_CALL = 'post_call', 'Post Call'
        RECONCILED = 'reconciled', 'Reconciled'
        POST_CALL_ERROR = 'post_call_error', 'Post Call Error'

    class ProcessingStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        SUCCESS = 'success', 'Success'
        FAILED = 'failed', 'Failed'
        ERROR = 'error', 'Error'

    external_conversation_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(
        max_length=20,
        choices=EventType.choices,
        default=EventType.POST_CALL
    )
    raw_payload = models.JSONField(default=dict)
    received_at = models.DateTimeField(auto_now_add=True, db_index=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    processing_status = models.CharField(
        max_length=20,
        choices=ProcessingStatus.choices,
        default=ProcessingStatus.PENDING,
        db_index=True
    )
    processing_attempts = models.PositiveIntegerField(default=0)
    last_attempt_at = models.DateTimeField(null=True, blank=True)
    last_error = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-received_at']

    def __str__(self):
        return f"WebhookEvent {self.external_conversation_id} - {self.processing_status}"


class CallRecord(models.Model):
    """
    A completed call, built from a webhook delivery or recovered by reconciliation.
    """

    class Source(models.TextChoices):
        WEBHOOK = 'webhook', 'Webhook'
        RECONCILIATION = 'reconciliation', 'Reconciliation'

    class DeliveryStatus(models.TextChoices):
        SUCCESS = 'success', 'Success'
        MISSED = 'missed', 'Missed'

    class Direction(models.TextChoices):
        INBOUND = 'inbound', 'Inbound'
        OUTBOUND = 'outbound', 'Outbound'

    external_conversation_id = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    agent_id = models.CharField(max_length=255, null=True, blank=True)
    owner_id = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    caller_phone = models.CharField(max_length=32, null=True, blank=True)
    receiver_phone = models.CharField(max_length=32, null=True, blank=True)
    direction = models.CharField(
        max_length=10,
        choices=Direction.choices,
        default=Direction.INBOUND
    )
    started_at = models.DateTimeField(null=True, blank=True)
    ended_at = models.DateTimeField(null=True, blank=True)
    duration_seconds = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=50, null=True, blank=True)
    outcome = models.CharField(max_length=50, null=True, blank=True)
    transcript = models.TextField(null=True, blank=True)
    summary = models.TextField(null=True, blank=True)
    recording_url = models.URLField(max_length=500, null=True, blank=True)
    ended_reason = models.CharField(max_length=255, null=True, blank=True)
    call_cost_credits = models.FloatField(null=True, blank=True)
    call_cost_usd = models.DecimalField(max_digits=10, decimal_places=4, null=True, blank=True)
    llm_cost_usd_total = models.DecimalField(max_digits=10, decimal_places=4, null=True, blank=True)
    llm_cost_usd_per_min = models.DecimalField(max_digits=10, decimal_places=4, null=True, blank=True)
    source = models.CharField(
        max_length=20,
        choices=Source.choices,
        default=Source.WEBHOOK,
        db_index=True
    )
    webhook_delivery_status = models.CharField(
        max_length=10,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.SUCCESS
    )
    error_annotation = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['external_conversation_id'],
                condition=models.Q(external_conversation_id__isnull=False),
                name='unique_call_record_per_conversation',
            ),
        ]

    def __str__(self):
        return f"CallRecord {self.id} ({self.external_conversation_id})"


class Lead(models.Model):
    """
    A qualified business lead derived from a call that showed booking intent.
    """

    class Status(models.TextChoices):
        NEW = 'new', 'New'
        CONTACTED = 'contacted', 'Contacted'
        CLOSED = 'closed', 'Closed'

    class Source(models.TextChoices):
        VOICE_AGENT = 'voice_agent', 'Voice Agent'
        VOICE_AGENT_RECONCILED = 'voice_agent_reconciled', 'Voice Agent (Reconciled)'

    phone = models.CharField(max_length=32)
    company_name = models.CharField(max_length=255, null=True, blank=True)
    mc_number = models.CharField(max_length=64, null=True, blank=True)
    owner_id = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.NEW,
        db_index=True
    )
    source = models.CharField(max_length=30, choices=Source.choices)
    requires_callback = models.BooleanField(default=False)
    notes = models.TextField(blank=True, default='')
    call_record = models.OneToOneField(
        CallRecord,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='lead'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Lead {self.id} - {self.phone} ({self.source})"


class LeadNotification(models.Model):
    """
    Optimistic "review this call" record created at ingestion time,
    before the call has been fully processed.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PROCESSED = 'processed', 'Processed'

    conversation_id = models.CharField(max_length=255, unique=True)
    caller_phone = models.CharField(max_length=32)
    receiver_phone = models.CharField(max_length=32, null=True, blank=True)
    summary = models.TextField(null=True, blank=True)
    transcript = models.TextField(null=True, blank=True)
    owner_id = models.CharField(max_length=255, db_index=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    lead = models.ForeignKey(
        Lead,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"LeadNotification {self.conversation_id} - {self.status}"


class TenantPhoneNumber(models.Model):
    """Maps a receiving phone number to the tenant that owns it."""

    phone_number = models.CharField(max_length=32, unique=True)
    owner_id = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.phone_number} -> {self.owner_id}"
