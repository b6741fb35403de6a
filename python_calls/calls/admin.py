"""
Django admin configuration for calls app.
"""
from django.contrib import admin
from calls.models import WebhookEvent, CallRecord, Lead, LeadNotification, TenantPhoneNumber


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """Admin interface for WebhookEvent model."""

    list_display = ('external_conversation_id', 'event_type', 'processing_status',
                    'processing_attempts', 'received_at', 'processed_at')
    list_filter = ('processing_status', 'event_type', 'received_at')
    search_fields = ('external_conversation_id', 'last_error')
    readonly_fields = ('external_conversation_id', 'event_type', 'raw_payload', 'received_at',
                       'processed_at', 'processing_status', 'processing_attempts',
                       'last_attempt_at', 'last_error', 'created_at', 'updated_at')

    fieldsets = (
        ('Status', {
            'fields': ('external_conversation_id', 'event_type', 'processing_status', 'last_error')
        }),
        ('Attempts', {
            'fields': ('processing_attempts', 'last_attempt_at', 'received_at', 'processed_at')
        }),
        ('Payload', {
            'fields': ('raw_payload',),
            'classes': ('collapse',)
        }),
        ('Audit', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        """Events are only written by the webhook and reconciliation."""
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CallRecord)
class CallRecordAdmin(admin.ModelAdmin):
    """Admin interface for CallRecord model."""

    list_display = ('id', 'external_conversation_id', 'caller_phone', 'outcome',
                    'duration_seconds', 'source', 'webhook_delivery_status', 'started_at')
    list_filter = ('source', 'webhook_delivery_status', 'outcome', 'direction')
    search_fields = ('external_conversation_id', 'caller_phone', 'receiver_phone')
    readonly_fields = ('created_at', 'updated_at')

    fieldsets = (
        ('Call', {
            'fields': ('external_conversation_id', 'agent_id', 'owner_id', 'caller_phone',
                       'receiver_phone', 'direction', 'status', 'outcome')
        }),
        ('Timing', {
            'fields': ('started_at', 'ended_at', 'duration_seconds', 'ended_reason')
        }),
        ('Content', {
            'fields': ('summary', 'transcript', 'recording_url'),
            'classes': ('collapse',)
        }),
        ('Cost', {
            'fields': ('call_cost_credits', 'call_cost_usd', 'llm_cost_usd_total', 'llm_cost_usd_per_min'),
            'classes': ('collapse',)
        }),
        ('Delivery', {
            'fields': ('source', 'webhook_delivery_status', 'error_annotation', 'created_at', 'updated_at')
        }),
    )

    def has_add_permission(self, request):
        return False


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    """Admin interface for Lead model."""

    list_display = ('id', 'phone', 'company_name', 'status', 'source', 'requires_callback', 'created_at')
    list_filter = ('status', 'source', 'requires_callback')
    search_fields = ('phone', 'company_name', 'mc_number')
    readonly_fields = ('source', 'call_record', 'created_at', 'updated_at')


@admin.register(LeadNotification)
class LeadNotificationAdmin(admin.ModelAdmin):
    """Admin interface for LeadNotification model."""

    list_display = ('conversation_id', 'caller_phone', 'owner_id', 'status', 'lead', 'created_at')
    list_filter = ('status',)
    search_fields = ('conversation_id', 'caller_phone')
    readonly_fields = ('conversation_id', 'lead', 'created_at', 'updated_at')

    def has_add_permission(self, request):
        return False


@admin.register(TenantPhoneNumber)
class TenantPhoneNumberAdmin(admin.ModelAdmin):
    """Admin interface for the phone number to tenant mapping."""

    list_display = ('phone_number', 'owner_id', 'created_at')
    search_fields = ('phone_number', 'owner_id')
