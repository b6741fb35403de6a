# Generated migration for WebhookEvent, CallRecord, Lead, LeadNotification and TenantPhoneNumber models

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='WebhookEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('external_conversation_id', models.CharField(max_length=255, unique=True)),
                ('event_type', models.CharField(choices=[('post_call', 'Post Call'), ('reconciled', 'Reconciled'), ('post_call_error', 'Post Call Error')], default='post_call', max_length=20)),
                ('raw_payload', models.JSONField(default=dict)),
                ('received_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('processing_status', models.CharField(choices=[('pending', 'Pending'), ('success', 'Success'), ('failed', 'Failed'), ('error', 'Error')], db_index=True, default='pending', max_length=20)),
                ('processing_attempts', models.PositiveIntegerField(default=0)),
                ('last_attempt_at', models.DateTimeField(blank=True, null=True)),
                ('last_error', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-received_at'],
            },
        ),
        migrations.CreateModel(
            name='CallRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('external_conversation_id', models.CharField(blank=True, db_index=True, max_length=255, null=True)),
                ('agent_id', models.CharField(blank=True, max_length=255, null=True)),
                ('owner_id', models.CharField(blank=True, db_index=True, max_length=255, null=True)),
                ('caller_phone', models.CharField(blank=True, max_length=32, null=True)),
                ('receiver_phone', models.CharField(blank=True, max_length=32, null=True)),
                ('direction', models.CharField(choices=[('inbound', 'Inbound'), ('outbound', 'Outbound')], default='inbound', max_length=10)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('ended_at', models.DateTimeField(blank=True, null=True)),
                ('duration_seconds', models.PositiveIntegerField(default=0)),
                ('status', models.CharField(blank=True, max_length=50, null=True)),
                ('outcome', models.CharField(blank=True, max_length=50, null=True)),
                ('transcript', models.TextField(blank=True, null=True)),
                ('summary', models.TextField(blank=True, null=True)),
                ('recording_url', models.URLField(blank=True, max_length=500, null=True)),
                ('ended_reason', models.CharField(blank=True, max_length=255, null=True)),
                ('call_cost_credits', models.FloatField(blank=True, null=True)),
                ('call_cost_usd', models.DecimalField(blank=True, decimal_places=4, max_digits=10, null=True)),
                ('llm_cost_usd_total', models.DecimalField(blank=True, decimal_places=4, max_digits=10, null=True)),
                ('llm_cost_usd_per_min', models.DecimalField(blank=True, decimal_places=4, max_digits=10, null=True)),
                ('source', models.CharField(choices=[('webhook', 'Webhook'), ('reconciliation', 'Reconciliation')], db_index=True, default='webhook', max_length=20)),
                ('webhook_delivery_status', models.CharField(choices=[('success', 'Success'), ('missed', 'Missed')], default='success', max_length=10)),
                ('error_annotation', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Lead',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('phone', models.CharField(max_length=32)),
                ('company_name', models.CharField(blank=True, max_length=255, null=True)),
                ('mc_number', models.CharField(blank=True, max_length=64, null=True)),
                ('owner_id', models.CharField(blank=True, db_index=True, max_length=255, null=True)),
                ('status', models.CharField(choices=[('new', 'New'), ('contacted', 'Contacted'), ('closed', 'Closed')], db_index=True, default='new', max_length=20)),
                ('source', models.CharField(choices=[('voice_agent', 'Voice Agent'), ('voice_agent_reconciled', 'Voice Agent (Reconciled)')], max_length=30)),
                ('requires_callback', models.BooleanField(default=False)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('call_record', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='lead', to='calls.callrecord')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='LeadNotification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('conversation_id', models.CharField(max_length=255, unique=True)),
                ('caller_phone', models.CharField(max_length=32)),
                ('receiver_phone', models.CharField(blank=True, max_length=32, null=True)),
                ('summary', models.TextField(blank=True, null=True)),
                ('transcript', models.TextField(blank=True, null=True)),
                ('owner_id', models.CharField(db_index=True, max_length=255)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('processed', 'Processed')], db_index=True, default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('lead', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='notifications', to='calls.lead')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='TenantPhoneNumber',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('phone_number', models.CharField(max_length=32, unique=True)),
                ('owner_id', models.CharField(max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
        ),
    ]
