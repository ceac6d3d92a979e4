# Initial schema for webhook logs

import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='WebhookLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('provider', models.CharField(choices=[('stripe', 'Stripe'), ('flutterwave', 'Flutterwave'), ('identity', 'Identity provider')], db_index=True, max_length=50)),
                ('event', models.CharField(db_index=True, max_length=100)),
                ('payload', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(choices=[('received', 'Received'), ('success', 'Success'), ('ignored', 'Ignored'), ('error', 'Error'), ('unauthorized', 'Unauthorized')], db_index=True, default='received', max_length=30)),
                ('response', models.JSONField(blank=True, null=True)),
                ('error_message', models.TextField(blank=True, null=True)),
                ('received_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('ip_address', models.CharField(blank=True, max_length=64, null=True)),
                ('user_agent', models.TextField(blank=True, null=True)),
                ('request_id', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('organization', models.ForeignKey(blank=True, help_text='Organization the webhook resolved to (null if unknown)', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='webhook_logs', to='tenants.organization')),
            ],
            options={
                'db_table': 'webhook_logs',
                'ordering': ['-received_at'],
            },
        ),
        migrations.AddIndex(
            model_name='webhooklog',
            index=models.Index(fields=['provider', 'status', 'received_at'], name='webhook_provider_status_idx'),
        ),
    ]
