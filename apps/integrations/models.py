"""
Integration models for inbound webhooks.

Implements webhook logging for troubleshooting payment and identity
provider callbacks.
"""
from django.db import models
from django.utils import timezone

from apps.core.models import BaseModel


class WebhookLogManager(models.Manager):
    """Manager for webhook log queries."""

    def for_organization(self, organization):
        return self.filter(organization=organization)

    def by_provider(self, provider):
        return self.filter(provider=provider)

    def failed(self):
        return self.filter(status__in=[WebhookLog.STATUS_ERROR, WebhookLog.STATUS_UNAUTHORIZED])

    def recent(self, hours=24):
        from datetime import timedelta
        cutoff = timezone.now() - timedelta(hours=hours)
        return self.filter(received_at__gte=cutoff)


class WebhookLog(BaseModel):
    """
    Record of one inbound webhook request and how it was handled.

    Written on receipt and updated with the outcome. Updates are best
    effort: a failure to update the log never changes the webhook
    response.
    """

    STATUS_RECEIVED = 'received'
    STATUS_SUCCESS = 'success'
    STATUS_IGNORED = 'ignored'
    STATUS_ERROR = 'error'
    STATUS_UNAUTHORIZED = 'unauthorized'
    STATUS_CHOICES = [
        (STATUS_RECEIVED, 'Received'),
        (STATUS_SUCCESS, 'Success'),
        (STATUS_IGNORED, 'Ignored'),
        (STATUS_ERROR, 'Error'),
        (STATUS_UNAUTHORIZED, 'Unauthorized'),
    ]

    PROVIDER_CHOICES = [
        ('stripe', 'Stripe'),
        ('flutterwave', 'Flutterwave'),
        ('identity', 'Identity provider'),
    ]

    organization = models.ForeignKey(
        'tenants.Organization',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='webhook_logs',
        help_text="Organization the webhook resolved to (null if unknown)"
    )

    provider = models.CharField(max_length=50, choices=PROVIDER_CHOICES, db_index=True)
    event = models.CharField(max_length=100, db_index=True)

    payload = models.JSONField(default=dict, blank=True)

    status = models.CharField(
        max_length=30,
        choices=STATUS_CHOICES,
        default=STATUS_RECEIVED,
        db_index=True
    )
    response = models.JSONField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)

    received_at = models.DateTimeField(auto_now_add=True, db_index=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    ip_address = models.CharField(max_length=64, null=True, blank=True)
    user_agent = models.TextField(null=True, blank=True)
    request_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)

    objects = WebhookLogManager()

    class Meta:
        db_table = 'webhook_logs'
        ordering = ['-received_at']
        indexes = [
            models.Index(fields=['provider', 'status', 'received_at'], name='webhook_provider_status_idx'),
        ]

    def __str__(self):
        return f"{self.provider} - {self.event} - {self.status}"

    def _finish(self, status, **fields):
        self.status = status
        self.processed_at = timezone.now()
        for name, value in fields.items():
            setattr(self, name, value)
        self.save(update_fields=['status', 'processed_at', 'updated_at', *fields.keys()])

    def mark_success(self, response=None, organization_id=None):
        fields = {'response': response}
        if organization_id is not None:
            fields['organization_id'] = organization_id
        self._finish(self.STATUS_SUCCESS, **fields)

    def mark_ignored(self, response=None):
        self._finish(self.STATUS_IGNORED, response=response)

    def mark_error(self, error_message):
        self._finish(self.STATUS_ERROR, error_message=error_message)

    def mark_unauthorized(self, error_message=None):
        self._finish(
            self.STATUS_UNAUTHORIZED,
            error_message=error_message or 'Signature verification failed'
        )
