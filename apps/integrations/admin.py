"""
Django admin configuration for integrations app.
"""
from django.contrib import admin

from .models import WebhookLog


@admin.register(WebhookLog)
class WebhookLogAdmin(admin.ModelAdmin):
    list_display = ['provider', 'event', 'status', 'organization', 'received_at']
    list_filter = ['provider', 'status']
    search_fields = ['event', 'request_id']
    readonly_fields = [field.name for field in WebhookLog._meta.fields]
