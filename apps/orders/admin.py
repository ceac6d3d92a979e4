"""
Django admin configuration for orders app.
"""
from django.contrib import admin
from .models import Store, PaymentOrder


@admin.register(Store)
class StoreAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'organization', 'created_at']
    search_fields = ['name', 'slug']


@admin.register(PaymentOrder)
class PaymentOrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'store', 'payment_status', 'status', 'total_amount', 'paid_at']
    list_filter = ['payment_status', 'status', 'payment_provider']
    search_fields = ['order_number', 'payment_reference', 'customer_email']
    # Payment state only changes through webhook reconciliation
    readonly_fields = ['payment_reference', 'payment_status', 'paid_at']
