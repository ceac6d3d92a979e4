"""
Django admin configuration for tenants app.
"""
from django.contrib import admin
from .models import Organization


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'external_org_id', 'onboarding_complete', 'created_at']
    list_filter = ['onboarding_complete']
    search_fields = ['name', 'slug', 'external_org_id']
    readonly_fields = ['external_org_id', 'created_at', 'updated_at']
