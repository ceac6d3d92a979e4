"""
Serializers for organization API endpoints.
"""
from rest_framework import serializers
from apps.tenants.models import Organization


class OrganizationModulesSerializer(serializers.ModelSerializer):
    """Enabled modules and onboarding state of an organization."""

    class Meta:
        model = Organization
        fields = ['id', 'name', 'slug', 'enabled_modules', 'onboarding_complete']
        read_only_fields = fields
