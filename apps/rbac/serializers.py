"""
Serializers for RBAC API endpoints.
"""
from rest_framework import serializers

from apps.rbac.capabilities import MODULES
from apps.rbac.evaluator import is_pending_setup
from apps.rbac.models import AuditLog, Member


class ModuleListSerializer(serializers.Serializer):
    """A list of module keys."""

    modules = serializers.ListField(
        child=serializers.ChoiceField(choices=MODULES),
        allow_empty=True,
        help_text="Module keys, e.g. ['FINANCE', 'CRM']"
    )

    def validate_modules(self, value):
        return list(dict.fromkeys(value))


class MemberSerializer(serializers.ModelSerializer):
    """Serializer for Member model."""

    pending_setup = serializers.SerializerMethodField()

    class Meta:
        model = Member
        fields = [
            'id', 'external_user_id', 'employee_number', 'first_name',
            'last_name', 'email', 'position', 'role', 'allowed_modules',
            'status', 'pending_setup', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_pending_setup(self, obj):
        return is_pending_setup(obj.role, obj.allowed_modules)


class AuditLogSerializer(serializers.ModelSerializer):
    """Serializer for AuditLog model."""

    class Meta:
        model = AuditLog
        fields = [
            'id', 'organization', 'member', 'actor_id', 'action',
            'entity_type', 'entity_id', 'old_values', 'new_values',
            'ip_address', 'user_agent', 'request_id', 'created_at'
        ]
        read_only_fields = fields
