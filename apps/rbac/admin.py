"""
Django admin configuration for RBAC app.
"""
from django.contrib import admin
from .models import Member, AuditLog


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = ['employee_number', 'external_user_id', 'organization', 'role', 'status', 'deleted_at']
    list_filter = ['role', 'status']
    search_fields = ['employee_number', 'external_user_id', 'email']
    ordering = ['-created_at']

    def get_queryset(self, request):
        # Revoked members stay visible to staff
        return Member.objects_with_deleted.all()


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Read-only: audit records are never changed or deleted."""

    list_display = ['created_at', 'organization', 'actor_id', 'action', 'entity_type', 'entity_id']
    list_filter = ['action', 'entity_type']
    search_fields = ['actor_id', 'entity_id', 'request_id']
    ordering = ['-created_at']
    readonly_fields = [field.name for field in AuditLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
