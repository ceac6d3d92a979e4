"""
RBAC models.

- Member: a user's authorization record within one organization
  (role, allowed modules, soft-delete marker)
- AuditLog: immutable append-only record of every mutation
"""
import logging
import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone

from apps.core.models import BaseModel, BaseModelManager
from apps.rbac import capabilities

logger = logging.getLogger(__name__)


class MemberManager(BaseModelManager):
    """Manager for Member queries. Soft-deleted members are hidden."""

    def for_organization(self, organization):
        return self.filter(organization=organization)

    def get_membership(self, organization, external_user_id):
        """Get the active membership of a user in an organization."""
        return self.filter(organization=organization, external_user_id=external_user_id).first()


class Member(BaseModel):
    """
    Authorization view of an employee.

    At most one non-deleted Member exists per (organization,
    external_user_id). A soft-deleted Member keeps its row for history but
    has no effective permissions.
    """

    ROLE_CHOICES = [
        (capabilities.ADMIN, 'Admin'),
        (capabilities.ACCOUNTANT, 'Accountant'),
        (capabilities.HR_MANAGER, 'HR Manager'),
        (capabilities.SALES_MANAGER, 'Sales Manager'),
        (capabilities.EMPLOYEE, 'Employee'),
    ]

    STATUS_ACTIVE = 'ACTIVE'
    STATUS_TERMINATED = 'TERMINATED'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_TERMINATED, 'Terminated'),
    ]

    organization = models.ForeignKey(
        'tenants.Organization',
        on_delete=models.PROTECT,
        related_name='members',
        help_text="Organization this member belongs to"
    )
    external_user_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="User id issued by the identity provider"
    )
    role = models.CharField(
        max_length=32,
        choices=ROLE_CHOICES,
        default=capabilities.EMPLOYEE,
        help_text="Role granting static capabilities"
    )
    allowed_modules = models.JSONField(
        default=list,
        blank=True,
        help_text="Module keys this member may use; empty means pending setup"
    )

    # Employee profile
    employee_number = models.CharField(
        max_length=20,
        help_text="EMP-000001 style number, unique per organization"
    )
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(blank=True)
    position = models.CharField(max_length=150, blank=True)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        db_index=True
    )
    termination_date = models.DateField(null=True, blank=True)

    deleted_by = models.CharField(
        max_length=255,
        blank=True,
        help_text="Who soft-deleted this member"
    )

    objects = MemberManager()

    class Meta:
        db_table = 'members'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'external_user_id'],
                condition=Q(deleted_at__isnull=True),
                name='uniq_active_member_per_org',
            ),
            models.UniqueConstraint(
                fields=['organization', 'employee_number'],
                name='uniq_employee_number_per_org',
            ),
        ]
        indexes = [
            models.Index(fields=['organization', 'external_user_id'], name='members_org_user_idx'),
        ]

    def __str__(self):
        return f"{self.employee_number} {self.external_user_id} ({self.role})"

    @property
    def is_active_member(self):
        return self.deleted_at is None

    def soft_delete(self, deleted_by):
        """Revoke the membership: mark terminated and soft-deleted."""
        now = timezone.now()
        self.status = self.STATUS_TERMINATED
        self.termination_date = now.date()
        self.deleted_at = now
        self.deleted_by = deleted_by
        self.save(update_fields=[
            'status', 'termination_date', 'deleted_at', 'deleted_by', 'updated_at'
        ])


class AuditLogQuerySet(models.QuerySet):
    """Audit records are append-only: bulk update and delete are refused."""

    def update(self, **kwargs):
        raise ValueError("Audit logs are immutable")

    def delete(self):
        raise ValueError("Audit logs cannot be deleted")

    def for_organization(self, organization):
        return self.filter(organization=organization)

    def for_entity(self, entity_type, entity_id=None):
        qs = self.filter(entity_type=entity_type)
        if entity_id:
            qs = qs.filter(entity_id=str(entity_id))
        return qs

    def by_request(self, request_id):
        return self.filter(request_id=request_id)


class AuditLog(models.Model):
    """
    Immutable audit trail of mutations.

    Written once by the audit recorder, after the business transaction
    commits. Never updated or deleted by application code.
    """

    ACTION_CREATE = 'CREATE'
    ACTION_UPDATE = 'UPDATE'
    ACTION_DELETE = 'DELETE'
    ACTION_READ = 'READ'
    ACTION_CHOICES = [
        (ACTION_CREATE, 'Create'),
        (ACTION_UPDATE, 'Update'),
        (ACTION_DELETE, 'Delete'),
        (ACTION_READ, 'Read'),
    ]

    SYSTEM_ACTOR = 'system'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        'tenants.Organization',
        on_delete=models.PROTECT,
        related_name='audit_logs',
        help_text="Organization this action belongs to"
    )
    member = models.ForeignKey(
        Member,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="Member who performed the action (null for system actions)"
    )
    actor_id = models.CharField(
        max_length=255,
        help_text="External user id of the actor, or 'system'"
    )

    action = models.CharField(max_length=10, choices=ACTION_CHOICES, db_index=True)
    entity_type = models.CharField(max_length=100, db_index=True)
    entity_id = models.CharField(max_length=255, db_index=True)

    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)

    # Request context
    ip_address = models.CharField(max_length=64, default='unknown')
    user_agent = models.TextField(default='unknown')
    request_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True, editable=False)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['organization', 'created_at'], name='audit_org_created_idx'),
            models.Index(fields=['entity_type', 'entity_id'], name='audit_entity_idx'),
            models.Index(fields=['organization', 'action', 'created_at'], name='audit_org_action_idx'),
        ]

    def __str__(self):
        return f"{self.actor_id} {self.action} {self.entity_type}:{self.entity_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Audit logs are immutable")
        super().save(*args, **kwargs)

    def delete(self, using=None, keep_parents=False):
        raise ValueError("Audit logs cannot be deleted")
