"""
Member services.

Implements:
- MemberService: provisioning members from identity-provider memberships,
  revoking them, and assigning allowed modules
"""
import logging
import re
from typing import Optional

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models.functions import Length

from apps.core.exceptions import NotFoundError, StorageError
from apps.rbac import capabilities
from apps.rbac.audit import log_audit
from apps.rbac.models import AuditLog, Member

logger = logging.getLogger(__name__)

EMPLOYEE_NUMBER_FORMAT = 'EMP-{:06d}'
_EMPLOYEE_NUMBER_PATTERN = re.compile(r'^EMP-([0-9]+)$')


class MemberService:
    """
    Service for member lifecycle operations.
    """

    # Attempts at picking a free employee number before giving up
    MAX_NUMBER_ATTEMPTS = 5

    @classmethod
    def next_employee_number(cls, organization) -> str:
        """
        Next EMP-000001 style number for the organization.

        Soft-deleted members keep their numbers, so they are counted too.
        """
        # Zero padding makes string order numeric within one length
        highest = Member.objects_with_deleted.filter(
            organization=organization,
            employee_number__regex=_EMPLOYEE_NUMBER_PATTERN.pattern,
        ).order_by(
            Length('employee_number').desc(), '-employee_number'
        ).values_list('employee_number', flat=True).first()

        if highest is None:
            return EMPLOYEE_NUMBER_FORMAT.format(1)
        number = int(_EMPLOYEE_NUMBER_PATTERN.match(highest).group(1))
        return EMPLOYEE_NUMBER_FORMAT.format(number + 1)

    @classmethod
    def provision_member(cls, organization, external_user_id: str, role: Optional[str] = None,
                         email: str = '', first_name: str = '', last_name: str = ''):
        """
        Create the member for an identity-provider membership.

        New members start with no allowed modules (pending setup). An
        existing active member is returned unchanged.

        Returns:
            tuple: (member, created)

        Raises:
            StorageError: The database failed, or no free employee number
                could be claimed
        """
        normalized_role = capabilities.normalize_role(role)
        if normalized_role not in capabilities.ROLES:
            normalized_role = capabilities.EMPLOYEE

        try:
            existing = Member.objects.get_membership(organization, external_user_id)
            if existing is not None:
                return existing, False

            for attempt in range(cls.MAX_NUMBER_ATTEMPTS):
                try:
                    with transaction.atomic():
                        member = Member.objects.create(
                            organization=organization,
                            external_user_id=external_user_id,
                            role=normalized_role,
                            allowed_modules=[],
                            employee_number=cls.next_employee_number(organization),
                            first_name=first_name or 'New',
                            last_name=last_name or 'Employee',
                            email=email or '',
                            position='Administrator' if normalized_role == capabilities.ADMIN else 'Team Member',
                        )
                    break
                except IntegrityError:
                    # Either the user was provisioned concurrently or the
                    # employee number was taken; re-check before retrying
                    existing = Member.objects.get_membership(organization, external_user_id)
                    if existing is not None:
                        return existing, False
                    logger.info(
                        "Employee number collision, retrying",
                        extra={'organization_id': str(organization.id), 'attempt': attempt + 1}
                    )
            else:
                raise StorageError('Could not allocate an employee number')

        except DatabaseError as e:
            logger.error(
                f"Failed to provision member: {e}",
                extra={'organization_id': str(organization.id), 'external_user_id': external_user_id},
                exc_info=True
            )
            raise StorageError('Failed to provision member') from e

        logger.info(
            f"Created member {member.employee_number}",
            extra={'organization_id': str(organization.id), 'member_id': str(member.id)}
        )
        log_audit(
            organization_id=organization.id,
            actor_id=AuditLog.SYSTEM_ACTOR,
            action=AuditLog.ACTION_CREATE,
            entity_type='Member',
            entity_id=member.id,
            new_values=cls.snapshot(member),
        )
        return member, True

    @classmethod
    def revoke_member(cls, organization, external_user_id: str, deleted_by: str) -> int:
        """
        Soft-delete the active membership of a user.

        Returns:
            Number of members revoked (0 or 1)
        """
        try:
            member = Member.objects.get_membership(organization, external_user_id)
            if member is None:
                return 0
            old_values = cls.snapshot(member)
            member.soft_delete(deleted_by=deleted_by)
        except DatabaseError as e:
            logger.error(
                f"Failed to revoke member: {e}",
                extra={'organization_id': str(organization.id), 'external_user_id': external_user_id},
                exc_info=True
            )
            raise StorageError('Failed to revoke member') from e

        logger.info(
            f"Revoked member {member.employee_number}",
            extra={'organization_id': str(organization.id), 'member_id': str(member.id)}
        )
        log_audit(
            organization_id=organization.id,
            actor_id=AuditLog.SYSTEM_ACTOR,
            action=AuditLog.ACTION_DELETE,
            entity_type='Member',
            entity_id=member.id,
            old_values=old_values,
            new_values=cls.snapshot(member),
        )
        return 1

    @classmethod
    def assign_modules(cls, organization, member_id, modules, actor_id: str,
                       actor_member_id=None, request=None) -> Member:
        """
        Replace a member's allowed modules.

        An empty list is accepted and puts the member back into pending
        setup.

        Raises:
            NotFoundError: No active member with that id in the organization
            StorageError: The database failed
        """
        member = Member.objects.filter(organization=organization, id=member_id).first()
        if member is None:
            raise NotFoundError('Member not found')

        old_values = {'allowed_modules': list(member.allowed_modules or [])}
        try:
            member.allowed_modules = list(modules)
            member.save(update_fields=['allowed_modules', 'updated_at'])
        except DatabaseError as e:
            logger.error(
                f"Failed to assign modules: {e}",
                extra={'organization_id': str(organization.id), 'member_id': str(member.id)},
                exc_info=True
            )
            raise StorageError('Failed to assign modules') from e

        log_audit(
            organization_id=organization.id,
            actor_id=actor_id,
            action=AuditLog.ACTION_UPDATE,
            entity_type='Member',
            entity_id=member.id,
            old_values=old_values,
            new_values={'allowed_modules': member.allowed_modules},
            member_id=actor_member_id,
            request=request,
        )
        return member

    @staticmethod
    def snapshot(member: Member) -> dict:
        return {
            'external_user_id': member.external_user_id,
            'employee_number': member.employee_number,
            'role': member.role,
            'allowed_modules': list(member.allowed_modules or []),
            'status': member.status,
            'deleted_at': member.deleted_at,
            'deleted_by': member.deleted_by,
        }
