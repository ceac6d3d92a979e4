"""
Onboarding service for organization module setup.

Handles:
- Onboarding status (enabled modules, completion flag)
- Completing onboarding with an initial module selection
- Changing the enabled modules afterwards

Every change is audited after it commits.
"""
import logging
from typing import Dict, Iterable, List

from django.db import DatabaseError, transaction

from apps.core.exceptions import StorageError, ValidationError
from apps.rbac.audit import log_audit
from apps.rbac.capabilities import MODULES
from apps.tenants.models import Organization

logger = logging.getLogger(__name__)


def validate_modules(modules: Iterable[str], allow_empty: bool = False) -> List[str]:
    """
    Check a module selection against the known module keys.

    Returns the de-duplicated list in the order given.

    Raises:
        ValidationError: Empty selection (unless allowed) or unknown keys
    """
    if modules is None or isinstance(modules, str):
        raise ValidationError('modules must be a list of module keys')

    selected = list(dict.fromkeys(modules))
    if not selected and not allow_empty:
        raise ValidationError('Please select at least one module')

    unknown = [module for module in selected if module not in MODULES]
    if unknown:
        raise ValidationError(
            'Unknown modules',
            details={'unknown_modules': unknown, 'valid_modules': list(MODULES)}
        )
    return selected


class OnboardingService:
    """
    Service for organization onboarding and module selection.
    """

    @classmethod
    def get_onboarding_status(cls, organization: Organization) -> Dict:
        return {
            'organization_id': str(organization.id),
            'enabled_modules': list(organization.enabled_modules or []),
            'onboarding_complete': organization.onboarding_complete,
        }

    @classmethod
    def complete_onboarding(cls, organization: Organization, modules, actor_id: str,
                            member_id=None, request=None) -> Organization:
        """
        Enable the selected modules and mark onboarding complete.

        Args:
            organization: Organization being onboarded
            modules: Non-empty list of module keys
            actor_id: External user id of the admin completing onboarding
            member_id: Member row of the actor, if provisioned
            request: Inbound request for audit metadata

        Raises:
            ValidationError: Empty or unknown module selection
            StorageError: The database failed
        """
        selected = validate_modules(modules)
        return cls._update(
            organization,
            {'enabled_modules': selected, 'onboarding_complete': True},
            actor_id=actor_id,
            member_id=member_id,
            request=request,
        )

    @classmethod
    def update_enabled_modules(cls, organization: Organization, modules, actor_id: str,
                               member_id=None, request=None) -> Organization:
        """Replace the organization's enabled modules (at least one)."""
        selected = validate_modules(modules)
        return cls._update(
            organization,
            {'enabled_modules': selected},
            actor_id=actor_id,
            member_id=member_id,
            request=request,
        )

    @classmethod
    def _update(cls, organization, changes, actor_id, member_id=None, request=None):
        old_values = {field: getattr(organization, field) for field in changes}

        try:
            with transaction.atomic():
                Organization.objects.filter(pk=organization.pk).update(**changes)
        except DatabaseError as e:
            logger.error(
                f"Failed to update organization modules: {e}",
                extra={'organization_id': str(organization.id)},
                exc_info=True
            )
            raise StorageError('Failed to update organization') from e

        for field, value in changes.items():
            setattr(organization, field, value)

        logger.info(
            "Organization modules updated",
            extra={
                'organization_id': str(organization.id),
                'enabled_modules': organization.enabled_modules,
                'onboarding_complete': organization.onboarding_complete,
            }
        )

        log_audit(
            organization_id=organization.id,
            actor_id=actor_id,
            action='UPDATE',
            entity_type='Organization',
            entity_id=organization.id,
            old_values=old_values,
            new_values=changes,
            member_id=member_id,
            request=request,
        )
        return organization
