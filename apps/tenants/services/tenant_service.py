"""
Tenant resolution service.

Maps an identity-provider session to its Organization, creating the
Organization on first contact. Creation relies on the unique constraint on
``external_org_id`` rather than check-then-act: a losing concurrent
creator re-reads and returns the winner's row.
"""
import logging
import re
from typing import Optional

from django.db import DatabaseError, IntegrityError, transaction

from apps.core.exceptions import StorageError, UnauthenticatedError
from apps.tenants.models import Organization

logger = logging.getLogger(__name__)

DEFAULT_ORGANIZATION_NAME = 'My Organization'

_SLUG_INVALID_CHARS = re.compile(r'[^a-z0-9]')


def slug_from_external_id(external_org_id: str) -> str:
    """Lowercase the id and replace every character outside [a-z0-9] with '-'."""
    return _SLUG_INVALID_CHARS.sub('-', external_org_id.lower())


class TenantService:
    """
    Service for organization lookup and lazy creation.
    """

    @classmethod
    def resolve_tenant(cls, identity, name: Optional[str] = None,
                       slug: Optional[str] = None) -> Organization:
        """
        Return the Organization of the session, creating it if absent.

        Args:
            identity: SessionIdentity of the caller (or None)
            name: Display-name hint used only on creation
            slug: Slug hint used only on creation

        Raises:
            UnauthenticatedError: No session, or no organization in it
            StorageError: The database failed
        """
        if identity is None or not getattr(identity, 'external_org_id', None):
            raise UnauthenticatedError()

        return cls.get_or_create_organization(
            identity.external_org_id,
            name=name or getattr(identity, 'org_name', None),
            slug=slug or getattr(identity, 'org_slug', None),
        )

    @classmethod
    def get_or_create_organization(cls, external_org_id: str, name: Optional[str] = None,
                                   slug: Optional[str] = None) -> Organization:
        """
        Find or create the Organization for an external org id.

        Safe under concurrent first contact: the insert runs in a savepoint
        and an IntegrityError means another caller won, so re-read.
        """
        try:
            organization = Organization.objects_with_deleted.filter(external_org_id=external_org_id).first()
            if organization is not None:
                return organization

            try:
                with transaction.atomic():
                    organization = Organization.objects.create(
                        external_org_id=external_org_id,
                        name=name or DEFAULT_ORGANIZATION_NAME,
                        slug=slug or slug_from_external_id(external_org_id),
                        enabled_modules=[],
                    )
            except IntegrityError:
                organization = Organization.objects_with_deleted.get(external_org_id=external_org_id)
                logger.info(
                    "Organization created concurrently, using existing row",
                    extra={'external_org_id': external_org_id, 'organization_id': str(organization.id)}
                )
                return organization

        except DatabaseError as e:
            logger.error(
                f"Failed to resolve organization: {e}",
                extra={'external_org_id': external_org_id},
                exc_info=True
            )
            raise StorageError('Failed to resolve organization') from e

        logger.info(
            f"Created organization {organization.slug}",
            extra={'external_org_id': external_org_id, 'organization_id': str(organization.id)}
        )
        return organization
