"""
Identity-provider membership webhooks.

Keeps Member rows in step with the identity provider's organization
memberships. Events are svix-signed with IDENTITY_WEBHOOK_SECRET.

- organizationMembership.created: resolve/create the organization and
  provision a pending-setup member
- organizationMembership.deleted: soft-delete the active member
"""
import logging

from django.conf import settings
from svix.webhooks import Webhook, WebhookVerificationError

from apps.core.exceptions import AuthenticityError, ValidationError
from apps.rbac.services import MemberService
from apps.tenants.models import Organization
from apps.tenants.services import TenantService
from apps.tenants.services.tenant_service import slug_from_external_id

logger = logging.getLogger(__name__)

MEMBERSHIP_CREATED = 'organizationMembership.created'
MEMBERSHIP_DELETED = 'organizationMembership.deleted'

REVOKED_BY = 'identity-webhook'

SVIX_HEADERS = ('svix-id', 'svix-timestamp', 'svix-signature')


class IdentityWebhookService:
    """
    Service applying identity-provider membership events.
    """

    @classmethod
    def verify(cls, raw_body, headers) -> dict:
        """
        Verify the svix signature and return the decoded event.

        Raises:
            AuthenticityError: Secret not configured, or signature invalid
        """
        secret = getattr(settings, 'IDENTITY_WEBHOOK_SECRET', None)
        if not secret:
            raise AuthenticityError('Identity webhook secret not configured')

        svix_headers = {name: headers.get(name, '') for name in SVIX_HEADERS}
        try:
            event = Webhook(secret).verify(raw_body, svix_headers)
        except WebhookVerificationError as e:
            raise AuthenticityError('Invalid identity webhook signature') from e

        if not isinstance(event, dict):
            raise ValidationError('Invalid event')
        return event

    @classmethod
    def handle(cls, raw_body, headers):
        """
        Verify and apply one event.

        Returns:
            tuple: (message, organization_id or None)
        """
        event = cls.verify(raw_body, headers)
        event_type = event.get('type')
        data = event.get('data') or {}

        if event_type == MEMBERSHIP_CREATED:
            return cls.membership_created(data)
        if event_type == MEMBERSHIP_DELETED:
            return cls.membership_deleted(data)

        logger.info("Ignoring identity webhook event", extra={'event_type': event_type})
        return 'Event received', None

    @staticmethod
    def _parse_membership(data):
        organization = data.get('organization') or {}
        user = data.get('public_user_data') or {}
        if not organization.get('id') or not user.get('user_id'):
            raise ValidationError('Membership event missing organization or user id')
        return organization, user

    @classmethod
    def membership_created(cls, data):
        organization_data, user = cls._parse_membership(data)
        external_org_id = organization_data['id']

        organization = TenantService.get_or_create_organization(
            external_org_id,
            name=organization_data.get('name') or 'Organization',
            slug=slug_from_external_id(external_org_id),
        )

        member, created = MemberService.provision_member(
            organization,
            external_user_id=user['user_id'],
            role=data.get('role'),
            email=user.get('identifier') or '',
            first_name=user.get('first_name') or '',
            last_name=user.get('last_name') or '',
        )
        if not created:
            return 'Employee already exists', str(organization.id)

        return 'Employee created successfully', str(organization.id)

    @classmethod
    def membership_deleted(cls, data):
        organization_data, user = cls._parse_membership(data)

        organization = Organization.objects.by_external_id(organization_data['id'])
        if organization is None:
            return 'Employee deactivated', None

        MemberService.revoke_member(organization, user['user_id'], deleted_by=REVOKED_BY)
        return 'Employee deactivated', str(organization.id)
