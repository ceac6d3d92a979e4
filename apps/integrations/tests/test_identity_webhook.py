"""
Tests for identity-provider membership webhooks.
"""
import json

import pytest
from django.test import override_settings

from apps.integrations.models import WebhookLog
from apps.rbac.models import Member
from apps.tenants.models import Organization

URL = '/v1/webhooks/identity/'


def membership_event(event_type='organizationMembership.created', org_id='org_new',
                     user_id='user_9', role='org:member', **user_fields):
    return json.dumps({
        'type': event_type,
        'data': {
            'organization': {'id': org_id, 'name': 'New Co'},
            'public_user_data': {'user_id': user_id, **user_fields},
            'role': role,
        },
    })


@pytest.fixture
def post_identity(api_client, svix_headers):
    def _post(body, headers=None):
        return api_client.post(
            URL,
            data=body,
            content_type='application/json',
            **(headers if headers is not None else svix_headers(body))
        )
    return _post


@pytest.mark.django_db
class TestMembershipCreated:

    def test_creates_organization_and_pending_member(self, post_identity):
        body = membership_event(identifier='ada@newco.test', first_name='Ada', last_name='Lovelace')

        response = post_identity(body)

        assert response.status_code == 200
        assert response.json() == {'message': 'Employee created successfully'}

        organization = Organization.objects.get(external_org_id='org_new')
        assert organization.name == 'New Co'
        assert organization.slug == 'org-new'

        member = Member.objects.get(organization=organization, external_user_id='user_9')
        assert member.employee_number == 'EMP-000001'
        assert member.role == 'employee'
        assert member.allowed_modules == []
        assert member.email == 'ada@newco.test'
        assert (member.first_name, member.last_name) == ('Ada', 'Lovelace')

    def test_admin_role(self, post_identity):
        post_identity(membership_event(role='org:admin'))

        member = Member.objects.get(external_user_id='user_9')
        assert member.role == 'admin'
        assert member.position == 'Administrator'

    def test_existing_organization_reused(self, organization, post_identity):
        post_identity(membership_event(org_id='org_1'))

        assert Organization.objects.count() == 1
        assert Member.objects.filter(organization=organization, external_user_id='user_9').exists()

    def test_already_exists(self, organization, make_member, post_identity):
        make_member(organization, external_user_id='user_9', allowed_modules=['FINANCE'])

        response = post_identity(membership_event(org_id='org_1'))

        assert response.json() == {'message': 'Employee already exists'}
        assert Member.objects.filter(external_user_id='user_9').count() == 1
        assert Member.objects.get(external_user_id='user_9').allowed_modules == ['FINANCE']

    def test_numbers_continue(self, organization, make_member, post_identity):
        make_member(organization, external_user_id='user_a', employee_number='EMP-000007')

        post_identity(membership_event(org_id='org_1'))

        assert Member.objects.get(external_user_id='user_9').employee_number == 'EMP-000008'


@pytest.mark.django_db
class TestMembershipDeleted:

    def test_soft_deletes_member(self, organization, make_member, post_identity):
        member = make_member(organization, external_user_id='user_9', allowed_modules=['FINANCE'])

        response = post_identity(membership_event('organizationMembership.deleted', org_id='org_1'))

        assert response.status_code == 200
        assert response.json() == {'message': 'Employee deactivated'}
        assert not Member.objects.filter(id=member.id).exists()

        member = Member.objects_with_deleted.get(id=member.id)
        assert member.deleted_at is not None
        assert member.deleted_by == 'identity-webhook'
        assert member.status == Member.STATUS_TERMINATED

    def test_unknown_organization(self, db, post_identity):
        response = post_identity(membership_event('organizationMembership.deleted', org_id='org_missing'))

        assert response.status_code == 200
        assert not Organization.objects.filter(external_org_id='org_missing').exists()

    def test_recreated_after_delete(self, organization, make_member, post_identity):
        make_member(organization, external_user_id='user_9', employee_number='EMP-000001')
        post_identity(membership_event('organizationMembership.deleted', org_id='org_1'))

        response = post_identity(membership_event(org_id='org_1'))

        assert response.json() == {'message': 'Employee created successfully'}
        live = Member.objects.get(external_user_id='user_9')
        assert live.employee_number == 'EMP-000002'
        assert live.allowed_modules == []


@pytest.mark.django_db
class TestIdentityWebhookRejections:

    def test_other_event_acknowledged(self, post_identity):
        response = post_identity(json.dumps({'type': 'user.updated', 'data': {}}))

        assert response.status_code == 200
        assert response.json() == {'message': 'Event received'}

    def test_bad_signature(self, post_identity, svix_headers):
        body = membership_event()
        headers = svix_headers(body, secret='whsec_dGhpcyBpcyBub3QgdGhlIHNlY3JldA==')

        response = post_identity(body, headers=headers)

        assert response.status_code == 401
        assert not Organization.objects.filter(external_org_id='org_new').exists()
        assert WebhookLog.objects.get(provider='identity').status == WebhookLog.STATUS_UNAUTHORIZED

    def test_missing_headers(self, post_identity):
        response = post_identity(membership_event(), headers={})

        assert response.status_code == 401

    @override_settings(IDENTITY_WEBHOOK_SECRET='')
    def test_unconfigured_secret(self, post_identity):
        body = membership_event()

        response = post_identity(body, headers={
            'HTTP_SVIX_ID': 'msg_1',
            'HTTP_SVIX_TIMESTAMP': '0',
            'HTTP_SVIX_SIGNATURE': 'v1,abc',
        })

        assert response.status_code == 401
        assert not Organization.objects.exists()

    def test_malformed_membership(self, post_identity):
        body = json.dumps({'type': 'organizationMembership.created', 'data': {'organization': {}}})

        response = post_identity(body)

        assert response.status_code == 400
        assert WebhookLog.objects.get(provider='identity').status == WebhookLog.STATUS_ERROR

    def test_get_not_allowed(self, api_client):
        response = api_client.get(URL)

        assert response.status_code == 405
