"""
Tests for MemberService.
"""
from unittest.mock import patch

import pytest
from django.db import IntegrityError

from apps.core.exceptions import NotFoundError, StorageError
from apps.rbac.models import AuditLog, Member
from apps.rbac.services import MemberService


@pytest.mark.django_db
class TestEmployeeNumbers:

    def test_first_number(self, organization):
        assert MemberService.next_employee_number(organization) == 'EMP-000001'

    def test_counts_deleted_members(self, organization, make_member):
        make_member(organization, external_user_id='a', employee_number='EMP-000001')
        gone = make_member(organization, external_user_id='b', employee_number='EMP-000007')
        gone.soft_delete(deleted_by='test')

        assert MemberService.next_employee_number(organization) == 'EMP-000008'

    def test_ignores_foreign_formats(self, organization, make_member):
        make_member(organization, external_user_id='a', employee_number='LEGACY-9')

        assert MemberService.next_employee_number(organization) == 'EMP-000001'

    def test_highest_number_wins_over_string_order(self, organization, make_member):
        make_member(organization, external_user_id='a', employee_number='EMP-000009')
        make_member(organization, external_user_id='b', employee_number='EMP-000010')
        make_member(organization, external_user_id='c', employee_number='ZZZ-000099')

        assert MemberService.next_employee_number(organization) == 'EMP-000011'

    def test_past_six_digits(self, organization, make_member):
        make_member(organization, external_user_id='a', employee_number='EMP-999999')
        make_member(organization, external_user_id='b', employee_number='EMP-1000000')

        assert MemberService.next_employee_number(organization) == 'EMP-1000001'

    def test_single_query(self, organization, make_member, django_assert_num_queries):
        for index in range(5):
            make_member(organization, external_user_id=f'user_{index}')

        with django_assert_num_queries(1):
            assert MemberService.next_employee_number(organization) == 'EMP-000006'

    def test_numbers_are_per_organization(self, organization, other_organization, make_member):
        make_member(organization, external_user_id='a', employee_number='EMP-000003')

        assert MemberService.next_employee_number(other_organization) == 'EMP-000001'


@pytest.mark.django_db
class TestProvisionMember:

    def test_creates_pending_member(self, organization, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            member, created = MemberService.provision_member(
                organization, 'user_new', role='org:member', email='new@example.com',
                first_name='Ann', last_name='Lee',
            )

        assert created
        assert member.role == 'employee'
        assert member.allowed_modules == []
        assert member.position == 'Team Member'
        assert member.employee_number == 'EMP-000001'
        assert member.status == Member.STATUS_ACTIVE

        record = AuditLog.objects.get(entity_type='Member', entity_id=str(member.id))
        assert record.action == 'CREATE'
        assert record.actor_id == 'system'

    def test_admin_position(self, organization):
        member, _ = MemberService.provision_member(organization, 'user_admin', role='org:admin')

        assert member.role == 'admin'
        assert member.position == 'Administrator'

    def test_default_names(self, organization):
        member, _ = MemberService.provision_member(organization, 'user_x')

        assert (member.first_name, member.last_name) == ('New', 'Employee')

    def test_existing_active_member_returned(self, organization, make_member):
        existing = make_member(organization, external_user_id='user_1', role='accountant')

        member, created = MemberService.provision_member(organization, 'user_1', role='org:admin')

        assert not created
        assert member.id == existing.id
        assert member.role == 'accountant'

    def test_revoked_member_reprovisioned(self, organization, make_member):
        old = make_member(organization, external_user_id='user_1')
        old.soft_delete(deleted_by='test')

        member, created = MemberService.provision_member(organization, 'user_1')

        assert created
        assert member.id != old.id
        assert Member.objects_with_deleted.filter(external_user_id='user_1').count() == 2

    def test_retries_number_collision(self, organization):
        real_create = Member.objects.create
        calls = {'count': 0}

        def flaky_create(**kwargs):
            calls['count'] += 1
            if calls['count'] == 1:
                raise IntegrityError('duplicate employee number')
            return real_create(**kwargs)

        with patch.object(Member.objects, 'create', side_effect=flaky_create):
            member, created = MemberService.provision_member(organization, 'user_retry')

        assert created
        assert calls['count'] == 2

    def test_gives_up_after_attempts(self, organization):
        with patch.object(Member.objects, 'create', side_effect=IntegrityError('taken')):
            with pytest.raises(StorageError):
                MemberService.provision_member(organization, 'user_stuck')


@pytest.mark.django_db
class TestRevokeMember:

    def test_soft_deletes(self, organization, make_member, django_capture_on_commit_callbacks):
        member = make_member(organization, external_user_id='user_1', allowed_modules=['CRM'])

        with django_capture_on_commit_callbacks(execute=True):
            revoked = MemberService.revoke_member(organization, 'user_1', deleted_by='identity-webhook')

        assert revoked == 1
        member = Member.objects_with_deleted.get(id=member.id)
        assert member.deleted_at is not None
        assert member.status == Member.STATUS_TERMINATED
        assert member.termination_date is not None
        assert member.deleted_by == 'identity-webhook'
        assert not Member.objects.filter(id=member.id).exists()

        record = AuditLog.objects.get(entity_type='Member', action='DELETE')
        assert record.old_values['status'] == 'ACTIVE'
        assert record.new_values['status'] == 'TERMINATED'

    def test_unknown_user(self, organization):
        assert MemberService.revoke_member(organization, 'nobody', deleted_by='x') == 0


@pytest.mark.django_db
class TestAssignModules:

    def test_replaces_modules(self, organization, make_member, django_capture_on_commit_callbacks):
        member = make_member(organization, external_user_id='user_2', allowed_modules=['CRM'])

        with django_capture_on_commit_callbacks(execute=True):
            updated = MemberService.assign_modules(
                organization, member.id, ['FINANCE', 'SALES'], actor_id='user_admin'
            )

        assert updated.allowed_modules == ['FINANCE', 'SALES']
        record = AuditLog.objects.get(entity_type='Member', action='UPDATE')
        assert record.actor_id == 'user_admin'
        assert record.old_values == {'allowed_modules': ['CRM']}
        assert record.new_values == {'allowed_modules': ['FINANCE', 'SALES']}

    def test_empty_list_returns_to_pending(self, organization, make_member):
        member = make_member(organization, allowed_modules=['CRM'])

        updated = MemberService.assign_modules(organization, member.id, [], actor_id='user_admin')

        assert updated.allowed_modules == []

    def test_member_of_other_organization(self, organization, other_organization, make_member):
        foreign = make_member(other_organization, external_user_id='user_9')

        with pytest.raises(NotFoundError):
            MemberService.assign_modules(organization, foreign.id, ['CRM'], actor_id='user_admin')

    def test_revoked_member(self, organization, make_member):
        member = make_member(organization)
        member.soft_delete(deleted_by='test')

        with pytest.raises(NotFoundError):
            MemberService.assign_modules(organization, member.id, ['CRM'], actor_id='user_admin')
