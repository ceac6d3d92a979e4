"""
Property-based tests for the permission evaluator.

Property: a module is reachable only when the organization has it enabled
AND the caller is an admin or was granted it. Disabling a module at the
organization level overrides every grant, and a revoked member is denied
everything.
"""
from hypothesis import given, settings, strategies as st

from apps.rbac import evaluator
from apps.rbac.capabilities import (
    ADMIN,
    MODULES,
    ROLE_CAPABILITIES,
    ROLES,
    SUPERUSER_TOKENS,
)
from apps.rbac.evaluator import DenyReason
from apps.tenants.services.tenant_service import slug_from_external_id

module_sets = st.lists(st.sampled_from(MODULES), unique=True)
roles = st.sampled_from(ROLES + ('org:admin', 'org:member', 'contractor'))
natures = st.sampled_from(['read', 'write', 'delete', 'approve'])
areas = st.sampled_from(['finance', 'hr', 'sales', 'inventory', 'reports', 'crm'])


@st.composite
def module_cases(draw):
    return {
        'role': draw(roles),
        'module': draw(st.sampled_from(MODULES)),
        'enabled_modules': draw(module_sets),
        'allowed_modules': draw(st.one_of(st.none(), module_sets)),
    }


@settings(max_examples=300)
@given(case=module_cases())
def test_allow_implies_enabled_and_granted(case):
    verdict = evaluator.evaluate_module(**case)

    if verdict.allowed:
        assert case['module'] in case['enabled_modules']
        assert evaluator.is_admin(case['role']) or case['module'] in case['allowed_modules']
    else:
        assert verdict.reason is not None


@settings(max_examples=200)
@given(case=module_cases())
def test_disabled_module_overrides_grants(case):
    enabled = [module for module in case['enabled_modules'] if module != case['module']]
    allowed = (case['allowed_modules'] or []) + [case['module']]

    verdict = evaluator.evaluate_module(case['role'], case['module'], enabled, allowed)

    assert verdict == evaluator.Verdict(False, DenyReason.MODULE_DISABLED)


@given(case=module_cases())
def test_revoked_member_denied(case):
    verdict = evaluator.evaluate_module(member_active=False, **case)

    assert verdict == evaluator.Verdict(False, DenyReason.MEMBER_REVOKED)


@given(module=st.sampled_from(MODULES), enabled=module_sets)
def test_admin_needs_only_enabled(module, enabled):
    allowed = evaluator.module_allowed(ADMIN, module, enabled, allowed_modules=[])

    assert allowed == (module in enabled)


@given(role=roles, area=areas, nature=natures)
def test_capability_matches_role_table(role, area, nature):
    capability = f'{area}:{nature}'
    granted = ROLE_CAPABILITIES.get(evaluator.normalize_role(role), frozenset())

    expected = capability in granted or SUPERUSER_TOKENS.get(nature) in granted

    assert evaluator.has_capability(role, capability) == expected
    assert evaluator.has_capability(role, capability, member_active=False) is False


@given(external_id=st.text(min_size=1, max_size=40))
def test_slug_is_url_safe(external_id):
    slug = slug_from_external_id(external_id)

    assert all(char in 'abcdefghijklmnopqrstuvwxyz0123456789-' for char in slug)
    assert slug == slug_from_external_id(slug)
