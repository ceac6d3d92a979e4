"""
Access gate.

Per-request enforcement of the permission evaluator. The gate resolves the
organization of the session, loads the member snapshot once, evaluates,
and returns an AccessDecision. It never redirects or raises for a deny:
the calling layer (DRF permission classes, views) decides how to react.

All deny reasons produce the same external redirect; they are only
distinguished in the security log.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import DatabaseError
from django.db.models import F

from apps.core import context
from apps.core.exceptions import StorageError, UnauthenticatedError
from apps.core.logging import SecurityLogger
from apps.rbac import evaluator
from apps.rbac.capabilities import normalize_role
from apps.rbac.evaluator import DenyReason
from apps.tenants.services import TenantService

logger = logging.getLogger(__name__)


def sign_in_url():
    return getattr(settings, 'ACCESS_SIGN_IN_URL', '/sign-in')


def default_url():
    return getattr(settings, 'ACCESS_DEFAULT_URL', '/dashboard')


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a gate check plus the resolved principal on allow."""

    allowed: bool
    reason: Optional[DenyReason] = None
    organization_id: Optional[str] = None
    member_id: Optional[str] = None
    role: Optional[str] = None
    external_user_id: Optional[str] = None

    def __bool__(self):
        return self.allowed

    @property
    def redirect_to(self):
        """Deny action: sign-in for a missing session, the default view otherwise."""
        if self.allowed:
            return None
        if self.reason == DenyReason.NO_SESSION:
            return sign_in_url()
        return default_url()

    @property
    def pending_setup(self):
        return self.reason == DenyReason.PENDING_SETUP


@dataclass(frozen=True)
class _Snapshot:
    """Organization and member values read once per decision."""

    organization_id: str
    enabled_modules: tuple
    member_id: Optional[str]
    allowed_modules: Optional[tuple]
    member_active: bool
    role: Optional[str]


class AccessGate:
    """
    Resolve identity -> organization -> member, then evaluate.

    Usage:
        decision = AccessGate().check_module_access(request.identity, 'FINANCE')
        if not decision:
            return redirect(decision.redirect_to)
    """

    def _load_snapshot(self, identity) -> _Snapshot:
        from apps.rbac.models import Member

        organization = TenantService.resolve_tenant(identity)

        try:
            # Non-deleted row first, so a revoked-then-readded user resolves
            # to the live membership
            member = (
                Member.objects_with_deleted
                .filter(organization=organization, external_user_id=identity.external_user_id)
                .order_by(F('deleted_at').asc(nulls_first=True), '-created_at')
                .first()
            )
        except DatabaseError as e:
            logger.error(
                f"Failed to load member: {e}",
                extra={'organization_id': str(organization.id)},
                exc_info=True
            )
            raise StorageError('Failed to load member') from e

        if member is not None and member.is_active_member:
            role = member.role
            allowed_modules = tuple(member.allowed_modules or ())
        else:
            # Unprovisioned users fall back to the identity provider's role claim
            role = identity.role
            allowed_modules = None

        return _Snapshot(
            organization_id=str(organization.id),
            enabled_modules=tuple(organization.enabled_modules or ()),
            member_id=str(member.id) if member is not None and member.is_active_member else None,
            allowed_modules=allowed_modules,
            member_active=member is None or member.is_active_member,
            role=normalize_role(role),
        )

    def _decide(self, identity, snapshot: _Snapshot, verdict, target) -> AccessDecision:
        decision = AccessDecision(
            allowed=verdict.allowed,
            reason=verdict.reason,
            organization_id=snapshot.organization_id,
            member_id=snapshot.member_id,
            role=snapshot.role,
            external_user_id=identity.external_user_id,
        )
        if not decision.allowed:
            self._log_denied(decision.reason, identity, snapshot.organization_id, target)
        return decision

    def _no_session(self, identity, target) -> AccessDecision:
        self._log_denied(DenyReason.NO_SESSION, identity, None, target)
        return AccessDecision(allowed=False, reason=DenyReason.NO_SESSION)

    def _log_denied(self, reason, identity, organization_id, target):
        ip_address, _, _ = context.get_request_meta()
        SecurityLogger.log_access_denied(
            reason=reason.value,
            external_user_id=getattr(identity, 'external_user_id', None),
            organization_id=organization_id,
            target=target,
            ip_address=ip_address,
        )

    def _resolve(self, identity, target):
        """Return the snapshot, or None when there is no usable session."""
        if identity is None or not getattr(identity, 'has_organization', False):
            return None
        try:
            return self._load_snapshot(identity)
        except UnauthenticatedError:
            return None

    def check_module_access(self, identity, module) -> AccessDecision:
        """
        Module gate: the module must be enabled for the organization and,
        for non-admins, allowed for the member.
        """
        snapshot = self._resolve(identity, module)
        if snapshot is None:
            return self._no_session(identity, module)

        verdict = evaluator.evaluate_module(
            snapshot.role,
            module,
            snapshot.enabled_modules,
            snapshot.allowed_modules,
            member_active=snapshot.member_active,
        )
        return self._decide(identity, snapshot, verdict, module)

    def check_capability(self, identity, capability) -> AccessDecision:
        """Fine-grained capability gate derived from the role."""
        snapshot = self._resolve(identity, capability)
        if snapshot is None:
            return self._no_session(identity, capability)

        verdict = evaluator.evaluate_capability(
            snapshot.role, capability, member_active=snapshot.member_active
        )
        return self._decide(identity, snapshot, verdict, capability)

    def check_not_pending_setup(self, identity) -> AccessDecision:
        """
        Deny with PENDING_SETUP when a non-admin has no allowed modules, so
        the UI can show onboarding instead of a generic forbidden page.
        """
        snapshot = self._resolve(identity, 'setup')
        if snapshot is None:
            return self._no_session(identity, 'setup')

        if not snapshot.member_active:
            verdict = evaluator.Verdict(False, DenyReason.MEMBER_REVOKED)
        elif evaluator.is_pending_setup(snapshot.role, snapshot.allowed_modules):
            verdict = evaluator.Verdict(False, DenyReason.PENDING_SETUP)
        else:
            verdict = evaluator.ALLOW
        return self._decide(identity, snapshot, verdict, 'setup')

    def has_capability(self, identity, capability) -> bool:
        """Boolean form of check_capability for code that only needs the verdict."""
        return self.check_capability(identity, capability).allowed
