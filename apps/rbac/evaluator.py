"""
Permission evaluator.

Pure functions over (role, enabled modules, allowed modules, capability).
No I/O: callers load the organization and member snapshot once and pass
the values in, so the same inputs always produce the same verdict.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from apps.rbac.capabilities import (
    ADMIN,
    ROLE_CAPABILITIES,
    SUPERUSER_TOKENS,
    is_known_module,
    normalize_role,
)


class DenyReason(str, Enum):
    NO_SESSION = 'no_session'
    MODULE_DISABLED = 'module_disabled'
    NOT_GRANTED = 'not_granted'
    PENDING_SETUP = 'pending_setup'
    MEMBER_NOT_FOUND = 'member_not_found'
    MEMBER_REVOKED = 'member_revoked'
    UNKNOWN_MODULE = 'unknown_module'


@dataclass(frozen=True)
class Verdict:
    allowed: bool
    reason: Optional[DenyReason] = None

    def __bool__(self):
        return self.allowed


ALLOW = Verdict(True)


def _deny(reason):
    return Verdict(False, reason)


def capabilities_for(role) -> frozenset:
    """Static capability set of a role; unknown roles have none."""
    return ROLE_CAPABILITIES.get(normalize_role(role), frozenset())


def _capability_nature(capability):
    # "finance:write" -> "write"
    _, _, nature = capability.rpartition(':')
    return nature


def evaluate_capability(role, capability, member_active=True) -> Verdict:
    """
    Allow iff the role grants ``capability`` exactly, or grants the
    superuser token of the same nature (read:all for *:read, and so on).
    """
    if not member_active:
        return _deny(DenyReason.MEMBER_REVOKED)

    granted = capabilities_for(role)
    if capability in granted:
        return ALLOW

    superuser_token = SUPERUSER_TOKENS.get(_capability_nature(capability))
    if superuser_token and superuser_token in granted:
        return ALLOW

    return _deny(DenyReason.NOT_GRANTED)


def has_capability(role, capability, member_active=True) -> bool:
    return evaluate_capability(role, capability, member_active).allowed


def is_admin(role) -> bool:
    return normalize_role(role) == ADMIN


def evaluate_module(role, module, enabled_modules: Iterable[str],
                    allowed_modules: Optional[Iterable[str]],
                    member_active=True) -> Verdict:
    """
    Allow iff the module is enabled for the organization AND the role is
    admin or the module is in the member's allowed set.

    ``allowed_modules`` is None when there is no member record, which
    denies every non-admin. An inactive (soft-deleted) member always
    denies.
    """
    if not member_active:
        return _deny(DenyReason.MEMBER_REVOKED)
    if not is_known_module(module):
        return _deny(DenyReason.UNKNOWN_MODULE)
    if module not in set(enabled_modules or ()):
        return _deny(DenyReason.MODULE_DISABLED)
    if is_admin(role):
        return ALLOW
    if allowed_modules is None:
        return _deny(DenyReason.MEMBER_NOT_FOUND)

    allowed = set(allowed_modules)
    if not allowed:
        return _deny(DenyReason.PENDING_SETUP)
    if module not in allowed:
        return _deny(DenyReason.NOT_GRANTED)
    return ALLOW


def module_allowed(role, module, enabled_modules, allowed_modules, member_active=True) -> bool:
    return evaluate_module(role, module, enabled_modules, allowed_modules, member_active).allowed


def is_pending_setup(role, allowed_modules: Optional[Iterable[str]]) -> bool:
    """A non-admin with no member record or no allowed modules is pending setup."""
    if is_admin(role):
        return False
    return not allowed_modules
