"""
DRF permission classes and decorators for the access gate.

This module provides:
- HasModuleAccess: enforces the module gate declared by ``required_module``
- HasCapability: enforces capabilities declared by ``required_capabilities``
- NotPendingSetup: rejects members who have no modules assigned yet
- @requires_module / @requires_capability: declare requirements on views

On allow, the AccessDecision is attached to ``request.access`` for the
view. On deny, UnauthenticatedError or AccessDeniedError is raised with a
``redirect_to`` hint; the deny reason stays in the logs.
"""
import logging
from functools import wraps

from rest_framework.permissions import BasePermission

from apps.core.exceptions import AccessDeniedError, UnauthenticatedError
from apps.rbac.evaluator import DenyReason
from apps.rbac.gate import AccessGate

logger = logging.getLogger(__name__)


def get_identity(request):
    """SessionIdentity of the request, or None."""
    identity = getattr(request, 'identity', None)
    if identity is None:
        django_request = getattr(request, '_request', None)
        identity = getattr(django_request, 'identity', None)
    return identity


def enforce(request, decision):
    """
    Raise for a denied decision, otherwise attach it to the request.

    Returns:
        The decision, when allowed
    """
    if decision.allowed:
        request.access = decision
        return decision

    if decision.reason == DenyReason.NO_SESSION:
        raise UnauthenticatedError(redirect_to=decision.redirect_to)

    raise AccessDeniedError(
        reason=decision.reason,
        redirect_to=decision.redirect_to,
        details={'pending_setup': True} if decision.pending_setup else None,
    )


def _as_set(value):
    if not value:
        return set()
    if isinstance(value, str):
        return {value}
    return set(value)


class HasModuleAccess(BasePermission):
    """
    Module gate for module-scoped views.

    Usage:
        class InvoiceView(APIView):
            permission_classes = [HasModuleAccess]
            required_module = 'FINANCE'
    """

    gate_class = AccessGate

    def has_permission(self, request, view):
        module = getattr(view, 'required_module', None)
        if not module:
            return True

        decision = self.gate_class().check_module_access(get_identity(request), module)
        enforce(request, decision)
        return True


class HasCapability(BasePermission):
    """
    Capability gate. Every capability in ``required_capabilities`` must be
    granted.

    Usage:
        @requires_capability('finance:write')
        class PaymentView(APIView):
            permission_classes = [HasCapability]
    """

    gate_class = AccessGate

    def has_permission(self, request, view):
        required = _as_set(getattr(view, 'required_capabilities', None))
        if not required:
            return True

        gate = self.gate_class()
        identity = get_identity(request)
        decision = None
        for capability in sorted(required):
            decision = gate.check_capability(identity, capability)
            if not decision.allowed:
                break

        enforce(request, decision)
        return True

    def has_object_permission(self, request, view, obj):
        """Objects must belong to the caller's organization."""
        access = getattr(request, 'access', None)
        organization_id = getattr(obj, 'organization_id', None)
        if access is None or organization_id is None:
            return True
        if str(organization_id) != access.organization_id:
            logger.warning(
                "Object permission denied: object belongs to another organization",
                extra={
                    'organization_id': access.organization_id,
                    'object_type': obj.__class__.__name__,
                    'object_id': str(getattr(obj, 'id', None)),
                    'view': view.__class__.__name__,
                }
            )
            return False
        return True


class NotPendingSetup(BasePermission):
    """
    Reject non-admin members with no allowed modules.

    The 403 body carries ``details.pending_setup`` so the client can show
    the onboarding screen instead of a generic forbidden page.
    """

    gate_class = AccessGate

    def has_permission(self, request, view):
        decision = self.gate_class().check_not_pending_setup(get_identity(request))
        enforce(request, decision)
        return True


def _requirement_decorator(attribute, value):
    def decorator(view_or_method):
        if isinstance(view_or_method, type):
            setattr(view_or_method, attribute, value)
            return view_or_method

        @wraps(view_or_method)
        def wrapped(self, request, *args, **kwargs):
            return view_or_method(self, request, *args, **kwargs)

        setattr(wrapped, attribute, value)
        return wrapped

    return decorator


def requires_module(module):
    """
    Declare the module a view class belongs to.

    Usage:
        @requires_module('FINANCE')
        class InvoiceListView(APIView):
            permission_classes = [HasModuleAccess]
    """
    return _requirement_decorator('required_module', module)


def requires_capability(*capabilities):
    """
    Declare capabilities on a view class, or on a handler method.

    Method-level declarations are picked up by CapabilityMixin, which
    copies them onto the view before permissions are checked.
    """
    return _requirement_decorator('required_capabilities', set(capabilities))


class CapabilityMixin:
    """
    Let handler methods carry their own ``@requires_capability`` so GET and
    PUT on one view can require different capabilities.
    """

    def initial(self, request, *args, **kwargs):
        handler = getattr(self, request.method.lower(), None)
        method_caps = getattr(handler, 'required_capabilities', None)
        if method_caps is not None:
            self.required_capabilities = method_caps
        super().initial(request, *args, **kwargs)
