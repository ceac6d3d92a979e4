"""
Audit recorder.

``log_audit`` appends one AuditLog row for a completed mutation. It never
raises: a failed append is logged and swallowed so it cannot undo or
block the business change it describes.

Inside an atomic block the append is deferred with
``transaction.on_commit``; it then runs after the business commit and
outside that transaction, and is dropped if the transaction rolls back.
A crash between commit and append leaves a gap; there is no retry queue.
"""
import json
import logging

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction

from apps.core import context

logger = logging.getLogger(__name__)


def _snapshot(values):
    """Convert a snapshot to JSON-safe primitives (UUIDs, dates, Decimals)."""
    if values is None:
        return None
    return json.loads(json.dumps(values, cls=DjangoJSONEncoder))


def _request_meta(request):
    if request is not None:
        return (
            context.get_client_ip(request),
            request.META.get('HTTP_USER_AGENT') or context.UNKNOWN,
            getattr(request, 'request_id', None),
        )
    return context.get_request_meta()


def _append(fields):
    from apps.rbac.models import AuditLog

    try:
        return AuditLog.objects.create(**fields)
    except Exception as e:
        logger.error(
            f"Failed to write audit log: {e}",
            extra={
                'organization_id': str(fields.get('organization_id')),
                'entity_type': fields.get('entity_type'),
                'entity_id': fields.get('entity_id'),
                'audit_action': fields.get('action'),
            },
            exc_info=True
        )
        return None


def log_audit(organization_id, actor_id, action, entity_type, entity_id,
              old_values=None, new_values=None, member_id=None, request=None):
    """
    Record a mutation in the audit log.

    Args:
        organization_id: Organization the mutation belongs to
        actor_id: External user id of the actor, or 'system'
        action: CREATE, UPDATE, DELETE or READ
        entity_type: Name of the mutated entity type
        entity_id: Id of the mutated entity
        old_values: Snapshot before the change (optional)
        new_values: Snapshot after the change (optional)
        member_id: Member row of the actor, when there is one
        request: Inbound request; defaults to the ambient request context

    Returns:
        The AuditLog when written immediately, otherwise None (deferred
        until commit, or failed).
    """
    try:
        ip_address, user_agent, request_id = _request_meta(request)
        fields = {
            'organization_id': organization_id,
            'member_id': member_id,
            'actor_id': str(actor_id),
            'action': action,
            'entity_type': entity_type,
            'entity_id': str(entity_id),
            'old_values': _snapshot(old_values),
            'new_values': _snapshot(new_values),
            'ip_address': ip_address,
            'user_agent': user_agent,
            'request_id': request_id,
        }
    except (TypeError, ValueError) as e:
        logger.error(
            f"Failed to prepare audit log: {e}",
            extra={'entity_type': entity_type, 'audit_action': action},
            exc_info=True
        )
        return None

    if transaction.get_connection().in_atomic_block:
        transaction.on_commit(lambda: _append(fields))
        return None

    return _append(fields)
