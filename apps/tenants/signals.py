"""
Signals for organization lifecycle events.
"""
import logging
from django.db.models.signals import post_save
from django.dispatch import receiver

from apps.rbac.audit import log_audit
from apps.tenants.models import Organization

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Organization)
def audit_organization_creation(sender, instance, created, **kwargs):
    """
    Record lazy creation of an organization in its audit log.

    Organizations are created on first contact by the tenant resolver or
    the identity webhook, neither of which has a member yet, so the actor
    is the system.
    """
    if not created:
        return

    log_audit(
        organization_id=instance.id,
        actor_id='system',
        action='CREATE',
        entity_type='Organization',
        entity_id=instance.id,
        new_values={
            'external_org_id': instance.external_org_id,
            'name': instance.name,
            'slug': instance.slug,
            'enabled_modules': instance.enabled_modules,
        },
    )
