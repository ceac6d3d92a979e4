"""
Payment webhook reconciliation.

Moves a PaymentOrder from UNPAID to PAID exactly once per payment
reference, however many times the provider delivers the event:

1. verify the provider signature (AuthenticityError otherwise)
2. normalise the event; anything but a successful completion is ignored
3. find the order by payment reference (benign "order not found" miss)
4. short-circuit if the order is already PAID
5. compare-and-set UNPAID -> PAID/CONFIRMED in one conditional UPDATE
6. after commit, queue the customer confirmation and the internal
   new-order notification

Notification failures are logged and never undo the transition.
"""
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.core.exceptions import StorageError, ValidationError
from apps.integrations.services.providers import PaymentEvent, get_provider
from apps.orders.models import PaymentOrder
from apps.rbac.audit import log_audit
from apps.rbac.models import AuditLog

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    PROCESSED = 'processed'
    ALREADY_PROCESSED = 'already_processed'
    ORDER_NOT_FOUND = 'order_not_found'
    IGNORED = 'ignored'


OUTCOME_MESSAGES = {
    ReconcileOutcome.PROCESSED: 'Payment processed successfully',
    ReconcileOutcome.ALREADY_PROCESSED: 'Already processed',
    ReconcileOutcome.ORDER_NOT_FOUND: 'Order not found',
    ReconcileOutcome.IGNORED: 'Event received',
}


@dataclass(frozen=True)
class ReconcileResult:
    outcome: ReconcileOutcome
    event: Optional[PaymentEvent] = None
    order_id: Optional[str] = None
    organization_id: Optional[str] = None

    @property
    def message(self):
        return OUTCOME_MESSAGES[self.outcome]

    def as_response(self):
        return {'message': self.message, 'outcome': self.outcome.value}


def parse_body(raw_body) -> dict:
    """Decode a JSON object body. Raises ValidationError otherwise."""
    try:
        payload = json.loads(raw_body)
    except (TypeError, ValueError, UnicodeDecodeError) as e:
        raise ValidationError('Invalid JSON') from e
    if not isinstance(payload, dict):
        raise ValidationError('Invalid JSON')
    return payload


class PaymentWebhookService:
    """
    Service reconciling payment provider webhooks with orders.
    """

    @classmethod
    def reconcile(cls, provider_name: str, raw_body: bytes, headers) -> ReconcileResult:
        """
        Verify and apply one webhook delivery.

        Args:
            provider_name: 'stripe' or 'flutterwave'
            raw_body: Request body exactly as received
            headers: Request headers (case-insensitive mapping)

        Raises:
            AuthenticityError: Missing or invalid signature
            ValidationError: Signed body is not a JSON object
            StorageError: The database failed
        """
        provider = get_provider(provider_name)
        provider.verify(raw_body, headers)

        event = provider.parse_event(parse_body(raw_body))
        return cls.apply_event(event, payment_method=provider.label)

    @classmethod
    def apply_event(cls, event: PaymentEvent, payment_method: str) -> ReconcileResult:
        """Apply a verified, normalised event."""
        if not event.is_payment_success:
            logger.info(
                "Ignoring payment webhook event",
                extra={'provider': event.provider, 'event_type': event.event_type}
            )
            return ReconcileResult(ReconcileOutcome.IGNORED, event=event)

        try:
            order = PaymentOrder.objects.by_payment_reference(event.reference, store_id=event.store_id)
        except DatabaseError as e:
            logger.error(f"Failed to look up order: {e}", exc_info=True)
            raise StorageError('Failed to look up order') from e

        if order is None:
            logger.info(
                "No order for payment reference",
                extra={'provider': event.provider, 'payment_reference': event.reference}
            )
            return ReconcileResult(ReconcileOutcome.ORDER_NOT_FOUND, event=event)

        organization_id = str(order.store.organization_id)

        if order.is_paid:
            return cls._already_processed(event, order, organization_id)

        paid_at = timezone.now()
        try:
            with transaction.atomic():
                updated = PaymentOrder.objects.mark_paid(order.id, paid_at=paid_at)
                if updated:
                    order_id = str(order.id)
                    transaction.on_commit(
                        lambda: cls.dispatch_notifications(order_id, payment_method)
                    )
        except DatabaseError as e:
            logger.error(
                f"Failed to mark order paid: {e}",
                extra={'order_id': str(order.id)},
                exc_info=True
            )
            raise StorageError('Failed to update order') from e

        if not updated:
            # A concurrent delivery of the same event won the compare-and-set
            return cls._already_processed(event, order, organization_id)

        logger.info(
            f"Order {order.order_number} marked paid",
            extra={
                'order_id': str(order.id),
                'organization_id': organization_id,
                'provider': event.provider,
                'payment_reference': event.reference,
            }
        )

        log_audit(
            organization_id=organization_id,
            actor_id=AuditLog.SYSTEM_ACTOR,
            action=AuditLog.ACTION_UPDATE,
            entity_type='PaymentOrder',
            entity_id=order.id,
            old_values={'payment_status': order.payment_status, 'status': order.status},
            new_values={
                'payment_status': PaymentOrder.PAYMENT_PAID,
                'status': PaymentOrder.STATUS_CONFIRMED,
                'paid_at': paid_at,
                'provider': event.provider,
            },
        )

        return ReconcileResult(
            ReconcileOutcome.PROCESSED,
            event=event,
            order_id=str(order.id),
            organization_id=organization_id,
        )

    @classmethod
    def _already_processed(cls, event, order, organization_id):
        logger.info(
            "Payment webhook already processed",
            extra={'order_id': str(order.id), 'payment_reference': event.reference}
        )
        return ReconcileResult(
            ReconcileOutcome.ALREADY_PROCESSED,
            event=event,
            order_id=str(order.id),
            organization_id=organization_id,
        )

    @staticmethod
    def dispatch_notifications(order_id: str, payment_method: str):
        """
        Queue the customer confirmation and, when ADMIN_EMAIL is set, the
        internal new-order notification. Failures are logged only.
        """
        from apps.orders.tasks import (
            send_new_order_notification_email,
            send_payment_confirmation_email,
        )

        try:
            send_payment_confirmation_email.delay(order_id, payment_method)
        except Exception as e:
            logger.error(
                f"Failed to queue payment confirmation: {e}",
                extra={'order_id': order_id},
                exc_info=True
            )

        admin_email = getattr(settings, 'ADMIN_EMAIL', None)
        if not admin_email:
            return

        try:
            send_new_order_notification_email.delay(order_id, admin_email)
        except Exception as e:
            logger.error(
                f"Failed to queue new-order notification: {e}",
                extra={'order_id': order_id},
                exc_info=True
            )
