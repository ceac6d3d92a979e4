"""
Celery tasks for order notifications.

Queued by the payment reconciler after the PAID transition commits.
Failures are retried a few times, then logged; they never touch the
order's payment state.
"""
import logging

from celery import shared_task

from apps.core.services.email_service import EmailServiceError

logger = logging.getLogger(__name__)


def _get_order(order_id):
    from apps.orders.models import PaymentOrder

    return PaymentOrder.objects.select_related('store').filter(id=order_id).first()


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(EmailServiceError,),
    retry_backoff=True,
    retry_jitter=True
)
def send_payment_confirmation_email(self, order_id: str, payment_method: str):
    """
    Send the customer payment confirmation for a paid order.

    Args:
        order_id: UUID of the PaymentOrder
        payment_method: Provider label shown to the customer
    """
    from apps.orders.notifications import send_payment_confirmation

    order = _get_order(order_id)
    if order is None:
        logger.error("Order not found for payment confirmation", extra={'order_id': order_id})
        return {'status': 'error', 'error': 'Order not found'}

    send_payment_confirmation(order, payment_method)
    logger.info(
        "Payment confirmation sent",
        extra={'order_id': order_id, 'task_id': self.request.id}
    )
    return {'status': 'sent', 'order_id': order_id}


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(EmailServiceError,),
    retry_backoff=True,
    retry_jitter=True
)
def send_new_order_notification_email(self, order_id: str, admin_email: str):
    """
    Send the internal new-order notification for a paid order.

    Args:
        order_id: UUID of the PaymentOrder
        admin_email: Recipient (ADMIN_EMAIL)
    """
    from apps.orders.notifications import send_new_order_notification

    order = _get_order(order_id)
    if order is None:
        logger.error("Order not found for new-order notification", extra={'order_id': order_id})
        return {'status': 'error', 'error': 'Order not found'}

    send_new_order_notification(order, admin_email)
    logger.info(
        "New-order notification sent",
        extra={'order_id': order_id, 'task_id': self.request.id}
    )
    return {'status': 'sent', 'order_id': order_id}
