"""
Order notification emails.

Composes the customer payment confirmation and the internal new-order
notification sent after a payment is reconciled.
"""
import logging

from django.conf import settings

from apps.core.services.email_service import EmailService

logger = logging.getLogger(__name__)


def _base_url():
    return getattr(settings, 'FRONTEND_URL', 'http://localhost:3000').rstrip('/')


def tracking_url(order):
    return f"{_base_url()}/store/{order.store.slug}/order/{order.order_number}"


def send_payment_confirmation(order, payment_method):
    """Tell the customer their payment was received."""
    subject = f"Payment received for order {order.order_number}"
    text = (
        f"Hi {order.customer_name},\n\n"
        f"We have received your payment of {order.currency} {order.total_amount} "
        f"for order {order.order_number} at {order.store.name} via {payment_method}.\n\n"
        f"Track your order: {tracking_url(order)}\n"
    )
    return EmailService.send_email(
        to_emails=[order.customer_email],
        subject=subject,
        text_content=text,
    )


def send_new_order_notification(order, admin_email):
    """Tell the store's staff a paid order is ready for fulfilment."""
    subject = f"New paid order {order.order_number} - {order.store.name}"
    text = (
        f"Order {order.order_number} has been paid.\n\n"
        f"Customer: {order.customer_name} <{order.customer_email}>\n"
        f"Total: {order.currency} {order.total_amount}\n"
        f"Items: {order.item_count}\n\n"
        f"Open the dashboard: {_base_url()}/dashboard/ecommerce\n"
    )
    return EmailService.send_email(
        to_emails=[admin_email],
        subject=subject,
        text_content=text,
    )
