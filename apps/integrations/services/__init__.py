"""
Integration services for inbound provider webhooks.
"""
from .payment_webhook_service import PaymentWebhookService, ReconcileOutcome, ReconcileResult
from .identity_webhook_service import IdentityWebhookService

__all__ = [
    'PaymentWebhookService',
    'ReconcileOutcome',
    'ReconcileResult',
    'IdentityWebhookService',
]
