"""
Payment webhook views for handling payment provider callbacks.
"""
import logging

from django.db import DatabaseError
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core import context
from apps.core.exceptions import AuthenticityError, ValidationError
from apps.core.logging import SecurityLogger
from apps.integrations.models import WebhookLog
from apps.integrations.services.payment_webhook_service import (
    PaymentWebhookService,
    ReconcileOutcome,
    parse_body,
)

logger = logging.getLogger(__name__)


def start_webhook_log(provider, request, event_key):
    """
    Record receipt of a webhook. Best effort: returns None if the log
    cannot be written.
    """
    try:
        payload = parse_body(request.body)
    except ValidationError:
        payload = {}

    ip_address, user_agent, request_id = context.get_request_meta()
    try:
        return WebhookLog.objects.create(
            provider=provider,
            event=str(payload.get(event_key) or 'unknown')[:100],
            payload=payload,
            ip_address=ip_address,
            user_agent=user_agent,
            request_id=request_id,
        )
    except DatabaseError as e:
        logger.error(f"Failed to write webhook log: {e}", extra={'provider': provider}, exc_info=True)
        return None


def update_webhook_log(webhook_log, method, *args, **kwargs):
    """Call a WebhookLog.mark_* method, logging instead of raising on failure."""
    if webhook_log is None:
        return
    try:
        getattr(webhook_log, method)(*args, **kwargs)
    except DatabaseError as e:
        logger.error(
            f"Failed to update webhook log: {e}",
            extra={'webhook_id': str(webhook_log.id)},
            exc_info=True
        )


class PaymentWebhookView(APIView):
    """
    Base view for payment provider webhooks.

    Public endpoint (no session): authenticity comes from the provider
    signature, verified before the payload is trusted. Safe to call
    repeatedly with the same body.

    Responses:
    - 200 for processed, already processed, order not found and ignored
    - 401 when the signature is missing or invalid
    - 400 when a signed body is not JSON
    - 500 (generic body) for unexpected failures
    """
    authentication_classes = []
    permission_classes = []

    provider_name = None
    event_key = 'type'

    def post(self, request):
        webhook_log = start_webhook_log(self.provider_name, request, self.event_key)
        webhook_id = str(webhook_log.id) if webhook_log else None

        try:
            result = PaymentWebhookService.reconcile(
                self.provider_name, request.body, request.headers
            )

        except AuthenticityError as e:
            ip_address, user_agent, _ = context.get_request_meta()
            SecurityLogger.log_invalid_webhook_signature(
                provider=self.provider_name,
                ip_address=ip_address,
                url=request.build_absolute_uri(),
                user_agent=user_agent,
                reason=e.message,
            )
            update_webhook_log(webhook_log, 'mark_unauthorized', e.message)
            return Response({'error': 'Invalid signature'}, status=status.HTTP_401_UNAUTHORIZED)

        except ValidationError as e:
            logger.error(
                f"Invalid {self.provider_name} webhook payload",
                extra={'webhook_id': webhook_id}
            )
            update_webhook_log(webhook_log, 'mark_error', e.message)
            return Response({'error': 'Invalid JSON'}, status=status.HTTP_400_BAD_REQUEST)

        except Exception as e:
            logger.error(
                f"Unexpected error processing {self.provider_name} webhook: {str(e)}",
                exc_info=True,
                extra={'webhook_id': webhook_id}
            )
            update_webhook_log(webhook_log, 'mark_error', str(e))
            return Response(
                {'error': 'Webhook processing failed'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        body = result.as_response()
        if result.outcome == ReconcileOutcome.IGNORED:
            update_webhook_log(webhook_log, 'mark_ignored', body)
        else:
            update_webhook_log(webhook_log, 'mark_success', body, organization_id=result.organization_id)

        logger.info(
            f"{self.provider_name} webhook handled: {result.outcome.value}",
            extra={'webhook_id': webhook_id, 'order_id': result.order_id}
        )
        return Response(body, status=status.HTTP_200_OK)


class StripeWebhookView(PaymentWebhookView):
    """
    Handle Stripe payment webhooks.

    POST /v1/webhooks/stripe/
    """
    provider_name = 'stripe'
    event_key = 'type'

    @extend_schema(
        tags=['Webhooks'],
        summary="Stripe webhook handler",
        description="Reconcile Stripe checkout.session.completed events with orders",
        request={'application/json': {'type': 'object'}},
        responses={
            200: {'description': 'Processed, already processed, order not found, or ignored'},
            400: {'description': 'Invalid JSON'},
            401: {'description': 'Invalid signature'},
            500: {'description': 'Webhook processing failed'},
        }
    )
    def post(self, request):
        return super().post(request)


class FlutterwaveWebhookView(PaymentWebhookView):
    """
    Handle Flutterwave payment webhooks.

    POST /v1/webhooks/flutterwave/
    """
    provider_name = 'flutterwave'
    event_key = 'event'

    @extend_schema(
        tags=['Webhooks'],
        summary="Flutterwave webhook handler",
        description="Reconcile Flutterwave charge.completed events with orders",
        request={'application/json': {'type': 'object'}},
        responses={
            200: {'description': 'Processed, already processed, order not found, or ignored'},
            400: {'description': 'Invalid JSON'},
            401: {'description': 'Invalid signature'},
            500: {'description': 'Webhook processing failed'},
        }
    )
    def post(self, request):
        return super().post(request)
