"""
Identity-provider webhook view.

Handles organization membership events from the identity provider.
"""
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from apps.core import context
from apps.core.exceptions import AuthenticityError, ValidationError
from apps.core.logging import SecurityLogger
from apps.integrations.services import IdentityWebhookService
from apps.integrations.views_payment import start_webhook_log, update_webhook_log

logger = logging.getLogger(__name__)


@csrf_exempt
@require_http_methods(["POST"])
def identity_webhook(request):
    """
    Handle identity-provider membership webhooks.

    Process flow:
    1. Create webhook log entry
    2. Verify the svix signature
    3. Provision or revoke the member

    Returns:
        JsonResponse 200 with a message for handled and ignored events
        JsonResponse 401 if signature verification fails
        JsonResponse 400 if the event is malformed
        JsonResponse 500 if processing fails
    """
    webhook_log = start_webhook_log('identity', request, 'type')
    webhook_id = str(webhook_log.id) if webhook_log else None

    try:
        message, organization_id = IdentityWebhookService.handle(request.body, request.headers)

    except AuthenticityError as e:
        ip_address, user_agent, _ = context.get_request_meta()
        SecurityLogger.log_invalid_webhook_signature(
            provider='identity',
            ip_address=ip_address,
            url=request.build_absolute_uri(),
            user_agent=user_agent,
            reason=e.message,
        )
        update_webhook_log(webhook_log, 'mark_unauthorized', e.message)
        return JsonResponse({'error': 'Invalid signature'}, status=401)

    except ValidationError as e:
        logger.warning(f"Malformed identity webhook: {e.message}", extra={'webhook_id': webhook_id})
        update_webhook_log(webhook_log, 'mark_error', e.message)
        return JsonResponse({'error': 'Invalid event'}, status=400)

    except Exception as e:
        logger.error(
            f"Identity webhook processing failed: {str(e)}",
            exc_info=True,
            extra={'webhook_id': webhook_id}
        )
        update_webhook_log(webhook_log, 'mark_error', str(e))
        return JsonResponse({'error': 'Webhook processing failed'}, status=500)

    body = {'message': message}
    update_webhook_log(webhook_log, 'mark_success', body, organization_id=organization_id)
    logger.info(f"Identity webhook handled: {message}", extra={'webhook_id': webhook_id})
    return JsonResponse(body)
