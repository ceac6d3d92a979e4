"""
Core middleware for request processing.
"""
import uuid
import logging
from django.utils.deprecation import MiddlewareMixin

from apps.core import context

logger = logging.getLogger(__name__)


class RequestContextMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing and capture
    client metadata for the audit trail.

    The request_id is taken from X-Request-ID when the caller sends one,
    echoed back in the response, and stored in the request-local context
    together with the client IP and user agent.
    """

    def process_request(self, request):
        request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        request.request_id = request_id
        context.bind_request(request)

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        context.clear()
        return response
