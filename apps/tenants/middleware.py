"""
Identity session middleware.

Resolves the identity-provider session of every request into
``request.identity`` (a SessionIdentity, or None). Organization and
member resolution happen later, in the access gate, so requests that
never reach a gated view do not touch the database.
"""
import logging

from django.utils.deprecation import MiddlewareMixin

from apps.tenants.session import get_session_resolver

logger = logging.getLogger(__name__)


class IdentitySessionMiddleware(MiddlewareMixin):
    """
    Attach the caller's SessionIdentity to the request.

    Public endpoints (webhooks, schema, admin) are signed or authenticated
    by other means and skip session resolution.
    """

    PUBLIC_PATHS = [
        '/v1/webhooks/',
        '/schema',
        '/admin/',
    ]

    def process_request(self, request):
        request.identity = None

        if self._is_public_path(request.path):
            return None

        request.identity = get_session_resolver().resolve(request)

        if request.identity is not None:
            logger.debug(
                "Resolved identity session",
                extra={
                    'external_user_id': request.identity.external_user_id,
                    'external_org_id': request.identity.external_org_id,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
        return None

    def _is_public_path(self, path):
        return any(path.startswith(public_path) for public_path in self.PUBLIC_PATHS)
