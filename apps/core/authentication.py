"""
Custom DRF authentication classes.
"""
from rest_framework.authentication import BaseAuthentication


class MiddlewareAuthentication(BaseAuthentication):
    """
    DRF authentication class that uses the identity set by
    IdentitySessionMiddleware.

    The middleware resolves the identity-provider session into
    ``request.identity``; this class hands that identity to DRF as
    ``request.user``.
    """

    def authenticate(self, request):
        """
        Return the session identity from the middleware if present.

        Returns:
            tuple: (identity, None) if there is a session, None otherwise
        """
        django_request = request._request
        identity = getattr(django_request, 'identity', None)

        if identity is not None:
            return (identity, None)

        return None
