"""
External identity session resolution.

The identity provider is abstracted behind SessionResolver: given the
inbound request, return the SessionIdentity (external user id, external
organization id, role claim) or None when there is no usable session.
The concrete resolver is chosen with the SESSION_RESOLVER_CLASS setting.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionIdentity:
    """Identity claims of the caller as asserted by the identity provider."""

    external_user_id: str
    external_org_id: Optional[str] = None
    role: Optional[str] = None
    org_name: Optional[str] = None
    org_slug: Optional[str] = None

    # DRF treats request.user as authenticated when this is True
    is_authenticated = True
    is_anonymous = False

    @property
    def has_organization(self):
        return bool(self.external_org_id)

    def __str__(self):
        return f"{self.external_user_id}@{self.external_org_id or '-'}"


class SessionResolver:
    """Interface for identity-provider session resolvers."""

    def resolve(self, request) -> Optional[SessionIdentity]:
        raise NotImplementedError


class JWTSessionResolver(SessionResolver):
    """
    Resolve the session from an identity-provider JWT.

    The token is read from ``Authorization: Bearer <token>`` or from the
    ``__session`` cookie. It is verified either against the provider's
    JWKS endpoint (IDENTITY_JWKS_URL) or a static key (IDENTITY_JWT_KEY).

    Claims used: ``sub`` (user), ``org_id``, ``org_role``, and the optional
    ``org_name`` / ``org_slug`` hints.
    """

    COOKIE_NAME = '__session'

    def __init__(self):
        self.algorithms = getattr(settings, 'IDENTITY_JWT_ALGORITHMS', ['RS256'])
        self.audience = getattr(settings, 'IDENTITY_JWT_AUDIENCE', None)
        self.issuer = getattr(settings, 'IDENTITY_JWT_ISSUER', None)
        self.static_key = getattr(settings, 'IDENTITY_JWT_KEY', None)
        jwks_url = getattr(settings, 'IDENTITY_JWKS_URL', None)
        self.jwks_client = jwt.PyJWKClient(jwks_url) if jwks_url else None

    def _extract_token(self, request):
        auth_header = request.headers.get('Authorization', '')
        if auth_header.startswith('Bearer '):
            return auth_header[len('Bearer '):].strip() or None
        return request.COOKIES.get(self.COOKIE_NAME) or None

    def _signing_key(self, token):
        if self.jwks_client is not None:
            return self.jwks_client.get_signing_key_from_jwt(token).key
        return self.static_key

    def resolve(self, request):
        token = self._extract_token(request)
        if not token:
            return None

        try:
            key = self._signing_key(token)
            if not key:
                logger.error("No identity verification key configured; rejecting session token")
                return None
            options = {'require': ['sub', 'exp'], 'verify_aud': self.audience is not None}
            payload = jwt.decode(
                token,
                key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options=options,
            )
        except jwt.ExpiredSignatureError:
            logger.info("Expired identity session token")
            return None
        except (jwt.InvalidTokenError, jwt.PyJWKClientError) as e:
            logger.warning(f"Invalid identity session token: {e}")
            return None

        return SessionIdentity(
            external_user_id=str(payload['sub']),
            external_org_id=payload.get('org_id') or None,
            role=payload.get('org_role') or None,
            org_name=payload.get('org_name') or None,
            org_slug=payload.get('org_slug') or None,
        )


_resolver = None


def get_session_resolver() -> SessionResolver:
    """Return the configured resolver instance (constructed once per process)."""
    global _resolver
    if _resolver is None:
        path = getattr(settings, 'SESSION_RESOLVER_CLASS', 'apps.tenants.session.JWTSessionResolver')
        _resolver = import_string(path)()
    return _resolver


def reset_session_resolver():
    """Drop the cached resolver so the next call re-reads settings."""
    global _resolver
    _resolver = None
