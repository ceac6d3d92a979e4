from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Perform startup validation checks when Django initializes.

        Missing session verification keys are fatal. Missing webhook
        secrets are only warned about, since the affected endpoints
        reject every delivery until they are configured.
        """
        import sys
        if len(sys.argv) > 1 and sys.argv[1] not in ['runserver', 'test']:
            # Migrations, shell, etc. run without full config
            return

        self._validate_security_settings()
        self._validate_session_configuration()
        self._validate_webhook_secrets()

    def _validate_security_settings(self):
        if not getattr(settings, 'SECRET_KEY', None):
            raise ImproperlyConfigured("SECRET_KEY must be set in environment variables.")

        if not settings.DEBUG:
            for flag in ('SECURE_SSL_REDIRECT', 'SESSION_COOKIE_SECURE', 'CSRF_COOKIE_SECURE'):
                if not getattr(settings, flag, False):
                    logger.warning(f"{flag} is not enabled in production.")

    def _validate_session_configuration(self):
        jwks_url = getattr(settings, 'IDENTITY_JWKS_URL', '')
        public_key = getattr(settings, 'IDENTITY_JWT_KEY', '')
        if not jwks_url and not public_key:
            raise ImproperlyConfigured(
                "Either IDENTITY_JWKS_URL or IDENTITY_JWT_KEY must be set to verify session tokens."
            )

    def _validate_webhook_secrets(self):
        for name in ('STRIPE_WEBHOOK_SECRET', 'FLUTTERWAVE_SECRET_HASH', 'IDENTITY_WEBHOOK_SECRET'):
            if not getattr(settings, name, ''):
                logger.warning(f"{name} is not set; deliveries to its webhook will be rejected.")
