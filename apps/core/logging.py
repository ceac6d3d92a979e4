"""
Structured logging helpers.

- PIIMasker: masks emails, phone numbers, secrets and card numbers
- JSONFormatter: one JSON object per log line
- SanitizingFilter / RequestContextFilter: logging filters wired in settings
- SecurityLogger: security events on the dedicated ``security`` logger
"""
import json
import logging
import re
import traceback
from datetime import datetime, timezone as dt_timezone
from django.utils import timezone
import sentry_sdk

from apps.core import context


class PIIMasker:
    """
    Utility class to mask sensitive PII data in logs.
    """

    PHONE_PATTERN = re.compile(r'\+?\d{10,15}')
    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
    SECRET_PATTERN = re.compile(
        r'(api[_-]?key|token|secret|password|signature|verif[_-]?hash)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)',
        re.IGNORECASE
    )
    CREDIT_CARD_PATTERN = re.compile(r'\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b')

    SENSITIVE_FIELDS = {
        'phone', 'customer_phone', 'email', 'customer_email',
        'password', 'secret', 'token', 'api_key', 'authorization',
        'signature', 'verif_hash', 'webhook_secret', 'card_number', 'cvv',
    }

    @classmethod
    def mask_phone(cls, text):
        if not isinstance(text, str):
            return text
        return cls.PHONE_PATTERN.sub(lambda m: m.group(0)[:3] + '*' * (len(m.group(0)) - 3), text)

    @classmethod
    def mask_email(cls, text):
        if not isinstance(text, str):
            return text

        def mask_email_match(match):
            username, _, domain = match.group(0).partition('@')
            if len(username) > 1:
                username = username[0] + '*' * (len(username) - 1)
            return f"{username}@{domain}"

        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_secrets(cls, text):
        if not isinstance(text, str):
            return text
        return cls.SECRET_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_credit_cards(cls, text):
        if not isinstance(text, str):
            return text
        return cls.CREDIT_CARD_PATTERN.sub(lambda m: '*' * (len(m.group(0)) - 4) + m.group(0)[-4:], text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        text = cls.mask_credit_cards(text)
        text = cls.mask_phone(text)
        text = cls.mask_email(text)
        text = cls.mask_secrets(text)
        return text

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if key.lower() in cls.SENSITIVE_FIELDS:
                masked[key] = '********' if value and not isinstance(value, (dict, list)) else value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict) else cls.mask_text(item)
                    for item in value
                ]
            elif isinstance(value, str):
                masked[key] = cls.mask_text(value)
            else:
                masked[key] = value
        return masked


# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
    'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'taskName', 'request_id', 'tenant_id',
    'task_id', 'task_name',
})


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.

    Includes request_id, tenant_id and Celery task fields when present and
    masks PII in the message and in extra fields.
    """

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for attr in ('request_id', 'tenant_id', 'task_id', 'task_name'):
            value = getattr(record, attr, None)
            if value is not None:
                log_data[attr] = str(value)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [
                    PIIMasker.mask_text(line)
                    for line in traceback.format_exception(*record.exc_info)
                ],
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith('_'):
                continue
            if isinstance(value, dict):
                value = PIIMasker.mask_dict(value)
            elif isinstance(value, str):
                value = PIIMasker.mask_text(value)
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SanitizingFilter(logging.Filter):
    """Mask PII in the rendered message of every record."""

    def filter(self, record):
        if isinstance(record.msg, str) and not record.args:
            record.msg = PIIMasker.mask_text(record.msg)
        return True


class RequestContextFilter(logging.Filter):
    """Stamp request_id from the request-local context on every record."""

    def filter(self, record):
        if not hasattr(record, 'request_id'):
            record.request_id = context.get_request_id() or '-'
        return True


class SecurityLogger:
    """
    Security event logging.

    Events go to the ``security`` logger with structured context. Events in
    CRITICAL_EVENTS are also sent to Sentry for alerting.
    """

    CRITICAL_EVENTS = {
        'invalid_webhook_signature',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context_data):
        """
        Log a security event with structured data.

        Example:
            >>> SecurityLogger.log_event(
            ...     'invalid_webhook_signature',
            ...     provider='stripe',
            ...     ip_address='192.168.1.1',
            ... )
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'timestamp': timezone.now().isoformat(),
        }
        log_data.update(context_data)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(f"Security event: {event_type}", extra={'security_event': log_data})

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_access_denied(reason: str, external_user_id: str = None, organization_id: str = None,
                          target: str = None, ip_address: str = None):
        """
        Log an access-gate denial.

        ``reason`` distinguishes no-session, tenant-module-disabled,
        not-granted and pending-setup denials, which all look the same to
        the denied caller.
        """
        SecurityLogger.log_event(
            'access_denied',
            level='info' if reason == 'pending_setup' else 'warning',
            reason=reason,
            external_user_id=external_user_id,
            organization_id=organization_id,
            target=target,
            ip_address=ip_address,
        )

    @staticmethod
    def log_invalid_webhook_signature(provider: str, ip_address: str = None,
                                      url: str = None, user_agent: str = None,
                                      reason: str = None):
        """Log a webhook whose signature is missing or does not verify."""
        SecurityLogger.log_event(
            'invalid_webhook_signature',
            level='error',
            provider=provider,
            ip_address=ip_address,
            url=url,
            user_agent=user_agent,
            reason=reason,
        )
