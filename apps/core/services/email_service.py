"""
Platform email service.

Thin wrapper around Django's configured email backend (SMTP in
production, locmem in tests, console in development).
"""
import logging
from typing import List, Optional

from django.conf import settings
from django.core.mail import EmailMultiAlternatives

logger = logging.getLogger(__name__)


class EmailServiceError(Exception):
    """Base exception for email service errors."""
    pass


class EmailService:
    """
    Send plain-text emails with an optional HTML alternative.
    """

    @classmethod
    def send_email(
        cls,
        to_emails: List[str],
        subject: str,
        text_content: str,
        html_content: Optional[str] = None,
        from_email: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> bool:
        """
        Send an email through the configured backend.

        Args:
            to_emails: List of recipient email addresses
            subject: Email subject line
            text_content: Plain-text body
            html_content: Optional HTML alternative
            from_email: Sender email (DEFAULT_FROM_EMAIL if not provided)
            reply_to: Reply-to email address

        Returns:
            True if the backend accepted the message

        Raises:
            EmailServiceError: No recipients, or the backend failed
        """
        recipients = [email for email in to_emails if email]
        if not recipients:
            raise EmailServiceError("No recipients provided")

        message = EmailMultiAlternatives(
            subject=subject,
            body=text_content,
            from_email=from_email or settings.DEFAULT_FROM_EMAIL,
            to=recipients,
            reply_to=[reply_to] if reply_to else None,
        )
        if html_content:
            message.attach_alternative(html_content, 'text/html')

        try:
            sent = message.send(fail_silently=False)
        except Exception as e:
            logger.error(f"Failed to send email: {e}", extra={'subject': subject})
            raise EmailServiceError(f"Email sending failed: {e}") from e

        logger.info(f"Email sent to {len(recipients)} recipients", extra={'subject': subject})
        return sent > 0
