# backend/settlement/services/email.py
"""
Email delivery for settlement notifications.

EmailService sends through the Resend API. ConsoleEmailService logs the
message instead and is used when EMAIL_PROVIDER=console (local development
and tests). Both expose the same ``send_email`` signature; failures raise
ServiceException and the caller decides whether that matters.
"""

import logging
import re
from typing import Any, Dict, Optional, Union

import resend

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import ServiceException
from .base import BaseService

logger = logging.getLogger(__name__)


def _html_to_text(html_content: str) -> str:
    """Convert HTML content to plain text for better deliverability."""
    text = re.sub(r"<[^>]+>", "", html_content)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


class EmailService:
    """Service for sending emails using Resend API."""

    def __init__(self, api_key: str, from_email: str):
        if not api_key:
            raise ServiceException("Resend API key not configured")

        # The Resend SDK only reads its key from module state.
        resend.api_key = api_key
        self.from_email = from_email
        self.logger = logging.getLogger(self.__class__.__name__)

    @BaseService.measure_operation("send_email")
    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send an email using Resend.

        Returns:
            Dict containing the Resend API response

        Raises:
            ServiceException: If email sending fails
        """
        email_data = {
            "from": self.from_email,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
            "text": text_content or _html_to_text(html_content),
        }
        try:
            response = resend.Emails.send(email_data)
        except Exception as e:
            error_msg = str(e) if e else "Unknown error"
            self.logger.error(f"Failed to send email to {to_email}: {error_msg}")
            raise ServiceException(f"Email sending failed: {error_msg}") from e

        self.logger.info(f"Email sent successfully to {to_email} - Subject: {subject}")
        return response


class ConsoleEmailService:
    """Email service that logs instead of sending."""

    def __init__(self, from_email: str = ""):
        self.from_email = from_email
        self.logger = logging.getLogger(self.__class__.__name__)

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.logger.info(
            f"[CONSOLE EMAIL] to={to_email} subject={subject!r}\n"
            f"{text_content or _html_to_text(html_content)}"
        )
        return {"id": "console"}


def build_email_service(
    config: Optional[Settings] = None,
) -> Union[EmailService, ConsoleEmailService]:
    """Create the email service selected by EMAIL_PROVIDER."""
    config = config or default_settings
    if config.email_provider == "resend":
        return EmailService(api_key=config.resend_api_key or "", from_email=config.from_email)
    return ConsoleEmailService(from_email=config.from_email)
