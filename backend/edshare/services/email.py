# backend/edshare/services/email.py
"""
Email Service for the EdShare platform

Sends transactional email through Resend. In development and tests the
"console" provider logs the message instead of calling the API, so the
notification pipeline runs end to end without credentials.
"""

import logging
import re
from typing import Any, Dict, Optional

import resend

from ..core.config import settings
from ..core.exceptions import CollaboratorFailure, ServiceException

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def html_to_text(html_content: str) -> str:
    """Convert HTML content to plain text for better deliverability"""
    text = _TAG_RE.sub("", html_content)
    return _WHITESPACE_RE.sub(" ", text).strip()


class EmailService:
    """
    Service for sending emails.

    Uses dependency injection - no singleton. The provider is fixed at
    construction time from ``settings.email_provider``.
    """

    def __init__(self, provider: Optional[str] = None):
        self.provider = provider or settings.email_provider
        self.from_email = settings.from_email
        self.logger = logging.getLogger(self.__class__.__name__)

        if self.provider == "resend":
            if not settings.resend_api_key:
                raise ServiceException("Resend API key not configured")
            resend.api_key = settings.resend_api_key

        self.logger.info(f"EmailService initialized with provider={self.provider}")

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send one email.

        Returns:
            Dict containing the provider response

        Raises:
            CollaboratorFailure: If the provider rejects or fails the request
        """
        # Always include a text version
        if not text_content:
            text_content = html_to_text(html_content)

        if self.provider == "console":
            self.logger.info(
                f"[console email] to={to_email} subject={subject!r}",
                extra={"to_email": to_email, "subject": subject},
            )
            return {"id": None, "provider": "console"}

        email_data = {
            "from": self.from_email,
            "to": to_email,
            "subject": subject,
            "html": html_content,
            "text": text_content,
        }
        try:
            response = resend.Emails.send(email_data)
        except Exception as e:
            self.logger.error(f"Failed to send email to {to_email}: {type(e).__name__}: {e}")
            raise CollaboratorFailure("email", f"Failed to send email: {e}") from e

        self.logger.info(f"Email sent successfully to {to_email} - Subject: {subject}")
        return dict(response) if response else {}
