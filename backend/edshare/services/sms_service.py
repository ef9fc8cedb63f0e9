"""Service for sending SMS via Twilio."""

from __future__ import annotations

from enum import Enum
import logging
import math
from typing import Any, Optional, Tuple

from twilio.base.exceptions import TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ..core.config import settings
from ..core.exceptions import CollaboratorFailure

logger = logging.getLogger(__name__)

MAX_SMS_LENGTH = 1600


class SMSStatus(str, Enum):
    SUCCESS = "success"
    DISABLED = "disabled"
    ERROR = "error"


class SMSService:
    """Service for sending SMS via Twilio."""

    def __init__(self, client: Optional[Client] = None) -> None:
        auth_token = (
            settings.twilio_auth_token.get_secret_value() if settings.twilio_auth_token else ""
        )
        self.from_number = settings.twilio_phone_number
        self.enabled = bool(
            settings.sms_enabled
            and settings.twilio_account_sid
            and auth_token
            and self.from_number
        )

        if client is not None:
            self.client: Optional[Client] = client
            self.enabled = True
        elif self.enabled:
            self.client = Client(
                settings.twilio_account_sid,
                auth_token,
                http_client=TwilioHttpClient(timeout=settings.notification_timeout_seconds),
            )
        else:
            self.client = None
            logger.info("SMS service disabled - Twilio credentials not configured")

    def send_sms(self, to_number: Optional[str], message: str) -> Tuple[Optional[dict[str, Any]], SMSStatus]:
        """
        Send an SMS message.

        Args:
            to_number: Recipient phone number in E.164 format (+919876543210)
            message: Message body (truncated past 1600 chars)

        Raises:
            CollaboratorFailure: Twilio rejected or failed the request
        """
        if not self.enabled or self.client is None:
            logger.debug("SMS disabled, would send to %s", to_number)
            return None, SMSStatus.DISABLED

        if not to_number or not to_number.startswith("+"):
            logger.warning("Invalid phone number format: %s", to_number)
            return None, SMSStatus.ERROR

        if len(message) > MAX_SMS_LENGTH:
            message = message[: MAX_SMS_LENGTH - 3] + "..."

        segments = count_sms_segments(message)
        if segments > 1:
            logger.info("SMS to %s: %s chars, %s segments", to_number[-4:], len(message), segments)

        try:
            twilio_message = self.client.messages.create(
                body=message, to=to_number, from_=self.from_number
            )
        except TwilioRestException as exc:
            logger.error("Twilio error sending SMS to %s: %s", to_number, exc)
            raise CollaboratorFailure("sms", f"Twilio error: {exc.msg}") from exc

        logger.info("SMS sent to %s, SID: %s", to_number, twilio_message.sid)
        return {
            "sid": twilio_message.sid,
            "status": getattr(twilio_message, "status", None),
            "to": to_number,
        }, SMSStatus.SUCCESS


def count_sms_segments(message: str) -> int:
    if not message:
        return 1
    if all(ord(ch) < 128 for ch in message):
        return 1 if len(message) <= 160 else math.ceil(len(message) / 153)
    return 1 if len(message) <= 70 else math.ceil(len(message) / 67)
