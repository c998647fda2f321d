from typing import Optional
import asyncio
import logging
import re

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from app.core.config import settings
from app.schemas.notification import SMSResult

logger = logging.getLogger(__name__)


def format_phone_number(raw: str) -> str:
    """Normalise to E.164-ish: keep digits and '+', assume +1 for bare 10-digit numbers"""
    formatted = re.sub(r"[^\d+]", "", raw)
    if not formatted.startswith("+"):
        if len(formatted) == 10:
            formatted = "+1" + formatted
        else:
            formatted = "+" + formatted
    return formatted


class SMSService:
    """SMS service for sending notifications via Twilio"""

    def __init__(self):
        self.account_sid = settings.TWILIO_ACCOUNT_SID
        self.auth_token = settings.TWILIO_AUTH_TOKEN
        self.from_number = settings.TWILIO_PHONE_NUMBER
        self.client = Client(self.account_sid, self.auth_token) if self.is_configured else None

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def send_sms(self, phone_number: Optional[str], message: str) -> SMSResult:
        """Send an SMS; failures are reported in the result, never raised"""
        if not self.is_configured:
            logger.info("Twilio credentials not configured, skipping SMS")
            return SMSResult(success=False, error="SMS not configured")

        if not phone_number:
            logger.info("No phone number provided, skipping SMS")
            return SMSResult(success=False, error="No phone number")

        to_phone = format_phone_number(phone_number)

        try:
            # twilio's client is synchronous
            sent = await asyncio.to_thread(
                self.client.messages.create,
                to=to_phone,
                from_=self.from_number,
                body=message,
            )
        except TwilioRestException as e:
            logger.error(f"Twilio error {e.status} sending SMS to {to_phone}: {e.msg}")
            return SMSResult(success=False, error=e.msg)
        except Exception as e:
            logger.error(f"Error sending SMS to {to_phone}: {e}")
            return SMSResult(success=False, error=str(e))

        logger.info(f"SMS sent successfully to {to_phone} (SID: {sent.sid})")
        return SMSResult(success=True, sid=sent.sid)
