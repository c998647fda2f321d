from typing import Optional
from html import escape
import asyncio
import logging

import resend

from app.core.config import settings
from app.core.exceptions import NotificationError

logger = logging.getLogger(__name__)

PHONE_PROMPT_SUBJECT = "Add Your Phone Number for SMS Notifications"


def phone_prompt_email_html(full_name: Optional[str], dashboard_url: str) -> str:
    return f"""
<div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h2 style="color: #333;">Hi {escape(full_name or "there")}!</h2>
  <p style="color: #555; line-height: 1.6;">
    We've added SMS notifications to BrightMinds so you never miss an important update!
  </p>
  <div style="background: #f5f5f5; padding: 20px; border-radius: 8px; margin: 20px 0;">
    <p style="margin: 0 0 10px 0; font-weight: bold; color: #333;">With SMS notifications, you'll receive texts for:</p>
    <ul style="color: #555; margin: 0; padding-left: 20px;">
      <li>New messages from students or tutors</li>
      <li>Session bookings and confirmations</li>
      <li>Class enrollment updates</li>
      <li>Meeting links and reminders</li>
    </ul>
  </div>
  <p style="color: #555; line-height: 1.6;">
    Simply log in to your account and add your phone number when prompted, or update it in your profile settings.
  </p>
  <a href="{dashboard_url}"
     style="display: inline-block; background: #3b82f6; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; margin-top: 10px;">
    Log In &amp; Add Phone Number
  </a>
  <p style="color: #888; font-size: 14px; margin-top: 30px;">
    Best regards,<br>
    The BrightMinds Team
  </p>
</div>
"""


def notification_email_html(recipient_name: Optional[str], text: str, dashboard_url: str) -> str:
    return f"""
<div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h2 style="color: #333;">Hi {escape(recipient_name or "there")},</h2>
  <p style="color: #555; line-height: 1.6;">{escape(text)}</p>
  <a href="{dashboard_url}"
     style="display: inline-block; background: #3b82f6; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; margin-top: 10px;">
    Open BrightMinds
  </a>
</div>
"""


class EmailService:
    """Email service for sending notifications via Resend"""

    def __init__(self):
        self.from_email = settings.FROM_EMAIL
        if settings.RESEND_API_KEY:
            resend.api_key = settings.RESEND_API_KEY

    @property
    def is_configured(self) -> bool:
        return bool(settings.RESEND_API_KEY)

    @property
    def dashboard_url(self) -> str:
        return f"{settings.FRONTEND_URL.rstrip('/')}/dashboard"

    async def send_email(self, to_email: str, subject: str, html: str) -> str:
        """Send one email and return the provider message id"""
        if not self.is_configured:
            raise NotificationError("Email service not configured")

        email_data = {
            "from": self.from_email,
            "to": [to_email],
            "subject": subject,
            "html": html,
        }
        try:
            # resend's client is synchronous
            response = await asyncio.to_thread(resend.Emails.send, email_data)
        except Exception as e:
            logger.error(f"Email send error to {to_email}: {e}")
            raise NotificationError(f"Failed to send email: {str(e)}") from e

        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info(f"Email sent to {to_email} (id: {message_id})")
        return message_id

    async def send_phone_prompt(self, to_email: str, full_name: Optional[str]) -> str:
        return await self.send_email(
            to_email,
            PHONE_PROMPT_SUBJECT,
            phone_prompt_email_html(full_name, self.dashboard_url)
        )

    async def send_notification_email(
        self,
        to_email: str,
        recipient_name: Optional[str],
        subject: str,
        text: str
    ) -> str:
        return await self.send_email(
            to_email,
            subject,
            notification_email_html(recipient_name, text, self.dashboard_url)
        )
