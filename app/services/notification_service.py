from typing import Dict, List, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_

from app.models.profile import Profile
from app.schemas.notification import (
    NotificationType,
    NotificationData,
    NotificationRequest,
    NotificationResponse,
    SMSResult,
    BulkEmailResult,
    NotifyExistingUsersResponse,
)
from app.services.sms_service import SMSService
from app.services.email_service import EmailService
from app.core.exceptions import NotificationError

logger = logging.getLogger(__name__)

SMS_PREFIX = "BrightMinds: "

EMAIL_SUBJECTS = {
    NotificationType.NEW_MESSAGE: "You have a new message",
    NotificationType.SESSION_BOOKED: "New session booked",
    NotificationType.SESSION_UPDATED: "Your session was updated",
    NotificationType.SESSION_CANCELLED: "Your session was cancelled",
    NotificationType.PROFILE_VIEWED: "Someone viewed your profile",
    NotificationType.CLASS_JOINED: "A student joined your class",
    NotificationType.MEETING_LINK_SENT: "Your meeting link is ready",
}


def parse_notification_type(value: str) -> NotificationType:
    try:
        return NotificationType(value)
    except ValueError:
        raise NotificationError("Unknown notification type")


def build_notification_text(notification_type: NotificationType, data: NotificationData) -> str:
    """Human readable text for a notification, without the SMS prefix"""
    subject = data.subject or "tutoring"

    if notification_type == NotificationType.NEW_MESSAGE:
        return f"New message from {data.sender_name or 'a user'}. Log in to view and reply."

    elif notification_type == NotificationType.SESSION_BOOKED:
        tz_info = f" (student viewed in {data.student_timezone_view})" if data.student_timezone_view else ""
        return (
            f"New {subject} session booked with {data.sender_name or 'a user'} "
            f"for {data.session_date or 'TBD'}{tz_info}."
        )

    elif notification_type == NotificationType.SESSION_UPDATED:
        return f"Your {subject} session has been updated. New date: {data.session_date or 'TBD'}."

    elif notification_type == NotificationType.SESSION_CANCELLED:
        return f"Your {subject} session scheduled for {data.session_date or 'N/A'} has been cancelled."

    elif notification_type == NotificationType.PROFILE_VIEWED:
        return f"{data.sender_name or 'A student'} viewed your tutor profile. Log in to see more."

    elif notification_type == NotificationType.CLASS_JOINED:
        return f"{data.sender_name or 'A student'} joined your class! Log in to schedule a session."

    elif notification_type == NotificationType.MEETING_LINK_SENT:
        return (
            f"Meeting link ready for your {subject} session on {data.session_date or 'TBD'}. "
            f"Log in to join."
        )

    raise NotificationError("Unknown notification type")


def build_sms_message(notification_type: NotificationType, data: NotificationData) -> str:
    return SMS_PREFIX + build_notification_text(notification_type, data)


class NotificationService:
    """Formats notifications and relays them to the SMS and email providers"""

    def __init__(
        self,
        sms_service: Optional[SMSService] = None,
        email_service: Optional[EmailService] = None
    ):
        self.sms_service = sms_service or SMSService()
        self.email_service = email_service or EmailService()

    async def send(self, request: NotificationRequest) -> NotificationResponse:
        """Relay a notification; raises NotificationError only for an unknown type"""
        notification_type = parse_notification_type(request.type)
        logger.info(f"Received notification request: type={notification_type.value}")

        text = build_notification_text(notification_type, request.data)

        if request.recipient_phone:
            sms_result = await self.sms_service.send_sms(request.recipient_phone, SMS_PREFIX + text)
            logger.info(f"SMS result: success={sms_result.success} error={sms_result.error}")
        else:
            logger.info("No phone number provided for recipient, skipping SMS")
            sms_result = SMSResult(success=False, error="No phone provided")

        email_sent = False
        if request.recipient_email and self.email_service.is_configured:
            try:
                await self.email_service.send_notification_email(
                    request.recipient_email,
                    request.recipient_name,
                    EMAIL_SUBJECTS[notification_type],
                    text
                )
                email_sent = True
            except NotificationError as e:
                logger.error(f"Notification email to {request.recipient_email} failed: {e}")

        return NotificationResponse(success=True, sms_result=sms_result, email_sent=email_sent)

    async def dispatch(
        self,
        notification_type: NotificationType,
        recipient: Dict[str, Optional[str]],
        data: NotificationData
    ) -> None:
        """Fire-and-forget entry point for background tasks; failures are only logged"""
        request = NotificationRequest(
            type=notification_type.value,
            recipient_phone=recipient.get("phone"),
            recipient_email=recipient.get("email"),
            recipient_name=recipient.get("name"),
            data=data
        )
        try:
            await self.send(request)
        except Exception as e:
            logger.error(f"Error dispatching {notification_type.value} notification: {e}")

    async def notify_users_without_phone(self, db: AsyncSession) -> NotifyExistingUsersResponse:
        """Email every user who has no phone number and has not dismissed the prompt"""
        if not self.email_service.is_configured:
            raise NotificationError("Service not configured")

        result = await db.execute(
            select(Profile).where(
                and_(
                    Profile.phone_number.is_(None),
                    Profile.phone_notification_dismissed.is_(False)
                )
            )
        )
        profiles = result.scalars().all()
        logger.info(f"Found {len(profiles)} users to notify")

        results: List[BulkEmailResult] = []
        for profile in profiles:
            try:
                await self.email_service.send_phone_prompt(profile.email, profile.full_name)
                results.append(BulkEmailResult(email=profile.email, success=True))
            except NotificationError as e:
                results.append(BulkEmailResult(email=profile.email, success=False, error=str(e)))

        return NotifyExistingUsersResponse(success=True, total_users=len(profiles), results=results)


def recipient_contact(profile: Profile) -> Dict[str, Optional[str]]:
    """Plain contact details, safe to hand to a background task after the DB session closes"""
    return {"phone": profile.phone_number, "email": profile.email, "name": profile.full_name}
