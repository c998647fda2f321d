from pydantic import BaseModel, Field
from typing import Optional, List
import enum


class NotificationType(str, enum.Enum):
    NEW_MESSAGE = "new_message"
    SESSION_BOOKED = "session_booked"
    SESSION_UPDATED = "session_updated"
    SESSION_CANCELLED = "session_cancelled"
    PROFILE_VIEWED = "profile_viewed"
    CLASS_JOINED = "class_joined"
    MEETING_LINK_SENT = "meeting_link_sent"


class NotificationData(BaseModel):
    sender_name: Optional[str] = None
    subject: Optional[str] = None
    session_date: Optional[str] = None
    message_preview: Optional[str] = None
    meeting_link: Optional[str] = None
    student_timezone_view: Optional[str] = Field(None, description="PST or EST as seen by the student when booking")


class NotificationRequest(BaseModel):
    """Payload of the notify relay; type is validated by the service so unknown values surface as 400"""
    type: str = Field(..., description="Notification type")
    recipient_phone: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    data: NotificationData = Field(default_factory=NotificationData)


class SMSResult(BaseModel):
    success: bool
    sid: Optional[str] = None
    error: Optional[str] = None


class NotificationResponse(BaseModel):
    success: bool
    sms_result: Optional[SMSResult] = None
    email_sent: bool = False


class SMSRequest(BaseModel):
    to: Optional[str] = None
    message: Optional[str] = None


class BulkEmailResult(BaseModel):
    email: str
    success: bool
    error: Optional[str] = None


class NotifyExistingUsersResponse(BaseModel):
    success: bool
    total_users: int
    results: List[BulkEmailResult]
