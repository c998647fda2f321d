from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
import uuid

from app.core.pricing import MIN_SESSION_MINUTES, MAX_SESSION_MINUTES, DEFAULT_SESSION_MINUTES
from app.models.session import SessionStatus


class SessionBookRequest(BaseModel):
    tutor_id: uuid.UUID = Field(..., description="Tutor user ID")
    subject: str = Field(..., min_length=1, max_length=200, description="Session subject")
    scheduled_at: datetime = Field(..., description="Session start (timezone-aware)")
    duration_minutes: int = Field(DEFAULT_SESSION_MINUTES, ge=MIN_SESSION_MINUTES, le=MAX_SESSION_MINUTES)
    notes: Optional[str] = Field(None, max_length=2000)
    student_timezone_view: Optional[str] = Field(None, description="Timezone the student picked the time in")

    @field_validator("scheduled_at")
    @classmethod
    def require_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("scheduled_at must include a timezone offset")
        return value


class ClassSessionCreateRequest(BaseModel):
    student_ids: List[uuid.UUID] = Field(..., description="Students to invite")
    subject: str = Field(..., min_length=1, max_length=200)
    scheduled_at: datetime = Field(..., description="Class start (timezone-aware)")
    duration_minutes: int = Field(DEFAULT_SESSION_MINUTES, ge=MIN_SESSION_MINUTES, le=MAX_SESSION_MINUTES)
    total_price_cents: int = Field(..., description="Class price split across all students")
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("scheduled_at")
    @classmethod
    def require_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("scheduled_at must include a timezone offset")
        return value


class SessionRescheduleRequest(BaseModel):
    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, ge=MIN_SESSION_MINUTES, le=MAX_SESSION_MINUTES)
    notes: Optional[str] = Field(None, max_length=2000)


class MeetingLinkRequest(BaseModel):
    meeting_link: str = Field(..., min_length=1, max_length=500)

    @field_validator("meeting_link")
    @classmethod
    def require_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("Meeting link must be an http(s) URL")
        return value


class SessionResponse(BaseModel):
    id: str
    student_id: str
    tutor_id: str
    student_name: Optional[str] = None
    tutor_name: Optional[str] = None
    subject: str
    scheduled_at: datetime
    duration_minutes: int
    status: SessionStatus
    price_cents: Optional[int] = None
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    group_session_id: Optional[str] = None
    is_class_session: bool = False
    student_timezone_view: Optional[str] = None


class ClassSessionCreateResponse(BaseModel):
    group_session_id: Optional[str] = Field(None, description="Set when more than one student was selected")
    per_student_price_cents: int
    sessions: List[SessionResponse]
