from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.models.profile import UserRole
from app.schemas.availability import WeeklyAvailability


class ProfileCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100, description="Display name")
    role: UserRole = Field(..., description="student or tutor")
    email: Optional[str] = Field(None, description="Falls back to the token's email claim")
    timezone: str = Field("America/New_York", description="IANA timezone")
    phone_number: Optional[str] = Field(None, description="Phone for SMS notifications")


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    bio: Optional[str] = Field(None, max_length=2000)
    avatar_url: Optional[str] = None
    phone_number: Optional[str] = None
    timezone: Optional[str] = None


class TutorProfileUpdate(BaseModel):
    subjects: Optional[List[str]] = Field(None, max_length=20)
    hourly_rate_cents: Optional[int] = Field(None, ge=0, description="Hourly rate in cents")
    education: Optional[str] = Field(None, max_length=1000)
    experience_years: Optional[int] = Field(None, ge=0, le=100)
    teaching_style: Optional[str] = Field(None, max_length=1000)
    availability: Optional[WeeklyAvailability] = None
    timezone: Optional[str] = None


class StudentQuestionnaire(BaseModel):
    background: Optional[str] = Field(None, max_length=500)
    personality: Optional[str] = Field(None, max_length=500)
    learning_goals: Optional[str] = Field(None, max_length=500)
    learning_style: Optional[str] = Field(None, max_length=200)
    study_habits: Optional[str] = Field(None, max_length=500)
    subjects_interested: Optional[List[str]] = Field(None, max_length=20)
    preferred_schedule: Optional[Dict[str, Any]] = None


class PhoneNumberUpdate(BaseModel):
    phone_number: str = Field(..., min_length=7, max_length=20)

    @field_validator("phone_number")
    @classmethod
    def strip_phone(cls, value: str) -> str:
        value = value.strip()
        if not any(ch.isdigit() for ch in value):
            raise ValueError("Phone number must contain digits")
        return value


class TutorProfileResponse(BaseModel):
    subjects: List[str]
    hourly_rate_cents: Optional[int]
    education: Optional[str]
    experience_years: Optional[int]
    teaching_style: Optional[str]
    availability: Optional[Dict[str, Any]]
    timezone: str
    rating: float
    total_reviews: int
    total_sessions: int
    is_verified: bool
    stripe_onboarding_complete: bool


class StudentProfileResponse(BaseModel):
    background: Optional[str]
    personality: Optional[str]
    learning_goals: Optional[str]
    learning_style: Optional[str]
    study_habits: Optional[str]
    subjects_interested: List[str]
    preferred_schedule: Optional[Dict[str, Any]]
    ai_matching_completed: bool


class ProfileResponse(BaseModel):
    id: str = Field(..., description="User ID")
    full_name: str
    email: str
    role: UserRole
    timezone: str
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    phone_number: Optional[str] = None
    phone_notification_dismissed: bool = False
    created_at: Optional[datetime] = None
    tutor_profile: Optional[TutorProfileResponse] = None
    student_profile: Optional[StudentProfileResponse] = None


class PublicProfileResponse(BaseModel):
    id: str
    full_name: str
    role: UserRole
    avatar_url: Optional[str] = None
    bio: Optional[str] = None


class PhonePromptResponse(BaseModel):
    should_prompt: bool = Field(..., description="Whether to ask the user for a phone number")
