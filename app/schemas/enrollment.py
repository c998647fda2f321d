from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
import uuid


class EnrollmentCreate(BaseModel):
    tutor_id: uuid.UUID = Field(..., description="Tutor whose class to join")


class EnrollmentResponse(BaseModel):
    id: str
    student_id: str
    tutor_id: str
    tutor_name: Optional[str] = None
    student_name: Optional[str] = None
    created_at: datetime


class TutorSearchResult(BaseModel):
    id: str
    full_name: str
    avatar_url: Optional[str] = None
    subjects: List[str] = Field(default_factory=list)
