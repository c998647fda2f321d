from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
import uuid


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ReviewCreate(BaseModel):
    tutor_id: uuid.UUID
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)
    session_id: Optional[uuid.UUID] = Field(None, description="Defaults to the latest reviewable session")

    @field_validator("comment")
    @classmethod
    def normalise_comment(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)


class ReviewUpdate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)

    @field_validator("comment")
    @classmethod
    def normalise_comment(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)


class ReviewResponse(BaseModel):
    id: str
    student_id: str
    student_name: Optional[str] = None
    tutor_id: str
    session_id: str
    rating: int
    comment: Optional[str] = None
    created_at: datetime
