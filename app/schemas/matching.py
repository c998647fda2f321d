from pydantic import BaseModel, Field
from typing import Optional, List, Any

from app.schemas.profile import StudentQuestionnaire


class MatchRelayRequest(BaseModel):
    """Raw relay payload; fields are validated and sanitised by the matching service"""
    student_profile: Any = Field(..., alias="studentProfile")
    tutors: Any = Field(...)

    model_config = {"populate_by_name": True}


class TutorMatch(BaseModel):
    tutor_id: str
    match_score: int = Field(..., ge=0, le=100)
    match_reasons: List[str] = Field(default_factory=list)


class MatchRelayResponse(BaseModel):
    matches: List[TutorMatch]


class EnrichedTutorMatch(TutorMatch):
    full_name: str
    avatar_url: Optional[str] = None
    subjects: List[str] = Field(default_factory=list)
    hourly_rate_cents: Optional[int] = None
    rating: float = 0.0
    experience_years: Optional[int] = None


class MatchMeRequest(StudentQuestionnaire):
    pass


class MatchMeResponse(BaseModel):
    matches: List[EnrichedTutorMatch]
