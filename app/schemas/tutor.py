from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class TutorListResponse(BaseModel):
    id: str = Field(..., description="Tutor user ID")
    name: str = Field(..., description="Tutor name")
    subjects: List[str] = Field(..., description="Subjects taught")
    hourly_rate_cents: Optional[int] = Field(None, description="Hourly rate in cents")
    rating: float = Field(..., description="Average rating")
    total_reviews: int = Field(..., description="Number of reviews")
    total_sessions: int = Field(..., description="Paid sessions")
    bio: Optional[str] = Field(None, description="Tutor bio")
    avatar_url: Optional[str] = Field(None, description="Profile image URL")
    experience_years: Optional[int] = Field(None, description="Years of experience")
    is_verified: bool = Field(False, description="Verified by staff")
    timezone: str = Field(..., description="Tutor timezone")


class TutorDetailResponse(TutorListResponse):
    education: Optional[str] = Field(None, description="Education background")
    teaching_style: Optional[str] = Field(None, description="Teaching style")
    availability: Dict[str, Any] = Field(..., description="Weekly availability")
    reviews: List[Dict[str, Any]] = Field(default_factory=list, description="Student reviews")


class LeaderboardEntry(BaseModel):
    rank: int
    id: str
    name: str
    avatar_url: Optional[str] = None
    subjects: List[str]
    rating: float
    total_sessions: int
