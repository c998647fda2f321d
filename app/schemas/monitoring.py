from pydantic import BaseModel
from typing import Optional, List, Dict


class TutorActivity(BaseModel):
    id: str
    full_name: str
    email: str
    avatar_url: Optional[str] = None
    subjects: List[str]
    rating: float
    total_sessions: int
    message_count: int
    session_count: int


class MonitoringOverview(BaseModel):
    users: Dict[str, int]
    sessions: Dict[str, int]
    revenue_cents: int
    users_without_phone: int
    tutors: List[TutorActivity]
