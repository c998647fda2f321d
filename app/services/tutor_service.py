from typing import Any, Dict, List, Optional, Tuple
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.models.profile import Profile, UserRole
from app.models.tutor_profile import TutorProfile
from app.services.availability_service import normalize_availability
from app.services.review_service import ReviewService, serialize_review
from app.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

LEADERBOARD_SIZE = 50


def serialize_tutor(profile: Profile, tutor_profile: TutorProfile) -> Dict[str, Any]:
    return {
        "id": str(profile.id),
        "name": profile.full_name,
        "subjects": tutor_profile.subjects or [],
        "hourly_rate_cents": tutor_profile.hourly_rate_cents,
        "rating": tutor_profile.rating or 0.0,
        "total_reviews": tutor_profile.total_reviews or 0,
        "total_sessions": tutor_profile.total_sessions or 0,
        "bio": profile.bio,
        "avatar_url": profile.avatar_url,
        "experience_years": tutor_profile.experience_years,
        "is_verified": tutor_profile.is_verified,
        "timezone": tutor_profile.timezone,
    }


def matches_search(profile: Profile, tutor_profile: TutorProfile, search: str) -> bool:
    """Case-insensitive match on the tutor's name or any subject"""
    needle = search.strip().lower()
    if not needle:
        return True
    if needle in (profile.full_name or "").lower():
        return True
    return any(needle in subject.lower() for subject in (tutor_profile.subjects or []))


def matches_subject(tutor_profile: TutorProfile, subject: str) -> bool:
    wanted = subject.strip().lower()
    return any(wanted == s.lower() or wanted in s.lower() for s in (tutor_profile.subjects or []))


class TutorService:
    """Public tutor directory: search, leaderboard and detail pages"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_tutor(self, tutor_id: uuid.UUID) -> Tuple[Profile, TutorProfile]:
        result = await self.db.execute(
            select(Profile, TutorProfile)
            .join(TutorProfile, TutorProfile.user_id == Profile.id)
            .where(Profile.id == tutor_id, Profile.role == UserRole.TUTOR)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Tutor not found")
        return row[0], row[1]

    async def list_tutors(
        self,
        search: Optional[str] = None,
        subject: Optional[str] = None,
        max_rate: Optional[int] = None,
        min_rating: Optional[float] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        query = (
            select(Profile, TutorProfile)
            .join(TutorProfile, TutorProfile.user_id == Profile.id)
            .where(Profile.role == UserRole.TUTOR)
        )
        if max_rate is not None:
            query = query.where(TutorProfile.hourly_rate_cents <= max_rate)
        if min_rating is not None:
            query = query.where(TutorProfile.rating >= min_rating)

        query = query.order_by(TutorProfile.rating.desc(), Profile.full_name.asc())
        result = await self.db.execute(query)

        # Subjects live in a JSON list, so text filters run here rather than in SQL
        tutors = []
        for profile, tutor_profile in result.all():
            if search and not matches_search(profile, tutor_profile, search):
                continue
            if subject and not matches_subject(tutor_profile, subject):
                continue
            tutors.append(serialize_tutor(profile, tutor_profile))

        return tutors[offset:offset + limit]

    async def get_leaderboard(self, limit: int = LEADERBOARD_SIZE) -> List[Dict[str, Any]]:
        """Tutors ranked by paid sessions, rating breaking ties"""
        result = await self.db.execute(
            select(Profile, TutorProfile)
            .join(TutorProfile, TutorProfile.user_id == Profile.id)
            .where(Profile.role == UserRole.TUTOR)
            .order_by(TutorProfile.total_sessions.desc(), TutorProfile.rating.desc())
            .limit(limit)
        )
        return [
            {
                "rank": rank,
                "id": str(profile.id),
                "name": profile.full_name,
                "avatar_url": profile.avatar_url,
                "subjects": tutor_profile.subjects or [],
                "rating": tutor_profile.rating or 0.0,
                "total_sessions": tutor_profile.total_sessions or 0,
            }
            for rank, (profile, tutor_profile) in enumerate(result.all(), start=1)
        ]

    async def get_tutor_detail(self, tutor_id: uuid.UUID) -> Dict[str, Any]:
        profile, tutor_profile = await self.get_tutor(tutor_id)
        reviews = await ReviewService(self.db).list_tutor_reviews(tutor_id)

        detail = serialize_tutor(profile, tutor_profile)
        detail.update({
            "education": tutor_profile.education,
            "teaching_style": tutor_profile.teaching_style,
            "availability": normalize_availability(tutor_profile.availability).model_dump(),
            "reviews": [serialize_review(review, student_name) for review, student_name in reviews],
        })
        return detail
