from typing import List, Optional, Tuple
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_

from app.models.profile import Profile
from app.models.tutor_profile import TutorProfile
from app.models.session import TutoringSession, SessionStatus
from app.models.review import Review
from app.schemas.review import ReviewCreate, ReviewUpdate
from app.core.exceptions import ConflictError, NotFoundError, AuthorizationError, ValidationError

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = (SessionStatus.CONFIRMED, SessionStatus.COMPLETED)


class ReviewService:
    """Reviews are tied to a confirmed or completed session; the tutor's rating is recomputed on every write"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_review(self, review_id: uuid.UUID) -> Review:
        result = await self.db.execute(select(Review).where(Review.id == review_id))
        review = result.scalar_one_or_none()
        if review is None:
            raise NotFoundError("Review not found")
        return review

    async def get_reviewable_sessions(
        self,
        student: Profile,
        tutor_id: Optional[uuid.UUID] = None
    ) -> List[TutoringSession]:
        """Confirmed or completed sessions the student has not reviewed yet, newest first"""
        reviewed = select(Review.session_id).where(Review.student_id == student.id)
        query = select(TutoringSession).where(
            and_(
                TutoringSession.student_id == student.id,
                TutoringSession.status.in_(REVIEWABLE_STATUSES),
                TutoringSession.id.not_in(reviewed)
            )
        )
        if tutor_id is not None:
            query = query.where(TutoringSession.tutor_id == tutor_id)

        result = await self.db.execute(query.order_by(TutoringSession.scheduled_at.desc()))
        return list(result.scalars().all())

    async def _resolve_session(self, student: Profile, request: ReviewCreate) -> TutoringSession:
        if request.session_id is None:
            sessions = await self.get_reviewable_sessions(student, request.tutor_id)
            if not sessions:
                raise ValidationError("You can only review tutors after a confirmed session")
            return sessions[0]

        result = await self.db.execute(select(TutoringSession).where(TutoringSession.id == request.session_id))
        session = result.scalar_one_or_none()
        if session is None:
            raise NotFoundError("Session not found")
        if session.student_id != student.id or session.tutor_id != request.tutor_id:
            raise AuthorizationError("You can only review your own sessions with this tutor")
        if session.status not in REVIEWABLE_STATUSES:
            raise ValidationError("You can only review tutors after a confirmed session")

        existing = await self.db.execute(
            select(Review).where(Review.student_id == student.id, Review.session_id == session.id)
        )
        if existing.scalar_one_or_none():
            raise ConflictError("You have already reviewed this session")
        return session

    async def recompute_tutor_rating(self, tutor_id: uuid.UUID) -> None:
        result = await self.db.execute(
            select(func.avg(Review.rating), func.count(Review.id)).where(Review.tutor_id == tutor_id)
        )
        average, count = result.one()

        tutor_result = await self.db.execute(select(TutorProfile).where(TutorProfile.user_id == tutor_id))
        tutor_profile = tutor_result.scalar_one_or_none()
        if tutor_profile is None:
            return

        tutor_profile.rating = round(float(average), 2) if average is not None else 0.0
        tutor_profile.total_reviews = count or 0
        await self.db.flush()
        logger.info(f"Tutor {tutor_id} rating is now {tutor_profile.rating} from {tutor_profile.total_reviews} reviews")

    async def create_review(self, student: Profile, request: ReviewCreate) -> Review:
        session = await self._resolve_session(student, request)

        review = Review(
            student_id=student.id,
            tutor_id=session.tutor_id,
            session_id=session.id,
            rating=request.rating,
            comment=request.comment,
        )
        self.db.add(review)
        await self.db.flush()
        await self.recompute_tutor_rating(session.tutor_id)

        logger.info(f"Student {student.id} reviewed session {session.id} ({request.rating} stars)")
        return review

    async def update_review(self, student: Profile, review_id: uuid.UUID, request: ReviewUpdate) -> Review:
        review = await self.get_review(review_id)
        if review.student_id != student.id:
            raise AuthorizationError("You can only edit your own reviews")

        review.rating = request.rating
        review.comment = request.comment
        await self.db.flush()
        await self.recompute_tutor_rating(review.tutor_id)
        return review

    async def delete_review(self, student: Profile, review_id: uuid.UUID) -> None:
        review = await self.get_review(review_id)
        if review.student_id != student.id:
            raise AuthorizationError("You can only delete your own reviews")

        tutor_id = review.tutor_id
        await self.db.delete(review)
        await self.db.flush()
        await self.recompute_tutor_rating(tutor_id)

    async def list_tutor_reviews(self, tutor_id: uuid.UUID, limit: int = 50) -> List[Tuple[Review, Optional[str]]]:
        result = await self.db.execute(
            select(Review, Profile.full_name)
            .outerjoin(Profile, Profile.id == Review.student_id)
            .where(Review.tutor_id == tutor_id)
            .order_by(Review.created_at.desc())
            .limit(limit)
        )
        return [(row[0], row[1]) for row in result.all()]


def serialize_review(review: Review, student_name: Optional[str] = None) -> dict:
    return {
        "id": str(review.id),
        "student_id": str(review.student_id),
        "student_name": student_name,
        "tutor_id": str(review.tutor_id),
        "session_id": str(review.session_id),
        "rating": review.rating,
        "comment": review.comment,
        "created_at": review.created_at,
    }
