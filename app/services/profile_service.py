from typing import Any, Dict, Optional
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, update, or_

from app.core.timezone_utils import get_timezone
from app.models.profile import Profile, UserRole
from app.models.tutor_profile import TutorProfile
from app.models.student_profile import StudentProfile
from app.models.session import TutoringSession
from app.models.message import Conversation, Message
from app.models.review import Review
from app.models.class_enrollment import ClassEnrollment
from app.models.ai_match import AIMatch
from app.models.payment import Payment
from app.models.audit_log import AuditLog
from app.schemas.profile import (
    ProfileCreate,
    ProfileUpdate,
    TutorProfileUpdate,
    StudentQuestionnaire,
)
from app.services.availability_service import default_availability
from app.services.review_service import ReviewService
from app.core.exceptions import ProfileError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _validate_timezone(name: str) -> str:
    try:
        get_timezone(name)
    except ValueError as e:
        raise ValidationError(str(e))
    return name


def serialize_profile(
    profile: Profile,
    tutor_profile: Optional[TutorProfile] = None,
    student_profile: Optional[StudentProfile] = None
) -> Dict[str, Any]:
    data = {
        "id": str(profile.id),
        "full_name": profile.full_name,
        "email": profile.email,
        "role": profile.role,
        "timezone": profile.timezone,
        "avatar_url": profile.avatar_url,
        "bio": profile.bio,
        "phone_number": profile.phone_number,
        "phone_notification_dismissed": profile.phone_notification_dismissed,
        "created_at": profile.created_at,
        "tutor_profile": None,
        "student_profile": None,
    }
    if tutor_profile is not None:
        data["tutor_profile"] = {
            "subjects": tutor_profile.subjects or [],
            "hourly_rate_cents": tutor_profile.hourly_rate_cents,
            "education": tutor_profile.education,
            "experience_years": tutor_profile.experience_years,
            "teaching_style": tutor_profile.teaching_style,
            "availability": tutor_profile.availability,
            "timezone": tutor_profile.timezone,
            "rating": tutor_profile.rating or 0.0,
            "total_reviews": tutor_profile.total_reviews or 0,
            "total_sessions": tutor_profile.total_sessions or 0,
            "is_verified": tutor_profile.is_verified,
            "stripe_onboarding_complete": tutor_profile.stripe_onboarding_complete,
        }
    if student_profile is not None:
        data["student_profile"] = {
            "background": student_profile.background,
            "personality": student_profile.personality,
            "learning_goals": student_profile.learning_goals,
            "learning_style": student_profile.learning_style,
            "study_habits": student_profile.study_habits,
            "subjects_interested": student_profile.subjects_interested or [],
            "preferred_schedule": student_profile.preferred_schedule,
            "ai_matching_completed": student_profile.ai_matching_completed,
        }
    return data


class ProfileService:
    """Signup, profile edits, phone opt-in and account deletion"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user_id: uuid.UUID) -> Profile:
        result = await self.db.execute(select(Profile).where(Profile.id == user_id))
        profile = result.scalar_one_or_none()
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    async def get_tutor_profile(self, user_id: uuid.UUID) -> Optional[TutorProfile]:
        result = await self.db.execute(select(TutorProfile).where(TutorProfile.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_student_profile(self, user_id: uuid.UUID) -> Optional[StudentProfile]:
        result = await self.db.execute(select(StudentProfile).where(StudentProfile.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_full_profile(self, profile: Profile) -> Dict[str, Any]:
        tutor_profile = None
        student_profile = None
        if profile.role == UserRole.TUTOR:
            tutor_profile = await self.get_tutor_profile(profile.id)
        else:
            student_profile = await self.get_student_profile(profile.id)
        return serialize_profile(profile, tutor_profile, student_profile)

    async def create_profile(
        self,
        user_id: uuid.UUID,
        token_email: Optional[str],
        request: ProfileCreate
    ) -> Profile:
        """Create the base profile and the role-specific profile in one transaction"""
        existing = await self.db.execute(select(Profile).where(Profile.id == user_id))
        if existing.scalar_one_or_none():
            raise ConflictError("Profile already exists")

        email = (request.email or token_email or "").strip().lower()
        if not email:
            raise ProfileError("An email address is required")

        taken = await self.db.execute(select(Profile).where(Profile.email == email))
        if taken.scalar_one_or_none():
            raise ConflictError("Email is already registered")

        timezone_name = _validate_timezone(request.timezone)
        profile = Profile(
            id=user_id,
            role=request.role,
            full_name=request.full_name.strip(),
            email=email,
            timezone=timezone_name,
            phone_number=request.phone_number or None,
        )
        self.db.add(profile)

        if request.role == UserRole.TUTOR:
            self.db.add(TutorProfile(
                user_id=user_id,
                subjects=[],
                availability=default_availability().model_dump(),
                timezone=timezone_name,
            ))
        else:
            self.db.add(StudentProfile(user_id=user_id, subjects_interested=[]))

        await self.db.flush()
        logger.info(f"Created {request.role.value} profile {user_id}")
        return profile

    async def update_profile(self, profile: Profile, request: ProfileUpdate) -> Profile:
        updates = request.model_dump(exclude_unset=True)
        if "timezone" in updates and updates["timezone"]:
            _validate_timezone(updates["timezone"])
        for field, value in updates.items():
            if field == "full_name" and value is None:
                continue
            setattr(profile, field, value.strip() if isinstance(value, str) else value)

        await self.db.flush()
        logger.info(f"Updated profile {profile.id}: {sorted(updates)}")
        return profile

    async def update_tutor_profile(self, profile: Profile, request: TutorProfileUpdate) -> TutorProfile:
        if profile.role != UserRole.TUTOR:
            raise ProfileError("Only tutors have a tutor profile")

        tutor_profile = await self.get_tutor_profile(profile.id)
        if tutor_profile is None:
            tutor_profile = TutorProfile(user_id=profile.id, subjects=[], timezone=profile.timezone)
            self.db.add(tutor_profile)

        updates = request.model_dump(exclude_unset=True)
        if "subjects" in updates:
            subjects = [s.strip() for s in (request.subjects or []) if s and s.strip()]
            tutor_profile.subjects = list(dict.fromkeys(subjects))
        if "availability" in updates:
            tutor_profile.availability = request.availability.model_dump() if request.availability else None
        if "timezone" in updates and request.timezone:
            tutor_profile.timezone = _validate_timezone(request.timezone)
        for field in ("hourly_rate_cents", "education", "experience_years", "teaching_style"):
            if field in updates:
                setattr(tutor_profile, field, updates[field])

        await self.db.flush()
        logger.info(f"Updated tutor profile for {profile.id}")
        return tutor_profile

    async def update_student_profile(self, profile: Profile, request: StudentQuestionnaire) -> StudentProfile:
        if profile.role != UserRole.STUDENT:
            raise ProfileError("Only students have a student profile")

        student_profile = await self.get_student_profile(profile.id)
        if student_profile is None:
            student_profile = StudentProfile(user_id=profile.id, subjects_interested=[])
            self.db.add(student_profile)

        for field, value in request.model_dump(exclude_unset=True).items():
            if field == "subjects_interested":
                value = [s.strip() for s in (value or []) if s and s.strip()]
            setattr(student_profile, field, value)

        await self.db.flush()
        return student_profile

    async def should_prompt_for_phone(self, profile: Profile) -> bool:
        return not profile.phone_number and not profile.phone_notification_dismissed

    async def save_phone_number(self, profile: Profile, phone_number: str) -> Profile:
        profile.phone_number = phone_number
        await self.db.flush()
        logger.info(f"Saved phone number for {profile.id}")
        return profile

    async def dismiss_phone_prompt(self, profile: Profile) -> Profile:
        profile.phone_notification_dismissed = True
        await self.db.flush()
        return profile

    async def delete_account(self, profile: Profile) -> None:
        """Delete the user and everything that references them"""
        user_id = profile.id

        session_ids = select(TutoringSession.id).where(
            or_(TutoringSession.student_id == user_id, TutoringSession.tutor_id == user_id)
        )
        conversation_ids = select(Conversation.id).where(
            or_(Conversation.participant_1 == user_id, Conversation.participant_2 == user_id)
        )

        # SQLite does not enforce FK cascades unless asked to, so delete children explicitly
        await self.db.execute(delete(Message).where(Message.conversation_id.in_(conversation_ids)))
        await self.db.execute(delete(Conversation).where(Conversation.id.in_(conversation_ids)))
        removed_reviews = or_(Review.student_id == user_id, Review.tutor_id == user_id, Review.session_id.in_(session_ids))
        reviewed_tutors = await self.db.execute(
            select(Review.tutor_id).where(removed_reviews, Review.tutor_id != user_id).distinct()
        )
        affected_tutor_ids = list(reviewed_tutors.scalars().all())
        await self.db.execute(delete(Review).where(removed_reviews))
        await self.db.execute(delete(Payment).where(
            or_(Payment.student_id == user_id, Payment.session_id.in_(session_ids))
        ))
        await self.db.execute(delete(TutoringSession).where(
            or_(TutoringSession.student_id == user_id, TutoringSession.tutor_id == user_id)
        ))
        await self.db.execute(delete(ClassEnrollment).where(
            or_(ClassEnrollment.student_id == user_id, ClassEnrollment.tutor_id == user_id)
        ))
        await self.db.execute(delete(AIMatch).where(
            or_(AIMatch.student_id == user_id, AIMatch.tutor_id == user_id)
        ))
        await self.db.execute(
            update(AuditLog).where(AuditLog.actor_user_id == user_id).values(actor_user_id=None)
        )

        await self.db.delete(profile)
        await self.db.flush()

        review_service = ReviewService(self.db)
        for tutor_id in affected_tutor_ids:
            await review_service.recompute_tutor_rating(tutor_id)
        logger.info(f"Deleted account {user_id}")
