from typing import Any, Dict, List, Tuple
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import aliased

from app.models.profile import Profile, UserRole
from app.models.tutor_profile import TutorProfile
from app.models.class_enrollment import ClassEnrollment
from app.core.exceptions import ConflictError, NotFoundError, AuthorizationError

logger = logging.getLogger(__name__)


def serialize_enrollment(enrollment: ClassEnrollment, student_name=None, tutor_name=None) -> Dict[str, Any]:
    return {
        "id": str(enrollment.id),
        "student_id": str(enrollment.student_id),
        "tutor_id": str(enrollment.tutor_id),
        "student_name": student_name,
        "tutor_name": tutor_name,
        "created_at": enrollment.created_at,
    }


class EnrollmentService:
    """Students join a tutor's class; tutors see who joined"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def join_class(self, student: Profile, tutor_id: uuid.UUID) -> Tuple[ClassEnrollment, Profile]:
        """Returns the enrollment and the tutor so the caller can send class_joined"""
        result = await self.db.execute(
            select(Profile).where(Profile.id == tutor_id, Profile.role == UserRole.TUTOR)
        )
        tutor = result.scalar_one_or_none()
        if tutor is None:
            raise NotFoundError("Tutor not found")

        existing = await self.db.execute(
            select(ClassEnrollment).where(
                ClassEnrollment.student_id == student.id,
                ClassEnrollment.tutor_id == tutor_id
            )
        )
        if existing.scalar_one_or_none():
            raise ConflictError("You have already joined this class")

        enrollment = ClassEnrollment(student_id=student.id, tutor_id=tutor_id)
        self.db.add(enrollment)
        await self.db.flush()

        logger.info(f"Student {student.id} joined class of tutor {tutor_id}")
        return enrollment, tutor

    async def leave_class(self, user: Profile, enrollment_id: uuid.UUID) -> None:
        result = await self.db.execute(select(ClassEnrollment).where(ClassEnrollment.id == enrollment_id))
        enrollment = result.scalar_one_or_none()
        if enrollment is None:
            raise NotFoundError("Enrollment not found")
        if user.id not in (enrollment.student_id, enrollment.tutor_id):
            raise AuthorizationError("Not authorized to remove this enrollment")

        await self.db.delete(enrollment)
        await self.db.flush()
        logger.info(f"Enrollment {enrollment_id} removed by {user.id}")

    async def list_for_student(self, student: Profile) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(ClassEnrollment, Profile.full_name)
            .join(Profile, Profile.id == ClassEnrollment.tutor_id)
            .where(ClassEnrollment.student_id == student.id)
            .order_by(ClassEnrollment.created_at.desc())
        )
        return [serialize_enrollment(row[0], tutor_name=row[1]) for row in result.all()]

    async def list_students(self, tutor: Profile) -> List[Dict[str, Any]]:
        """Students enrolled in the tutor's class, used to pick class session attendees"""
        student = aliased(Profile)
        result = await self.db.execute(
            select(ClassEnrollment, student.full_name)
            .join(student, student.id == ClassEnrollment.student_id)
            .where(ClassEnrollment.tutor_id == tutor.id)
            .order_by(student.full_name.asc())
        )
        return [serialize_enrollment(row[0], student_name=row[1]) for row in result.all()]

    async def search_tutors(self, student: Profile, query: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Tutors whose name matches, excluding classes the student already joined"""
        joined = select(ClassEnrollment.tutor_id).where(ClassEnrollment.student_id == student.id)
        statement = (
            select(Profile, TutorProfile.subjects)
            .outerjoin(TutorProfile, TutorProfile.user_id == Profile.id)
            .where(
                Profile.role == UserRole.TUTOR,
                Profile.id.not_in(joined)
            )
            .order_by(Profile.full_name.asc())
            .limit(limit)
        )
        if query and query.strip():
            statement = statement.where(Profile.full_name.ilike(f"%{query.strip()}%"))

        result = await self.db.execute(statement)
        return [
            {
                "id": str(profile.id),
                "full_name": profile.full_name,
                "avatar_url": profile.avatar_url,
                "subjects": subjects or [],
            }
            for profile, subjects in result.all()
        ]
