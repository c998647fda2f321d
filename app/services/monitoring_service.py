from typing import Any, Dict
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_

from app.models.profile import Profile, UserRole
from app.models.tutor_profile import TutorProfile
from app.models.session import TutoringSession, SessionStatus
from app.models.message import Message
from app.models.payment import Payment, PaymentStatus

logger = logging.getLogger(__name__)


class MonitoringService:
    """Founder dashboard: platform totals and per-tutor activity"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_overview(self) -> Dict[str, Any]:
        role_counts = await self.db.execute(select(Profile.role, func.count(Profile.id)).group_by(Profile.role))
        users = {role.value: 0 for role in UserRole}
        for role, count in role_counts.all():
            users[role.value] = count

        status_counts = await self.db.execute(
            select(TutoringSession.status, func.count(TutoringSession.id)).group_by(TutoringSession.status)
        )
        sessions = {status.value: 0 for status in SessionStatus}
        for session_status, count in status_counts.all():
            sessions[session_status.value] = count

        revenue = await self.db.execute(
            select(func.coalesce(func.sum(Payment.amount_cents), 0)).where(Payment.status == PaymentStatus.SUCCEEDED)
        )
        missing_phone = await self.db.execute(
            select(func.count(Profile.id)).where(Profile.phone_number.is_(None))
        )

        tutors_result = await self.db.execute(
            select(Profile, TutorProfile)
            .join(TutorProfile, TutorProfile.user_id == Profile.id)
            .order_by(TutorProfile.total_sessions.desc())
        )
        tutors = []
        for profile, tutor_profile in tutors_result.all():
            message_count = await self.db.execute(
                select(func.count(Message.id)).where(
                    or_(Message.sender_id == profile.id, Message.recipient_id == profile.id)
                )
            )
            session_count = await self.db.execute(
                select(func.count(TutoringSession.id)).where(TutoringSession.tutor_id == profile.id)
            )
            tutors.append({
                "id": str(profile.id),
                "full_name": profile.full_name,
                "email": profile.email,
                "avatar_url": profile.avatar_url,
                "subjects": tutor_profile.subjects or [],
                "rating": tutor_profile.rating or 0.0,
                "total_sessions": tutor_profile.total_sessions or 0,
                "message_count": message_count.scalar_one(),
                "session_count": session_count.scalar_one(),
            })

        logger.info(f"Monitoring overview built for {len(tutors)} tutors")
        return {
            "users": users,
            "sessions": sessions,
            "revenue_cents": revenue.scalar_one() or 0,
            "users_without_phone": missing_phone.scalar_one(),
            "tutors": tutors,
        }
