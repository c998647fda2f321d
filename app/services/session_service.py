from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from sqlalchemy.orm import aliased

from app.core.pricing import calculate_session_price, split_class_price, ClassPriceSplit
from app.core.timezone_utils import ensure_utc
from app.models.profile import Profile, UserRole
from app.models.tutor_profile import TutorProfile
from app.models.session import TutoringSession, SessionStatus, UPCOMING_STATUSES, PAST_STATUSES
from app.models.payment import Payment, PaymentProvider, PaymentStatus
from app.models.audit_log import AuditLog
from app.schemas.session import (
    SessionBookRequest,
    ClassSessionCreateRequest,
    SessionRescheduleRequest,
)
from app.services.availability_service import AvailabilityService, normalize_availability, is_within_availability
from app.core.exceptions import (
    AvailabilityError,
    AuthorizationError,
    NotFoundError,
    PaymentError,
    SessionStateError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[SessionStatus, Set[SessionStatus]] = {
    SessionStatus.PENDING: {SessionStatus.AWAITING_PAYMENT, SessionStatus.CONFIRMED, SessionStatus.CANCELLED},
    SessionStatus.AWAITING_PAYMENT: {SessionStatus.CONFIRMED, SessionStatus.CANCELLED},
    SessionStatus.CONFIRMED: {SessionStatus.COMPLETED, SessionStatus.CANCELLED},
    SessionStatus.COMPLETED: set(),
    SessionStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = (SessionStatus.COMPLETED, SessionStatus.CANCELLED)
PAYABLE_STATUSES = (SessionStatus.AWAITING_PAYMENT, SessionStatus.CONFIRMED)


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


class SessionService:
    """Session booking and lifecycle: every status write goes through transition()"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.availability_service = AvailabilityService()

    async def get_session(self, session_id: uuid.UUID) -> TutoringSession:
        result = await self.db.execute(select(TutoringSession).where(TutoringSession.id == session_id))
        session = result.scalar_one_or_none()
        if session is None:
            raise NotFoundError("Session not found")
        return session

    async def get_session_for_participant(self, session_id: uuid.UUID, user: Profile) -> TutoringSession:
        session = await self.get_session(session_id)
        if user.id not in (session.student_id, session.tutor_id):
            raise AuthorizationError("Not authorized to access this session")
        return session

    async def get_profile(self, user_id: uuid.UUID) -> Optional[Profile]:
        result = await self.db.execute(select(Profile).where(Profile.id == user_id))
        return result.scalar_one_or_none()

    async def _get_tutor(self, tutor_id: uuid.UUID) -> Tuple[Profile, TutorProfile]:
        result = await self.db.execute(
            select(Profile, TutorProfile)
            .join(TutorProfile, TutorProfile.user_id == Profile.id)
            .where(Profile.id == tutor_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Tutor not found")
        return row[0], row[1]

    async def get_payable_session(self, session_id: uuid.UUID, student: Profile) -> Tuple[TutoringSession, str]:
        """Re-fetch a session for payment and return it with the tutor's display name"""
        session = await self.get_session(session_id)
        if session.student_id != student.id:
            raise AuthorizationError("Not authorized to pay for this session")
        if session.status not in PAYABLE_STATUSES:
            raise PaymentError("Session is not awaiting payment")
        if not session.price_cents or session.price_cents <= 0:
            raise PaymentError("Session does not have a valid price")

        tutor = await self.get_profile(session.tutor_id)
        return session, (tutor.full_name if tutor and tutor.full_name else "Tutor")

    def _audit(self, session: TutoringSession, actor_id: Optional[uuid.UUID], action: str, diff: dict) -> None:
        self.db.add(AuditLog(
            actor_user_id=actor_id,
            action=action,
            entity="session",
            entity_id=str(session.id),
            diff=diff
        ))

    async def transition(
        self,
        session: TutoringSession,
        target: SessionStatus,
        actor_id: Optional[uuid.UUID] = None
    ) -> TutoringSession:
        """Apply a status change allowed by ALLOWED_TRANSITIONS and record it"""
        current = session.status
        if not can_transition(current, target):
            raise SessionStateError(current, target)

        session.status = target
        self._audit(session, actor_id, "status_change", {"status": {"from": current.value, "to": target.value}})

        if target == SessionStatus.CONFIRMED:
            result = await self.db.execute(select(TutorProfile).where(TutorProfile.user_id == session.tutor_id))
            tutor_profile = result.scalar_one_or_none()
            if tutor_profile is not None:
                tutor_profile.total_sessions = (tutor_profile.total_sessions or 0) + 1

        await self.db.flush()
        logger.info(f"Session {session.id} moved from {current.value} to {target.value}")
        return session

    async def book_session(self, student: Profile, request: SessionBookRequest) -> TutoringSession:
        """Student requests a one-to-one session; it starts as pending"""
        if request.tutor_id == student.id:
            raise ValidationError("You cannot book a session with yourself")

        tutor, tutor_profile = await self._get_tutor(request.tutor_id)
        scheduled_at = ensure_utc(request.scheduled_at)
        if scheduled_at <= datetime.now(timezone.utc):
            raise ValidationError("Session must be scheduled in the future")

        if tutor_profile.availability and not is_within_availability(
            normalize_availability(tutor_profile.availability),
            tutor_profile.timezone,
            scheduled_at,
            request.duration_minutes
        ):
            raise AvailabilityError("Requested time is outside the tutor's availability")

        if not await self.availability_service.check_slot_availability(
            tutor.id, scheduled_at, request.duration_minutes, self.db
        ):
            raise AvailabilityError("Tutor already has a session at this time")

        session = TutoringSession(
            student_id=student.id,
            tutor_id=tutor.id,
            subject=request.subject.strip(),
            scheduled_at=scheduled_at,
            duration_minutes=request.duration_minutes,
            price_cents=calculate_session_price(tutor_profile.hourly_rate_cents, request.duration_minutes),
            status=SessionStatus.PENDING,
            notes=request.notes,
            student_timezone_view=request.student_timezone_view,
        )
        self.db.add(session)
        await self.db.flush()
        self._audit(session, student.id, "create", {"status": {"from": None, "to": SessionStatus.PENDING.value}})

        logger.info(f"Student {student.id} booked session {session.id} with tutor {tutor.id}")
        return session

    async def create_class_sessions(
        self,
        tutor: Profile,
        request: ClassSessionCreateRequest
    ) -> Tuple[ClassPriceSplit, Optional[uuid.UUID], List[TutoringSession]]:
        """Tutor creates one awaiting-payment session per selected student"""
        student_ids = list(dict.fromkeys(request.student_ids))
        try:
            split = split_class_price(request.total_price_cents, len(student_ids))
        except ValueError as e:
            raise ValidationError(str(e))

        if tutor.id in student_ids:
            raise ValidationError("You cannot add yourself as a student")

        scheduled_at = ensure_utc(request.scheduled_at)
        if scheduled_at <= datetime.now(timezone.utc):
            raise ValidationError("Session must be scheduled in the future")

        result = await self.db.execute(select(Profile).where(Profile.id.in_(student_ids)))
        students = {profile.id: profile for profile in result.scalars().all()}
        for student_id in student_ids:
            student = students.get(student_id)
            if student is None:
                raise NotFoundError(f"Student {student_id} not found")
            if student.role != UserRole.STUDENT:
                raise ValidationError(f"User {student_id} is not a student")

        if not await self.availability_service.check_slot_availability(
            tutor.id, scheduled_at, request.duration_minutes, self.db
        ):
            raise AvailabilityError("You already have a session at this time")

        group_session_id = uuid.uuid4() if len(student_ids) > 1 else None
        sessions = []
        for student_id in student_ids:
            session = TutoringSession(
                student_id=student_id,
                tutor_id=tutor.id,
                subject=request.subject.strip(),
                scheduled_at=scheduled_at,
                duration_minutes=request.duration_minutes,
                price_cents=split.per_student_cents,
                status=SessionStatus.AWAITING_PAYMENT,
                notes=request.notes,
                group_session_id=group_session_id,
                is_class_session=True,
            )
            self.db.add(session)
            sessions.append(session)

        await self.db.flush()
        for session in sessions:
            self._audit(session, tutor.id, "create", {"status": {"from": None, "to": SessionStatus.AWAITING_PAYMENT.value}})

        logger.info(
            f"Tutor {tutor.id} created class session for {len(sessions)} students "
            f"({split.per_student_cents} cents each)"
        )
        return split, group_session_id, sessions

    def _require_tutor(self, session: TutoringSession, user: Profile) -> None:
        if session.tutor_id != user.id:
            raise AuthorizationError("Only the session's tutor can do this")

    async def accept_session(self, session: TutoringSession, tutor: Profile) -> TutoringSession:
        """Tutor accepts a pending request; free sessions skip payment"""
        self._require_tutor(session, tutor)
        if session.status != SessionStatus.PENDING:
            raise SessionStateError(session.status, SessionStatus.AWAITING_PAYMENT)

        target = SessionStatus.AWAITING_PAYMENT if session.price_cents else SessionStatus.CONFIRMED
        return await self.transition(session, target, tutor.id)

    async def cancel_session(self, session: TutoringSession, user: Profile) -> TutoringSession:
        if user.id not in (session.student_id, session.tutor_id):
            raise AuthorizationError("Not authorized to cancel this session")
        return await self.transition(session, SessionStatus.CANCELLED, user.id)

    async def complete_session(self, session: TutoringSession, tutor: Profile) -> TutoringSession:
        self._require_tutor(session, tutor)
        return await self.transition(session, SessionStatus.COMPLETED, tutor.id)

    async def confirm_payment(
        self,
        session: TutoringSession,
        actor_id: Optional[uuid.UUID] = None
    ) -> TutoringSession:
        """Mark a session paid; a session that is already confirmed is left as is"""
        if session.status == SessionStatus.CONFIRMED:
            logger.info(f"Session {session.id} already confirmed")
            return session
        return await self.transition(session, SessionStatus.CONFIRMED, actor_id)

    async def mark_paid_manually(self, session: TutoringSession, tutor: Profile) -> TutoringSession:
        """Tutor confirms an off-platform payment (Zelle, Venmo)"""
        self._require_tutor(session, tutor)
        if session.status != SessionStatus.AWAITING_PAYMENT:
            raise SessionStateError(session.status, SessionStatus.CONFIRMED)

        self.db.add(Payment(
            session_id=session.id,
            student_id=session.student_id,
            provider=PaymentProvider.MANUAL,
            amount_cents=session.price_cents or 0,
            status=PaymentStatus.SUCCEEDED,
        ))
        return await self.transition(session, SessionStatus.CONFIRMED, tutor.id)

    async def reschedule_session(
        self,
        session: TutoringSession,
        tutor: Profile,
        request: SessionRescheduleRequest
    ) -> TutoringSession:
        self._require_tutor(session, tutor)
        if session.status in TERMINAL_STATUSES:
            raise ValidationError(f"Cannot update a {session.status.value} session")

        diff = {}
        new_start = ensure_utc(request.scheduled_at) if request.scheduled_at else ensure_utc(session.scheduled_at)
        new_duration = request.duration_minutes or session.duration_minutes

        if request.scheduled_at or request.duration_minutes:
            if request.scheduled_at and new_start <= datetime.now(timezone.utc):
                raise ValidationError("Session must be scheduled in the future")
            if not await self.availability_service.check_slot_availability(
                tutor.id, new_start, new_duration, self.db, exclude_session_id=session.id
            ):
                raise AvailabilityError("You already have a session at this time")
            diff["scheduled_at"] = {"from": ensure_utc(session.scheduled_at).isoformat(), "to": new_start.isoformat()}
            diff["duration_minutes"] = {"from": session.duration_minutes, "to": new_duration}
            session.scheduled_at = new_start
            session.duration_minutes = new_duration

        if request.notes is not None:
            session.notes = request.notes
            diff["notes"] = "updated"

        self._audit(session, tutor.id, "update", diff)
        await self.db.flush()
        return session

    async def set_meeting_link(self, session: TutoringSession, tutor: Profile, meeting_link: str) -> TutoringSession:
        self._require_tutor(session, tutor)
        if session.status in TERMINAL_STATUSES:
            raise ValidationError(f"Cannot update a {session.status.value} session")
        session.meeting_link = meeting_link
        self._audit(session, tutor.id, "meeting_link", {"meeting_link": "set"})
        await self.db.flush()
        return session

    async def list_sessions(
        self,
        user: Profile,
        scope: str = "all"
    ) -> List[Tuple[TutoringSession, str, str]]:
        """Sessions of the caller with (session, student_name, tutor_name)"""
        student = aliased(Profile)
        tutor = aliased(Profile)
        query = (
            select(TutoringSession, student.full_name, tutor.full_name)
            .join(student, student.id == TutoringSession.student_id)
            .join(tutor, tutor.id == TutoringSession.tutor_id)
            .where(or_(TutoringSession.student_id == user.id, TutoringSession.tutor_id == user.id))
        )

        if scope == "upcoming":
            query = query.where(TutoringSession.status.in_(UPCOMING_STATUSES)).order_by(TutoringSession.scheduled_at.asc())
        elif scope == "past":
            query = query.where(TutoringSession.status.in_(PAST_STATUSES)).order_by(TutoringSession.scheduled_at.desc())
        else:
            query = query.order_by(TutoringSession.scheduled_at.desc())

        result = await self.db.execute(query)
        return [(row[0], row[1], row[2]) for row in result.all()]


def serialize_session(
    session: TutoringSession,
    student_name: Optional[str] = None,
    tutor_name: Optional[str] = None
) -> dict:
    return {
        "id": str(session.id),
        "student_id": str(session.student_id),
        "tutor_id": str(session.tutor_id),
        "student_name": student_name,
        "tutor_name": tutor_name,
        "subject": session.subject,
        "scheduled_at": ensure_utc(session.scheduled_at),
        "duration_minutes": session.duration_minutes,
        "status": session.status,
        "price_cents": session.price_cents,
        "meeting_link": session.meeting_link,
        "notes": session.notes,
        "group_session_id": str(session.group_session_id) if session.group_session_id else None,
        "is_class_session": bool(session.is_class_session),
        "student_timezone_view": session.student_timezone_view,
    }
