from sqlalchemy import Column, String, DateTime, Integer, Boolean, ForeignKey, Text, Enum, Uuid
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base


class SessionStatus(str, enum.Enum):
    PENDING = "pending"
    AWAITING_PAYMENT = "awaiting_payment"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


UPCOMING_STATUSES = (SessionStatus.PENDING, SessionStatus.AWAITING_PAYMENT, SessionStatus.CONFIRMED)
PAST_STATUSES = (SessionStatus.COMPLETED, SessionStatus.CANCELLED)


class TutoringSession(Base):
    __tablename__ = "sessions"

    # Participants
    student_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    tutor_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    # Schedule
    subject = Column(String, nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)  # UTC
    duration_minutes = Column(Integer, default=60, nullable=False)
    student_timezone_view = Column(String, nullable=True)  # Timezone the student booked in

    # Status and payment
    status = Column(Enum(SessionStatus), default=SessionStatus.PENDING, nullable=False)
    price_cents = Column(Integer, nullable=True)

    # Meeting details
    meeting_link = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    # Class sessions (one row per enrolled student)
    group_session_id = Column(Uuid, nullable=True, index=True)
    is_class_session = Column(Boolean, default=False, nullable=False)

    # Relationships
    student = relationship("Profile", foreign_keys=[student_id])
    tutor = relationship("Profile", foreign_keys=[tutor_id])

    def __repr__(self):
        return f"<TutoringSession(student_id={self.student_id}, tutor_id={self.tutor_id}, scheduled_at={self.scheduled_at}, status={self.status})>"
