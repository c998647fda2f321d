from sqlalchemy import Column, String, Text, Integer, Boolean, Float, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship

from app.core.database import Base


class TutorProfile(Base):
    __tablename__ = "tutor_profiles"

    # Foreign key to profile
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, unique=True)

    # Teaching information
    subjects = Column(JSON, nullable=False, default=list)  # List of subject strings
    hourly_rate_cents = Column(Integer, nullable=True)  # Rate in cents
    education = Column(Text, nullable=True)
    experience_years = Column(Integer, nullable=True)
    teaching_style = Column(Text, nullable=True)

    # Weekly schedule: {"monday": {"enabled": bool, "slots": [{"start": "HH:MM", "end": "HH:MM"}]}, ...}
    availability = Column(JSON, nullable=True)
    timezone = Column(String, default="America/New_York", nullable=False)

    # Reputation (maintained from reviews and confirmed sessions)
    rating = Column(Float, default=0.0, nullable=False)
    total_reviews = Column(Integer, default=0, nullable=False)
    total_sessions = Column(Integer, default=0, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)

    # Stripe Connect payouts
    stripe_account_id = Column(String, nullable=True)
    stripe_onboarding_complete = Column(Boolean, default=False, nullable=False)

    # Relationships
    user = relationship("Profile", back_populates="tutor_profile")

    def __repr__(self):
        return f"<TutorProfile(user_id={self.user_id}, subjects={self.subjects})>"
