from sqlalchemy import Column, String, Text, Boolean, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship

from app.core.database import Base


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    # Foreign key to profile
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, unique=True)

    # Matching questionnaire
    background = Column(Text, nullable=True)
    personality = Column(Text, nullable=True)
    learning_goals = Column(Text, nullable=True)
    learning_style = Column(String, nullable=True)
    study_habits = Column(Text, nullable=True)
    subjects_interested = Column(JSON, nullable=False, default=list)
    preferred_schedule = Column(JSON, nullable=True)
    ai_matching_completed = Column(Boolean, default=False, nullable=False)

    # Relationships
    user = relationship("Profile", back_populates="student_profile")

    def __repr__(self):
        return f"<StudentProfile(user_id={self.user_id}, ai_matching_completed={self.ai_matching_completed})>"
