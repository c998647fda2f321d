from sqlalchemy import Column, Integer, ForeignKey, JSON, Uuid

from app.core.database import Base


class AIMatch(Base):
    __tablename__ = "ai_matches"

    student_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    tutor_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)

    match_score = Column(Integer, nullable=False)  # 0-100
    match_reasons = Column(JSON, nullable=False, default=list)

    def __repr__(self):
        return f"<AIMatch(student_id={self.student_id}, tutor_id={self.tutor_id}, match_score={self.match_score})>"
