from sqlalchemy import Column, ForeignKey, Uuid, UniqueConstraint

from app.core.database import Base


class ClassEnrollment(Base):
    __tablename__ = "class_enrollments"
    __table_args__ = (UniqueConstraint("student_id", "tutor_id", name="uq_class_enrollments_pair"),)

    student_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    tutor_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    def __repr__(self):
        return f"<ClassEnrollment(student_id={self.student_id}, tutor_id={self.tutor_id})>"
