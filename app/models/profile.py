from sqlalchemy import Column, String, Enum, Text, Boolean, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base


class UserRole(str, enum.Enum):
    STUDENT = "student"
    TUTOR = "tutor"


class GrantedRole(str, enum.Enum):
    FOUNDER = "founder"


class Profile(Base):
    __tablename__ = "profiles"

    # Core identity (id is the auth provider's user id)
    role = Column(Enum(UserRole), default=UserRole.STUDENT, nullable=False)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    timezone = Column(String, default="America/New_York", nullable=False)

    # Public profile
    avatar_url = Column(String, nullable=True)
    bio = Column(Text, nullable=True)

    # SMS opt-in
    phone_number = Column(String, nullable=True)
    phone_notification_dismissed = Column(Boolean, default=False, nullable=False)

    # Relationships
    tutor_profile = relationship(
        "TutorProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    student_profile = relationship(
        "StudentProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    role_grants = relationship("UserRoleGrant", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Profile(id={self.id}, email={self.email}, role={self.role})>"


class UserRoleGrant(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(GrantedRole), nullable=False)

    user = relationship("Profile", back_populates="role_grants")

    def __repr__(self):
        return f"<UserRoleGrant(user_id={self.user_id}, role={self.role})>"
