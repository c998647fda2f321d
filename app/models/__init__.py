from app.core.database import Base
from .profile import Profile, UserRole, UserRoleGrant, GrantedRole
from .tutor_profile import TutorProfile
from .student_profile import StudentProfile
from .session import TutoringSession, SessionStatus
from .message import Conversation, Message
from .review import Review
from .class_enrollment import ClassEnrollment
from .ai_match import AIMatch
from .payment import Payment, PaymentProvider, PaymentStatus
from .audit_log import AuditLog

__all__ = [
    # Core models
    "Profile",
    "UserRole",
    "UserRoleGrant",
    "GrantedRole",
    "TutorProfile",
    "StudentProfile",

    # Sessions and payments
    "TutoringSession",
    "SessionStatus",
    "Payment",
    "PaymentProvider",
    "PaymentStatus",

    # Social
    "Conversation",
    "Message",
    "Review",
    "ClassEnrollment",

    # Matching and audit
    "AIMatch",
    "AuditLog"
]
