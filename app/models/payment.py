from sqlalchemy import Column, String, Integer, ForeignKey, Enum, Uuid
import enum

from app.core.database import Base


class PaymentProvider(str, enum.Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    MANUAL = "manual"  # Zelle/Venmo confirmed by the tutor


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Payment(Base):
    __tablename__ = "payments"

    session_id = Column(Uuid, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)

    # Payment details
    provider = Column(Enum(PaymentProvider), nullable=False)
    provider_reference = Column(String, nullable=True, index=True)  # Checkout session / PayPal order id
    provider_event_id = Column(String, unique=True, nullable=True)  # Stripe event id or PayPal capture id
    amount_cents = Column(Integer, nullable=False)
    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)

    def __repr__(self):
        return f"<Payment(session_id={self.session_id}, provider={self.provider}, amount_cents={self.amount_cents}, status={self.status})>"
