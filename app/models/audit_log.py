from sqlalchemy import Column, String, ForeignKey, JSON, Uuid

from app.core.database import Base


class AuditLog(Base):
    __tablename__ = "audit_log"

    # Actor information
    actor_user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)  # Null for system actions

    # Action details
    action = Column(String, nullable=False)  # e.g., "status_change", "reschedule"
    entity = Column(String, nullable=False)  # e.g., "session"
    entity_id = Column(String, nullable=True)

    # Change tracking
    diff = Column(JSON, nullable=True)  # {"status": {"from": ..., "to": ...}}

    def __repr__(self):
        return f"<AuditLog(actor_user_id={self.actor_user_id}, action={self.action}, entity={self.entity}, entity_id={self.entity_id})>"
