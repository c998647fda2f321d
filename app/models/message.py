from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from app.core.database import Base, utcnow


class Conversation(Base):
    __tablename__ = "conversations"

    # Participants (unordered pair)
    participant_1 = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    participant_2 = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    last_message_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan")

    def other_participant(self, user_id):
        return self.participant_2 if self.participant_1 == user_id else self.participant_1

    def __repr__(self):
        return f"<Conversation(participant_1={self.participant_1}, participant_2={self.participant_2})>"


class Message(Base):
    __tablename__ = "messages"

    conversation_id = Column(Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    recipient_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    # Message details
    content = Column(Text, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")

    def __repr__(self):
        return f"<Message(conversation_id={self.conversation_id}, sender_id={self.sender_id})>"
