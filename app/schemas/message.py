from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
import uuid


class ConversationCreate(BaseModel):
    recipient_id: uuid.UUID = Field(..., description="User to talk to")


class MessageCreate(BaseModel):
    content: str = Field(..., max_length=5000)

    @field_validator("content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message cannot be empty")
        return value.strip()


class ConversationResponse(BaseModel):
    id: str
    other_user_id: str
    other_user_name: str
    other_user_avatar: Optional[str] = None
    last_message_at: datetime
    last_message: Optional[str] = None
    unread_count: int = 0


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    recipient_id: str
    content: str
    read_at: Optional[datetime] = None
    created_at: datetime
