from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, and_

from app.core.database import utcnow
from app.core.timezone_utils import ensure_utc
from app.models.profile import Profile
from app.models.message import Conversation, Message
from app.core.exceptions import NotFoundError, AuthorizationError, ValidationError

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


def message_preview(content: str) -> str:
    return content.strip()[:PREVIEW_LENGTH]


def serialize_message(message: Message) -> Dict[str, Any]:
    return {
        "id": str(message.id),
        "conversation_id": str(message.conversation_id),
        "sender_id": str(message.sender_id),
        "recipient_id": str(message.recipient_id),
        "content": message.content,
        "read_at": ensure_utc(message.read_at),
        "created_at": ensure_utc(message.created_at),
    }


class MessagingService:
    """One conversation per pair of users; clients poll for messages after a timestamp"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_conversation(self, conversation_id: uuid.UUID, user: Profile) -> Conversation:
        result = await self.db.execute(select(Conversation).where(Conversation.id == conversation_id))
        conversation = result.scalar_one_or_none()
        if conversation is None:
            raise NotFoundError("Conversation not found")
        if user.id not in (conversation.participant_1, conversation.participant_2):
            raise AuthorizationError("Not a participant in this conversation")
        return conversation

    async def get_or_create_conversation(self, user: Profile, recipient_id: uuid.UUID) -> Conversation:
        if recipient_id == user.id:
            raise ValidationError("You cannot message yourself")

        recipient = await self.db.execute(select(Profile.id).where(Profile.id == recipient_id))
        if recipient.scalar_one_or_none() is None:
            raise NotFoundError("Recipient not found")

        result = await self.db.execute(
            select(Conversation).where(
                or_(
                    and_(Conversation.participant_1 == user.id, Conversation.participant_2 == recipient_id),
                    and_(Conversation.participant_1 == recipient_id, Conversation.participant_2 == user.id),
                )
            )
        )
        conversation = result.scalars().first()
        if conversation is not None:
            return conversation

        conversation = Conversation(participant_1=user.id, participant_2=recipient_id, last_message_at=utcnow())
        self.db.add(conversation)
        await self.db.flush()
        logger.info(f"Started conversation {conversation.id} between {user.id} and {recipient_id}")
        return conversation

    async def list_conversations(self, user: Profile) -> List[Dict[str, Any]]:
        """Conversations newest first, with the other participant, last message and unread count"""
        result = await self.db.execute(
            select(Conversation)
            .where(or_(Conversation.participant_1 == user.id, Conversation.participant_2 == user.id))
            .order_by(Conversation.last_message_at.desc())
        )
        conversations = result.scalars().all()
        if not conversations:
            return []

        other_ids = {conversation.other_participant(user.id) for conversation in conversations}
        profiles_result = await self.db.execute(select(Profile).where(Profile.id.in_(other_ids)))
        profiles = {profile.id: profile for profile in profiles_result.scalars().all()}

        conversation_ids = [conversation.id for conversation in conversations]
        unread_result = await self.db.execute(
            select(Message.conversation_id, func.count(Message.id))
            .where(
                Message.conversation_id.in_(conversation_ids),
                Message.recipient_id == user.id,
                Message.read_at.is_(None)
            )
            .group_by(Message.conversation_id)
        )
        unread = {row[0]: row[1] for row in unread_result.all()}

        items = []
        for conversation in conversations:
            last_result = await self.db.execute(
                select(Message.content)
                .where(Message.conversation_id == conversation.id)
                .order_by(Message.created_at.desc())
                .limit(1)
            )
            other = profiles.get(conversation.other_participant(user.id))
            items.append({
                "id": str(conversation.id),
                "other_user_id": str(conversation.other_participant(user.id)),
                "other_user_name": other.full_name if other else "Unknown user",
                "other_user_avatar": other.avatar_url if other else None,
                "last_message_at": ensure_utc(conversation.last_message_at),
                "last_message": last_result.scalar_one_or_none(),
                "unread_count": unread.get(conversation.id, 0),
            })
        return items

    async def get_messages(
        self,
        conversation_id: uuid.UUID,
        user: Profile,
        after: Optional[datetime] = None,
        limit: int = 200
    ) -> List[Message]:
        """Messages oldest first; messages addressed to the caller are marked read"""
        conversation = await self.get_conversation(conversation_id, user)

        query = select(Message).where(Message.conversation_id == conversation.id)
        if after is not None:
            query = query.where(Message.created_at > ensure_utc(after))
        result = await self.db.execute(query.order_by(Message.created_at.asc()).limit(limit))
        messages = list(result.scalars().all())

        now = utcnow()
        for message in messages:
            if message.recipient_id == user.id and message.read_at is None:
                message.read_at = now
        await self.db.flush()
        return messages

    async def send_message(
        self,
        conversation_id: uuid.UUID,
        sender: Profile,
        content: str
    ) -> Tuple[Message, Profile]:
        """Store a message and return it with the recipient's profile for notification"""
        conversation = await self.get_conversation(conversation_id, sender)
        recipient_id = conversation.other_participant(sender.id)

        recipient_result = await self.db.execute(select(Profile).where(Profile.id == recipient_id))
        recipient = recipient_result.scalar_one_or_none()
        if recipient is None:
            raise NotFoundError("Recipient not found")

        now = utcnow()
        message = Message(
            conversation_id=conversation.id,
            sender_id=sender.id,
            recipient_id=recipient_id,
            content=content,
            created_at=now,
        )
        self.db.add(message)
        conversation.last_message_at = now
        await self.db.flush()

        logger.info(f"Message {message.id} sent in conversation {conversation.id}")
        return message, recipient

    async def unread_count(self, user: Profile) -> int:
        result = await self.db.execute(
            select(func.count(Message.id)).where(
                Message.recipient_id == user.id,
                Message.read_at.is_(None)
            )
        )
        return result.scalar_one() or 0
