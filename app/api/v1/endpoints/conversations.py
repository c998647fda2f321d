from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime
import logging
import uuid

from app.core.database import get_db
from app.core.auth import get_current_user
from app.core.exceptions import BrightMindsException, to_http_exception
from app.models.profile import Profile
from app.schemas.message import ConversationCreate, ConversationResponse, MessageCreate, MessageResponse
from app.schemas.notification import NotificationType, NotificationData
from app.services.messaging_service import MessagingService, message_preview, serialize_message
from app.services.notification_service import NotificationService, recipient_contact

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[ConversationResponse])
async def list_conversations(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Caller's conversations, most recently active first"""
    return await MessagingService(db).list_conversations(current_user)


@router.post("", response_model=ConversationResponse)
async def start_conversation(
    request: ConversationCreate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Open the conversation with a user, creating it on first contact"""
    try:
        messaging_service = MessagingService(db)
        conversation = await messaging_service.get_or_create_conversation(current_user, request.recipient_id)
        conversations = await messaging_service.list_conversations(current_user)
        return next(item for item in conversations if item["id"] == str(conversation.id))

    except BrightMindsException as e:
        raise to_http_exception(e)


@router.get("/unread-count")
async def get_unread_count(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    count = await MessagingService(db).unread_count(current_user)
    return {"unread_count": count}


@router.get("/{conversation_id}/messages", response_model=List[MessageResponse])
async def get_messages(
    conversation_id: uuid.UUID,
    after: Optional[datetime] = Query(None, description="Only messages created after this instant (polling)"),
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Messages oldest first; the caller's unread messages are marked read"""
    try:
        messages = await MessagingService(db).get_messages(conversation_id, current_user, after=after)
        return [serialize_message(message) for message in messages]

    except BrightMindsException as e:
        raise to_http_exception(e)


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    conversation_id: uuid.UUID,
    request: MessageCreate,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        message, recipient = await MessagingService(db).send_message(conversation_id, current_user, request.content)

        background_tasks.add_task(
            NotificationService().dispatch,
            NotificationType.NEW_MESSAGE,
            recipient_contact(recipient),
            NotificationData(
                sender_name=current_user.full_name or "Someone",
                message_preview=message_preview(message.content)
            )
        )
        return serialize_message(message)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Sending message in {conversation_id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to send message: {str(e)}"
        )
