from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging
import uuid

from app.core.database import get_db
from app.core.auth import get_current_user, get_current_student, get_current_tutor
from app.core.exceptions import BrightMindsException, to_http_exception
from app.core.timezone_utils import format_datetime_for_timezone, timezone_label
from app.models.profile import Profile
from app.models.session import TutoringSession
from app.schemas.session import (
    SessionBookRequest,
    ClassSessionCreateRequest,
    SessionRescheduleRequest,
    MeetingLinkRequest,
    SessionResponse,
    ClassSessionCreateResponse,
)
from app.schemas.notification import NotificationType, NotificationData
from app.services.session_service import SessionService, serialize_session
from app.services.notification_service import NotificationService, recipient_contact

logger = logging.getLogger(__name__)

router = APIRouter()


def _notify(
    background_tasks: BackgroundTasks,
    notification_type: NotificationType,
    recipient: Optional[Profile],
    session: TutoringSession,
    sender_name: Optional[str] = None,
    student_timezone_view: Optional[str] = None
) -> None:
    """Queue a notification about a session; it is sent after the response"""
    if recipient is None:
        return
    data = NotificationData(
        sender_name=sender_name,
        subject=session.subject,
        session_date=format_datetime_for_timezone(session.scheduled_at, recipient.timezone),
        meeting_link=session.meeting_link,
        student_timezone_view=student_timezone_view,
    )
    background_tasks.add_task(
        NotificationService().dispatch,
        notification_type,
        recipient_contact(recipient),
        data
    )


async def _with_names(session_service: SessionService, session: TutoringSession) -> dict:
    student = await session_service.get_profile(session.student_id)
    tutor = await session_service.get_profile(session.tutor_id)
    return serialize_session(
        session,
        student.full_name if student else None,
        tutor.full_name if tutor else None
    )


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def book_session(
    request: SessionBookRequest,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    """Student requests a session with a tutor"""
    try:
        session_service = SessionService(db)
        session = await session_service.book_session(current_user, request)

        tutor = await session_service.get_profile(session.tutor_id)
        _notify(
            background_tasks,
            NotificationType.SESSION_BOOKED,
            tutor,
            session,
            sender_name=current_user.full_name,
            student_timezone_view=timezone_label(session.student_timezone_view) if session.student_timezone_view else None
        )
        return serialize_session(session, current_user.full_name, tutor.full_name if tutor else None)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Booking failed for student {current_user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to book session: {str(e)}"
        )


@router.post("/class", response_model=ClassSessionCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_class_session(
    request: ClassSessionCreateRequest,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_tutor),
    db: AsyncSession = Depends(get_db)
):
    """Tutor schedules a class for selected students; the price is split evenly"""
    try:
        session_service = SessionService(db)
        split, group_session_id, sessions = await session_service.create_class_sessions(current_user, request)

        responses = []
        for session in sessions:
            student = await session_service.get_profile(session.student_id)
            _notify(
                background_tasks,
                NotificationType.SESSION_BOOKED,
                student,
                session,
                sender_name=current_user.full_name or "Your tutor"
            )
            responses.append(serialize_session(session, student.full_name if student else None, current_user.full_name))

        return {
            "group_session_id": str(group_session_id) if group_session_id else None,
            "per_student_price_cents": split.per_student_cents,
            "sessions": responses
        }

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Class session creation failed for tutor {current_user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create class session: {str(e)}"
        )


@router.get("", response_model=List[SessionResponse])
async def list_sessions(
    scope: str = Query("all", pattern="^(all|upcoming|past)$", description="all, upcoming or past"),
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Sessions where the caller is the student or the tutor"""
    rows = await SessionService(db).list_sessions(current_user, scope)
    return [serialize_session(session, student_name, tutor_name) for session, student_name, tutor_name in rows]


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: uuid.UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        session_service = SessionService(db)
        session = await session_service.get_session_for_participant(session_id, current_user)
        return await _with_names(session_service, session)

    except BrightMindsException as e:
        raise to_http_exception(e)


@router.patch("/{session_id}", response_model=SessionResponse)
async def reschedule_session(
    session_id: uuid.UUID,
    request: SessionRescheduleRequest,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_tutor),
    db: AsyncSession = Depends(get_db)
):
    """Tutor changes the time, length or notes of a session"""
    try:
        session_service = SessionService(db)
        session = await session_service.get_session_for_participant(session_id, current_user)
        session = await session_service.reschedule_session(session, current_user, request)

        student = await session_service.get_profile(session.student_id)
        _notify(background_tasks, NotificationType.SESSION_UPDATED, student, session, sender_name=current_user.full_name)
        return serialize_session(session, student.full_name if student else None, current_user.full_name)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update session: {str(e)}"
        )


@router.post("/{session_id}/accept", response_model=SessionResponse)
async def accept_session(
    session_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_tutor),
    db: AsyncSession = Depends(get_db)
):
    """Tutor accepts a requested session; paid sessions then await payment"""
    try:
        session_service = SessionService(db)
        session = await session_service.get_session_for_participant(session_id, current_user)
        session = await session_service.accept_session(session, current_user)

        student = await session_service.get_profile(session.student_id)
        _notify(background_tasks, NotificationType.SESSION_UPDATED, student, session, sender_name=current_user.full_name)
        return serialize_session(session, student.full_name if student else None, current_user.full_name)

    except BrightMindsException as e:
        raise to_http_exception(e)


@router.post("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(
    session_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Either participant cancels; the other one is notified"""
    try:
        session_service = SessionService(db)
        session = await session_service.get_session_for_participant(session_id, current_user)
        session = await session_service.cancel_session(session, current_user)

        other_id = session.tutor_id if current_user.id == session.student_id else session.student_id
        other = await session_service.get_profile(other_id)
        _notify(background_tasks, NotificationType.SESSION_CANCELLED, other, session, sender_name=current_user.full_name)
        return await _with_names(session_service, session)

    except BrightMindsException as e:
        raise to_http_exception(e)


@router.post("/{session_id}/complete", response_model=SessionResponse)
async def complete_session(
    session_id: uuid.UUID,
    current_user: Profile = Depends(get_current_tutor),
    db: AsyncSession = Depends(get_db)
):
    try:
        session_service = SessionService(db)
        session = await session_service.get_session_for_participant(session_id, current_user)
        session = await session_service.complete_session(session, current_user)
        return await _with_names(session_service, session)

    except BrightMindsException as e:
        raise to_http_exception(e)


@router.post("/{session_id}/mark-paid", response_model=SessionResponse)
async def mark_session_paid(
    session_id: uuid.UUID,
    current_user: Profile = Depends(get_current_tutor),
    db: AsyncSession = Depends(get_db)
):
    """Tutor records a payment received outside the platform"""
    try:
        session_service = SessionService(db)
        session = await session_service.get_session_for_participant(session_id, current_user)
        session = await session_service.mark_paid_manually(session, current_user)
        return await _with_names(session_service, session)

    except BrightMindsException as e:
        raise to_http_exception(e)


@router.post("/{session_id}/meeting-link", response_model=SessionResponse)
async def send_meeting_link(
    session_id: uuid.UUID,
    request: MeetingLinkRequest,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_tutor),
    db: AsyncSession = Depends(get_db)
):
    try:
        session_service = SessionService(db)
        session = await session_service.get_session_for_participant(session_id, current_user)
        session = await session_service.set_meeting_link(session, current_user, request.meeting_link)

        student = await session_service.get_profile(session.student_id)
        _notify(background_tasks, NotificationType.MEETING_LINK_SENT, student, session, sender_name=current_user.full_name)
        return serialize_session(session, student.full_name if student else None, current_user.full_name)

    except BrightMindsException as e:
        raise to_http_exception(e)
