from fastapi import APIRouter, BackgroundTasks, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging
import uuid

from app.core.database import get_db
from app.core.auth import get_current_user, get_current_student, get_current_tutor
from app.core.exceptions import BrightMindsException, to_http_exception
from app.models.profile import Profile
from app.schemas.enrollment import EnrollmentCreate, EnrollmentResponse, TutorSearchResult
from app.schemas.notification import NotificationType, NotificationData
from app.services.enrollment_service import EnrollmentService, serialize_enrollment
from app.services.notification_service import NotificationService, recipient_contact

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[EnrollmentResponse])
async def list_my_classes(
    current_user: Profile = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    """Classes the student has joined"""
    return await EnrollmentService(db).list_for_student(current_user)


@router.post("", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
async def join_class(
    request: EnrollmentCreate,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    try:
        enrollment, tutor = await EnrollmentService(db).join_class(current_user, request.tutor_id)
    except BrightMindsException as e:
        raise to_http_exception(e)

    background_tasks.add_task(
        NotificationService().dispatch,
        NotificationType.CLASS_JOINED,
        recipient_contact(tutor),
        NotificationData(sender_name=current_user.full_name)
    )
    return serialize_enrollment(enrollment, tutor_name=tutor.full_name)


@router.get("/students", response_model=List[EnrollmentResponse])
async def list_my_students(
    current_user: Profile = Depends(get_current_tutor),
    db: AsyncSession = Depends(get_db)
):
    """Students enrolled in the tutor's class"""
    return await EnrollmentService(db).list_students(current_user)


@router.get("/search", response_model=List[TutorSearchResult])
async def search_classes(
    q: str = Query("", max_length=100, description="Tutor name"),
    current_user: Profile = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    """Tutors the student can still join"""
    return await EnrollmentService(db).search_tutors(current_user, q)


@router.delete("/{enrollment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def leave_class(
    enrollment_id: uuid.UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        await EnrollmentService(db).leave_class(current_user, enrollment_id)
    except BrightMindsException as e:
        raise to_http_exception(e)
