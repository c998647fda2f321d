from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime, timezone
import logging
import uuid

from app.core.database import get_db
from app.core.auth import get_current_user
from app.core.exceptions import BrightMindsException, to_http_exception
from app.core.pricing import DEFAULT_SESSION_MINUTES, MIN_SESSION_MINUTES, MAX_SESSION_MINUTES
from app.core.timezone_utils import get_timezone, SUPPORTED_TIMEZONES
from app.models.profile import Profile
from app.schemas.tutor import TutorListResponse, TutorDetailResponse, LeaderboardEntry
from app.schemas.availability import BookableSlotsResponse, TimeOption
from app.schemas.notification import NotificationType, NotificationData
from app.services.tutor_service import TutorService
from app.services.availability_service import AvailabilityService, generate_time_options
from app.services.notification_service import NotificationService, recipient_contact

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[TutorListResponse])
async def list_tutors(
    search: Optional[str] = Query(None, description="Search by name or subject"),
    subject: Optional[str] = Query(None, description="Filter by subject"),
    min_rating: Optional[float] = Query(None, ge=0, le=5, description="Minimum rating"),
    max_rate: Optional[int] = Query(None, ge=0, description="Maximum hourly rate in cents"),
    limit: int = Query(50, ge=1, le=100, description="Number of results to return"),
    offset: int = Query(0, ge=0, description="Number of results to skip"),
    db: AsyncSession = Depends(get_db)
):
    """List/search tutors with filters"""
    try:
        return await TutorService(db).list_tutors(
            search=search,
            subject=subject,
            max_rate=max_rate,
            min_rating=min_rating,
            limit=limit,
            offset=offset
        )

    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch tutors: {str(e)}"
        )


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(db: AsyncSession = Depends(get_db)):
    """Top tutors by paid sessions"""
    return await TutorService(db).get_leaderboard()


@router.get("/time-options", response_model=List[TimeOption], response_model_exclude_none=True)
async def get_time_options(
    picker_timezone: Optional[str] = Query(None, alias="timezone", description="Adds the PST/EST equivalent of each option")
):
    """Time-of-day picker values, 6:00 AM through 10:30 PM"""
    if picker_timezone and picker_timezone not in SUPPORTED_TIMEZONES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported timezone: {picker_timezone}"
        )
    return generate_time_options(tz_name=picker_timezone)


@router.get("/{tutor_id}", response_model=TutorDetailResponse)
async def get_tutor_profile(
    tutor_id: uuid.UUID,
    db: AsyncSession = Depends(get_db)
):
    """Get detailed tutor profile"""
    try:
        return await TutorService(db).get_tutor_detail(tutor_id)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch tutor profile: {str(e)}"
        )


@router.get("/{tutor_id}/slots", response_model=BookableSlotsResponse)
async def get_tutor_slots(
    tutor_id: uuid.UUID,
    date: Optional[str] = Query(None, description="First day in YYYY-MM-DD format"),
    days: int = Query(7, ge=1, le=31, description="Number of days to cover"),
    duration_minutes: int = Query(DEFAULT_SESSION_MINUTES, ge=MIN_SESSION_MINUTES, le=MAX_SESSION_MINUTES),
    viewer_timezone: Optional[str] = Query(None, alias="timezone", description="Viewer's timezone for labels"),
    db: AsyncSession = Depends(get_db)
):
    """Get tutor's bookable slots from weekly availability minus booked sessions"""
    try:
        profile, tutor_profile = await TutorService(db).get_tutor(tutor_id)
        tutor_timezone = tutor_profile.timezone or profile.timezone

        try:
            viewer_tz = get_timezone(viewer_timezone or tutor_timezone)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        if date:
            try:
                start_date = datetime.strptime(date, "%Y-%m-%d").date()
            except ValueError:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid date format. Use YYYY-MM-DD"
                )
        else:
            start_date = datetime.now(timezone.utc).astimezone(get_timezone(tutor_timezone)).date()

        slots = await AvailabilityService().get_tutor_slots(
            tutor_id,
            tutor_profile.availability,
            tutor_timezone,
            start_date,
            days,
            duration_minutes,
            viewer_tz.zone,
            db
        )

        return {
            "tutor_id": str(tutor_id),
            "start_date": start_date.isoformat(),
            "days": days,
            "timezone": viewer_tz.zone,
            "duration_minutes": duration_minutes,
            "available_slots": slots
        }

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch tutor slots: {str(e)}"
        )


@router.post("/{tutor_id}/profile-views", status_code=status.HTTP_202_ACCEPTED)
async def record_profile_view(
    tutor_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Let the tutor know a student looked at their profile"""
    try:
        tutor, _ = await TutorService(db).get_tutor(tutor_id)
    except BrightMindsException as e:
        raise to_http_exception(e)

    if tutor.id != current_user.id:
        background_tasks.add_task(
            NotificationService().dispatch,
            NotificationType.PROFILE_VIEWED,
            recipient_contact(tutor),
            NotificationData(sender_name=current_user.full_name)
        )
    return {"success": True}
