from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging
import uuid

from app.core.database import get_db
from app.core.auth import get_current_student
from app.core.exceptions import BrightMindsException, to_http_exception
from app.models.profile import Profile
from app.schemas.review import ReviewCreate, ReviewUpdate, ReviewResponse
from app.schemas.session import SessionResponse
from app.services.review_service import ReviewService, serialize_review
from app.services.session_service import serialize_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    request: ReviewCreate,
    current_user: Profile = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    """Review a tutor after a confirmed or completed session"""
    try:
        review = await ReviewService(db).create_review(current_user, request)
        return serialize_review(review, current_user.full_name)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Review by {current_user.id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to submit review: {str(e)}"
        )


@router.get("/eligible", response_model=List[SessionResponse])
async def get_reviewable_sessions(
    tutor_id: Optional[uuid.UUID] = Query(None, description="Limit to one tutor"),
    current_user: Profile = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    """Sessions the caller can still review"""
    sessions = await ReviewService(db).get_reviewable_sessions(current_user, tutor_id)
    return [serialize_session(session, current_user.full_name) for session in sessions]


@router.get("/tutor/{tutor_id}", response_model=List[ReviewResponse])
async def list_tutor_reviews(
    tutor_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    reviews = await ReviewService(db).list_tutor_reviews(tutor_id, limit=limit)
    return [serialize_review(review, student_name) for review, student_name in reviews]


@router.patch("/{review_id}", response_model=ReviewResponse)
async def update_review(
    review_id: uuid.UUID,
    request: ReviewUpdate,
    current_user: Profile = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    try:
        review = await ReviewService(db).update_review(current_user, review_id, request)
        return serialize_review(review, current_user.full_name)

    except BrightMindsException as e:
        raise to_http_exception(e)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: uuid.UUID,
    current_user: Profile = Depends(get_current_student),
    db: AsyncSession = Depends(get_db)
):
    try:
        await ReviewService(db).delete_review(current_user, review_id)

    except BrightMindsException as e:
        raise to_http_exception(e)
