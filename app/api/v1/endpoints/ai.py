from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List
import logging

from app.core.database import get_db
from app.core.auth import get_current_user, get_current_student
from app.core.exceptions import BrightMindsException, to_http_exception
from app.models.profile import Profile
from app.schemas.matching import MatchRelayRequest, MatchMeRequest, MatchMeResponse, EnrichedTutorMatch
from app.services.matching_service import MatchingService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_matching_service() -> MatchingService:
    return MatchingService()


@router.post("/match")
async def match_tutors(
    request: MatchRelayRequest,
    current_user: Profile = Depends(get_current_user),
    matching_service: MatchingService = Depends(get_matching_service)
) -> Dict[str, Any]:
    """Relay a student profile and tutor list to the model and return its ranking"""
    try:
        logger.info(f"AI match relay requested by {current_user.id}")
        return await matching_service.match(request.student_profile, request.tutors)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in ai-match function: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to match tutors: {str(e)}"
        )


@router.post("/match/me", response_model=MatchMeResponse)
async def match_me(
    request: MatchMeRequest,
    current_user: Profile = Depends(get_current_student),
    db: AsyncSession = Depends(get_db),
    matching_service: MatchingService = Depends(get_matching_service)
):
    """Save the matching questionnaire and rank all tutors for the caller"""
    try:
        matches = await matching_service.match_student(current_user, request, db)
        return {"matches": matches}

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Matching failed for student {current_user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to match tutors: {str(e)}"
        )


@router.get("/matches", response_model=List[EnrichedTutorMatch])
async def get_my_matches(
    current_user: Profile = Depends(get_current_student),
    db: AsyncSession = Depends(get_db),
    matching_service: MatchingService = Depends(get_matching_service)
):
    """Last stored matching result, best match first"""
    return await matching_service.get_saved_matches(current_user, db)
