from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict
import logging
import uuid

from app.core.database import get_db
from app.core.auth import get_current_user, get_token_claims
from app.core.exceptions import BrightMindsException, to_http_exception
from app.models.profile import Profile
from app.schemas.profile import (
    ProfileCreate,
    ProfileUpdate,
    TutorProfileUpdate,
    StudentQuestionnaire,
    PhoneNumberUpdate,
    ProfileResponse,
    PublicProfileResponse,
    PhonePromptResponse,
)
from app.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_profile(
    request: ProfileCreate,
    claims: Dict[str, Any] = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db)
):
    """Complete signup: create the profile and its student or tutor profile"""
    try:
        profile_service = ProfileService(db)
        profile = await profile_service.create_profile(claims["sub"], claims.get("email"), request)
        return await profile_service.get_full_profile(profile)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Signup failed for {claims.get('sub')}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create profile: {str(e)}"
        )


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the caller's profile with the role-specific details"""
    return await ProfileService(db).get_full_profile(current_user)


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    request: ProfileUpdate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        profile_service = ProfileService(db)
        profile = await profile_service.update_profile(current_user, request)
        return await profile_service.get_full_profile(profile)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update profile: {str(e)}"
        )


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_account(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete the account and all of its sessions, messages, reviews and enrollments"""
    try:
        await ProfileService(db).delete_account(current_user)

    except Exception as e:
        logger.error(f"Account deletion failed for {current_user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete account: {str(e)}"
        )


@router.patch("/me/tutor", response_model=ProfileResponse)
async def update_my_tutor_profile(
    request: TutorProfileUpdate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update subjects, rate, background and weekly availability"""
    try:
        profile_service = ProfileService(db)
        await profile_service.update_tutor_profile(current_user, request)
        return await profile_service.get_full_profile(current_user)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update tutor profile: {str(e)}"
        )


@router.patch("/me/student", response_model=ProfileResponse)
async def update_my_student_profile(
    request: StudentQuestionnaire,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        profile_service = ProfileService(db)
        await profile_service.update_student_profile(current_user, request)
        return await profile_service.get_full_profile(current_user)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update student profile: {str(e)}"
        )


@router.get("/me/phone-prompt", response_model=PhonePromptResponse)
async def get_phone_prompt(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Whether the dashboard should ask for a phone number"""
    should_prompt = await ProfileService(db).should_prompt_for_phone(current_user)
    return {"should_prompt": should_prompt}


@router.post("/me/phone", response_model=ProfileResponse)
async def save_phone_number(
    request: PhoneNumberUpdate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    profile_service = ProfileService(db)
    profile = await profile_service.save_phone_number(current_user, request.phone_number)
    return await profile_service.get_full_profile(profile)


@router.post("/me/phone-prompt/dismiss", response_model=PhonePromptResponse)
async def dismiss_phone_prompt(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await ProfileService(db).dismiss_phone_prompt(current_user)
    return {"should_prompt": False}


@router.get("/{user_id}", response_model=PublicProfileResponse)
async def get_public_profile(
    user_id: uuid.UUID,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Name, role, avatar and bio of any user (used by messaging and session views)"""
    try:
        profile = await ProfileService(db).get_profile(user_id)
        return {
            "id": str(profile.id),
            "full_name": profile.full_name,
            "role": profile.role,
            "avatar_url": profile.avatar_url,
            "bio": profile.bio,
        }

    except BrightMindsException as e:
        raise to_http_exception(e)
