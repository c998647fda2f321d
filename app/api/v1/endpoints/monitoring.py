from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.database import get_db
from app.core.auth import require_founder
from app.core.exceptions import BrightMindsException, to_http_exception
from app.models.profile import Profile
from app.schemas.monitoring import MonitoringOverview
from app.schemas.notification import NotifyExistingUsersResponse
from app.services.monitoring_service import MonitoringService
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/overview", response_model=MonitoringOverview)
async def get_overview(
    current_user: Profile = Depends(require_founder),
    db: AsyncSession = Depends(get_db)
):
    """Platform totals and per-tutor activity (founders only)"""
    return await MonitoringService(db).get_overview()


@router.post("/notify-existing-users", response_model=NotifyExistingUsersResponse)
async def notify_existing_users(
    current_user: Profile = Depends(require_founder),
    db: AsyncSession = Depends(get_db)
):
    """Email every user without a phone number asking them to add one"""
    try:
        logger.info(f"Phone prompt campaign started by {current_user.id}")
        return await NotificationService().notify_users_without_phone(db)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in notify-existing-users: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to notify users: {str(e)}"
        )
