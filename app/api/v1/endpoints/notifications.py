from fastapi import APIRouter, Depends, HTTPException, status
import logging

from app.core.auth import get_current_user
from app.core.exceptions import BrightMindsException, to_http_exception
from app.models.profile import Profile
from app.schemas.notification import NotificationRequest, NotificationResponse, SMSRequest, SMSResult
from app.services.notification_service import NotificationService
from app.services.sms_service import SMSService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_notification_service() -> NotificationService:
    return NotificationService()


def get_sms_service() -> SMSService:
    return SMSService()


@router.post("/send", response_model=NotificationResponse)
async def send_notification(
    request: NotificationRequest,
    current_user: Profile = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service)
):
    """Format a notification and relay it by SMS (and email when configured)"""
    try:
        return await notification_service.send(request)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in send-notification: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to send notification: {str(e)}"
        )


@router.post("/sms", response_model=SMSResult)
async def send_sms(
    request: SMSRequest,
    current_user: Profile = Depends(get_current_user),
    sms_service: SMSService = Depends(get_sms_service)
):
    """Send a raw SMS through Twilio"""
    if not request.to or not request.message:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: to, message"
        )

    if not sms_service.is_configured:
        logger.error("Twilio credentials not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="SMS service not configured"
        )

    result = await sms_service.send_sms(request.to, request.message)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=result.error or "Failed to send SMS"
        )
    return result
