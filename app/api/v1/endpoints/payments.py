from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.database import get_db
from app.core.auth import get_current_user, get_current_tutor
from app.core.config import settings
from app.core.exceptions import BrightMindsException, to_http_exception
from app.models.profile import Profile
from app.schemas.payment import (
    CheckoutRequest,
    CheckoutResponse,
    PayPalOrderRequest,
    PayPalOrderResponse,
    PayPalCaptureRequest,
    PayPalCaptureResponse,
    ConnectAccountResponse,
    ConnectStatusResponse,
)
from app.services.stripe_service import StripeService
from app.services.paypal_service import PayPalService

logger = logging.getLogger(__name__)

router = APIRouter()


def _request_origin(request: Request) -> str:
    return request.headers.get("origin") or settings.FRONTEND_URL


@router.post("/stripe/checkout", response_model=CheckoutResponse)
async def create_session_checkout(
    body: CheckoutRequest,
    request: Request,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a Stripe Checkout Session for a session awaiting payment"""
    try:
        stripe_service = StripeService()
        return await stripe_service.create_session_checkout(
            current_user,
            body.session_id,
            _request_origin(request),
            db
        )

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Checkout failed for session {body.session_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create checkout session: {str(e)}"
        )


@router.post("/paypal/orders", response_model=PayPalOrderResponse)
async def create_paypal_order(
    body: PayPalOrderRequest,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a PayPal order priced from the stored session"""
    try:
        return await PayPalService().create_order(current_user, body.session_id, db)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"PayPal order failed for session {body.session_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create PayPal order: {str(e)}"
        )


@router.post("/paypal/capture", response_model=PayPalCaptureResponse)
async def capture_paypal_payment(
    body: PayPalCaptureRequest,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Capture an approved PayPal order and confirm the session"""
    try:
        logger.info(f"Capturing PayPal order {body.order_id} for session {body.session_id}")
        return await PayPalService().capture_order(current_user, body.order_id, body.session_id, db)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"PayPal capture failed for order {body.order_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to capture PayPal payment: {str(e)}"
        )


@router.post("/connect/account", response_model=ConnectAccountResponse)
async def create_connect_account(
    request: Request,
    current_user: Profile = Depends(get_current_tutor),
    db: AsyncSession = Depends(get_db)
):
    """Start or resume Stripe Connect onboarding for payouts"""
    try:
        return await StripeService().create_connect_account_link(current_user, _request_origin(request), db)

    except BrightMindsException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create Stripe Connect account: {str(e)}"
        )


@router.get("/connect/status", response_model=ConnectStatusResponse)
async def get_connect_status(
    current_user: Profile = Depends(get_current_tutor),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await StripeService().get_connect_status(current_user, db)

    except BrightMindsException as e:
        raise to_http_exception(e)
