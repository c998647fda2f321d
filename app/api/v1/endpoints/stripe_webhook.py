from fastapi import APIRouter, Request, HTTPException, status, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import json
import logging

import stripe

from app.core.database import get_db
from app.services.stripe_service import StripeService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Handle Stripe webhook events with signature verification and idempotency"""
    try:
        # Get the raw body
        body = await request.body()
        signature = request.headers.get("stripe-signature")

        if not signature:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing Stripe signature"
            )

        stripe_service = StripeService()

        # Verify webhook signature
        try:
            stripe_service.construct_event(body, signature)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid payload"
            )
        except stripe.SignatureVerificationError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid signature"
            )

        # Work on the verified payload as plain dicts
        event = json.loads(body)
        event_id = event.get("id")
        event_type = event.get("type")
        event_data = event.get("data", {}).get("object", {})
        logger.info(f"Stripe event {event_id} received: {event_type}")

        if event_type == "checkout.session.completed":
            processed = await stripe_service.handle_checkout_completed(event_id, event_data, db)

        elif event_type == "checkout.session.async_payment_succeeded":
            processed = await stripe_service.handle_checkout_completed(event_id, event_data, db)

        elif event_type in ("checkout.session.expired", "checkout.session.async_payment_failed"):
            processed = await stripe_service.handle_checkout_failed(event_data, db)

        else:
            logger.info(f"Ignoring Stripe event type {event_type}")
            processed = False

        return {"status": "success" if processed else "ignored"}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Webhook processing failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Webhook processing failed: {str(e)}"
        )
