from typing import Dict, Any, Optional
import logging
import uuid

import httpx
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.config import settings
from app.models.profile import Profile
from app.models.payment import Payment, PaymentProvider, PaymentStatus
from app.services.session_service import SessionService, PAYABLE_STATUSES
from app.core.exceptions import PaymentError, AuthorizationError, ExternalServiceError, SessionStateError

logger = logging.getLogger(__name__)


def _extract_capture_id(capture_result: Dict[str, Any]) -> Optional[str]:
    for unit in capture_result.get("purchase_units") or []:
        captures = (unit.get("payments") or {}).get("captures") or []
        if captures:
            return captures[0].get("id")
    return capture_result.get("id")


class PayPalService:
    """PayPal Orders v2: create an order for a session and capture it after approval"""

    def __init__(self):
        self.client_id = settings.PAYPAL_CLIENT_ID
        self.secret = settings.PAYPAL_SECRET
        self.base_url = settings.PAYPAL_API_BASE.rstrip("/")

    async def get_access_token(self, client: httpx.AsyncClient) -> str:
        if not self.client_id or not self.secret:
            raise PaymentError("PayPal credentials not configured")

        response = await client.post(
            f"{self.base_url}/v1/oauth2/token",
            auth=(self.client_id, self.secret),
            data={"grant_type": "client_credentials"},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if response.status_code != 200:
            logger.error(f"PayPal authentication failed: {response.status_code} {response.text}")
            raise ExternalServiceError("Failed to authenticate with PayPal")
        return response.json()["access_token"]

    async def create_order(
        self,
        user: Profile,
        session_id: uuid.UUID,
        db: AsyncSession
    ) -> Dict[str, Any]:
        """Create a CAPTURE-intent order priced from the stored session"""
        session, tutor_name = await SessionService(db).get_payable_session(session_id, user)

        order_body = {
            "intent": "CAPTURE",
            "purchase_units": [{
                "reference_id": str(session.id),
                "custom_id": str(session.id),
                "description": f"{session.duration_minutes} minute {session.subject} session with {tutor_name}",
                "amount": {
                    "currency_code": "USD",
                    "value": f"{session.price_cents / 100:.2f}",
                },
            }],
        }

        try:
            async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
                access_token = await self.get_access_token(client)
                response = await client.post(
                    f"{self.base_url}/v2/checkout/orders",
                    json=order_body,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"PayPal order request failed: {e}")
            raise ExternalServiceError(f"PayPal request failed: {str(e)}")

        if response.status_code not in (200, 201):
            logger.error(f"PayPal order creation failed: {response.text}")
            raise PaymentError("Failed to create PayPal order")

        order = response.json()
        approve_url = next(
            (link.get("href") for link in order.get("links", []) if link.get("rel") in ("approve", "payer-action")),
            None
        )

        db.add(Payment(
            session_id=session.id,
            student_id=user.id,
            provider=PaymentProvider.PAYPAL,
            provider_reference=order["id"],
            amount_cents=session.price_cents,
            status=PaymentStatus.PENDING,
        ))
        await db.flush()

        logger.info(f"Created PayPal order {order['id']} for session {session.id}")
        return {"order_id": order["id"], "status": order.get("status", "CREATED"), "approve_url": approve_url}

    async def capture_order(
        self,
        user: Profile,
        order_id: str,
        session_id: uuid.UUID,
        db: AsyncSession
    ) -> Dict[str, Any]:
        """Capture an approved order and confirm the session when PayPal reports COMPLETED"""
        session_service = SessionService(db)
        session = await session_service.get_session(session_id)
        if session.student_id != user.id:
            raise AuthorizationError("Unauthorized")
        if session.status not in PAYABLE_STATUSES:
            raise PaymentError("Session is not awaiting payment")

        result = await db.execute(
            select(Payment).where(
                Payment.provider == PaymentProvider.PAYPAL,
                Payment.provider_reference == order_id
            )
        )
        payment = result.scalar_one_or_none()
        if payment is None or payment.session_id != session.id:
            raise PaymentError("PayPal order does not belong to this session")

        try:
            async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
                access_token = await self.get_access_token(client)
                logger.info("PayPal access token obtained")
                response = await client.post(
                    f"{self.base_url}/v2/checkout/orders/{order_id}/capture",
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"PayPal capture request failed: {e}")
            raise ExternalServiceError(f"PayPal request failed: {str(e)}")

        if response.status_code not in (200, 201):
            logger.error(f"PayPal capture failed: {response.text}")
            raise PaymentError("Failed to capture PayPal payment")

        capture_result = response.json()
        capture_status = capture_result.get("status")
        capture_id = _extract_capture_id(capture_result)
        logger.info(f"Payment captured for order {order_id}: {capture_status}")

        if capture_status == "COMPLETED":
            payment.status = PaymentStatus.SUCCEEDED
            payment.provider_event_id = capture_id

            try:
                await session_service.confirm_payment(session, actor_id=user.id)
            except SessionStateError as e:
                # payment stays recorded, session keeps its state
                logger.error(f"Captured order {order_id} could not confirm session {session.id}: {e}")
                return {"success": True, "status": capture_status, "capture_id": capture_id, "session_confirmed": False}
            except Exception as e:
                logger.error(f"Failed to update session {session.id} after capture {capture_id}: {e}")
                raise PaymentError("Payment captured but failed to update session")

        return {
            "success": True,
            "status": capture_status,
            "capture_id": capture_id,
            "session_confirmed": capture_status == "COMPLETED",
        }
