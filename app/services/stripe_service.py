from typing import Dict, Any, Optional
import logging
import uuid

import stripe
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.config import settings
from app.models.profile import Profile
from app.models.tutor_profile import TutorProfile
from app.models.payment import Payment, PaymentProvider, PaymentStatus
from app.services.session_service import SessionService
from app.core.exceptions import PaymentError, NotFoundError, SessionStateError

logger = logging.getLogger(__name__)


def build_return_urls(origin: str, session_id: uuid.UUID) -> Dict[str, str]:
    origin = origin.rstrip("/")
    return {
        "success_url": f"{origin}/sessions?payment=success&session_id={session_id}",
        "cancel_url": f"{origin}/sessions?payment=cancelled",
    }


class StripeService:
    """Stripe Checkout for session payments and Stripe Connect onboarding for tutors"""

    def __init__(self):
        stripe.api_key = settings.STRIPE_SECRET_KEY
        self.webhook_secret = settings.STRIPE_WEBHOOK_SECRET

    def _require_configured(self) -> None:
        if not settings.STRIPE_SECRET_KEY:
            raise PaymentError("STRIPE_SECRET_KEY is not set")

    async def create_session_checkout(
        self,
        user: Profile,
        session_id: uuid.UUID,
        origin: str,
        db: AsyncSession
    ) -> Dict[str, Any]:
        """Create a Checkout Session priced from the stored session, never from the client"""
        self._require_configured()
        session_service = SessionService(db)
        session, tutor_name = await session_service.get_payable_session(session_id, user)

        try:
            customers = stripe.Customer.list(email=user.email, limit=1)
            customer_id = customers.data[0].id if customers.data else None
            logger.info(f"Stripe customer lookup for {user.id}: {customer_id or 'none'}")
            customer_params = {"customer": customer_id} if customer_id else {"customer_email": user.email}

            checkout = stripe.checkout.Session.create(
                **customer_params,
                line_items=[{
                    "price_data": {
                        "currency": "usd",
                        "product_data": {
                            "name": f"Tutoring Session: {session.subject}",
                            "description": f"{session.duration_minutes} minute session with {tutor_name}",
                        },
                        "unit_amount": session.price_cents,
                    },
                    "quantity": 1,
                }],
                mode="payment",
                metadata={
                    "session_id": str(session.id),
                    "user_id": str(user.id),
                },
                **build_return_urls(origin, session.id)
            )
        except stripe.StripeError as e:
            logger.error(f"Error creating checkout session for session {session_id}: {e}")
            raise PaymentError(f"Failed to create checkout session: {str(e)}")

        db.add(Payment(
            session_id=session.id,
            student_id=user.id,
            provider=PaymentProvider.STRIPE,
            provider_reference=checkout.id,
            amount_cents=session.price_cents,
            status=PaymentStatus.PENDING,
        ))
        await db.flush()

        logger.info(f"Created checkout session {checkout.id} for session {session.id}")
        return {"url": checkout.url}

    def construct_event(self, payload: bytes, signature: str):
        """Verify the webhook signature; raises ValueError or SignatureVerificationError"""
        return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)

    async def handle_checkout_completed(
        self,
        event_id: str,
        checkout: Dict[str, Any],
        db: AsyncSession
    ) -> bool:
        """Confirm the session a paid Checkout Session belongs to; returns False when nothing changed"""
        existing = await db.execute(select(Payment).where(Payment.provider_event_id == event_id))
        if existing.scalar_one_or_none():
            logger.info(f"Stripe event {event_id} already processed")
            return False

        if checkout.get("payment_status") != "paid":
            logger.info(f"Checkout {checkout.get('id')} completed without payment, ignoring")
            return False

        raw_session_id = (checkout.get("metadata") or {}).get("session_id")
        if not raw_session_id:
            logger.warning(f"Checkout {checkout.get('id')} has no session_id metadata")
            return False

        session_service = SessionService(db)
        try:
            session = await session_service.get_session(uuid.UUID(raw_session_id))
        except (ValueError, NotFoundError):
            logger.error(f"Checkout {checkout.get('id')} references unknown session {raw_session_id}")
            return False

        result = await db.execute(
            select(Payment).where(
                Payment.provider == PaymentProvider.STRIPE,
                Payment.provider_reference == checkout.get("id")
            )
        )
        payment = result.scalar_one_or_none()
        if payment is None:
            payment = Payment(
                session_id=session.id,
                student_id=session.student_id,
                provider=PaymentProvider.STRIPE,
                provider_reference=checkout.get("id"),
                amount_cents=checkout.get("amount_total") or session.price_cents or 0,
            )
            db.add(payment)

        payment.status = PaymentStatus.SUCCEEDED
        payment.provider_event_id = event_id

        try:
            await session_service.confirm_payment(session)
        except SessionStateError as e:
            logger.error(f"Paid checkout {checkout.get('id')} could not confirm session {session.id}: {e}")
            return False

        logger.info(f"Session {session.id} confirmed by Stripe event {event_id}")
        return True

    async def _get_tutor_profile(self, user: Profile, db: AsyncSession) -> Optional[TutorProfile]:
        result = await db.execute(select(TutorProfile).where(TutorProfile.user_id == user.id))
        return result.scalar_one_or_none()

    async def create_connect_account_link(
        self,
        user: Profile,
        origin: str,
        db: AsyncSession
    ) -> Dict[str, str]:
        """Create (if needed) an Express account for the tutor and return an onboarding link"""
        self._require_configured()
        tutor_profile = await self._get_tutor_profile(user, db)
        if tutor_profile is None:
            raise NotFoundError("Tutor profile not found")

        try:
            account_id = tutor_profile.stripe_account_id
            if not account_id:
                account = stripe.Account.create(
                    type="express",
                    email=user.email,
                    metadata={"user_id": str(user.id)},
                    capabilities={
                        "card_payments": {"requested": True},
                        "transfers": {"requested": True},
                    },
                    business_profile={
                        "name": user.full_name or "Tutor",
                        "product_description": "Online tutoring services",
                    },
                )
                account_id = account.id
                tutor_profile.stripe_account_id = account_id
                await db.flush()
                logger.info(f"Created Stripe Connect account {account_id} for tutor {user.id}")
            else:
                logger.info(f"Existing Stripe Connect account {account_id} for tutor {user.id}")

            origin = origin.rstrip("/")
            link_type = "account_update" if tutor_profile.stripe_onboarding_complete else "account_onboarding"
            link_params = {
                "account": account_id,
                "refresh_url": f"{origin}/profile?stripe=refresh",
                "return_url": f"{origin}/profile?stripe=success",
                "type": link_type,
            }
            if link_type == "account_onboarding":
                link_params["collect"] = "eventually_due"

            account_link = stripe.AccountLink.create(**link_params)
        except stripe.StripeError as e:
            logger.error(f"Error creating Stripe Connect link for tutor {user.id}: {e}")
            raise PaymentError(f"Failed to create Stripe Connect link: {str(e)}")

        return {"url": account_link.url, "account_id": account_id}

    async def get_connect_status(self, user: Profile, db: AsyncSession) -> Dict[str, bool]:
        """Sync and report the tutor's Connect onboarding state"""
        tutor_profile = await self._get_tutor_profile(user, db)
        if tutor_profile is None or not tutor_profile.stripe_account_id:
            return {
                "has_account": False,
                "onboarding_complete": False,
                "charges_enabled": False,
                "payouts_enabled": False,
                "details_submitted": False,
            }

        self._require_configured()
        try:
            account = stripe.Account.retrieve(tutor_profile.stripe_account_id)
        except stripe.StripeError as e:
            logger.error(f"Error retrieving Stripe account {tutor_profile.stripe_account_id}: {e}")
            raise PaymentError(f"Failed to check Stripe Connect status: {str(e)}")

        charges_enabled = bool(account.charges_enabled)
        payouts_enabled = bool(account.payouts_enabled)
        is_complete = charges_enabled and payouts_enabled

        if is_complete != tutor_profile.stripe_onboarding_complete:
            tutor_profile.stripe_onboarding_complete = is_complete
            await db.flush()
            logger.info(f"Tutor {user.id} Stripe onboarding complete: {is_complete}")

        return {
            "has_account": True,
            "onboarding_complete": is_complete,
            "charges_enabled": charges_enabled,
            "payouts_enabled": payouts_enabled,
            "details_submitted": bool(account.details_submitted),
        }

    async def handle_checkout_failed(self, checkout: Dict[str, Any], db: AsyncSession) -> bool:
        """Mark the pending payment of an expired or failed Checkout Session as failed"""
        result = await db.execute(
            select(Payment).where(
                Payment.provider == PaymentProvider.STRIPE,
                Payment.provider_reference == checkout.get("id")
            )
        )
        payment = result.scalar_one_or_none()
        if payment is None or payment.status != PaymentStatus.PENDING:
            return False

        payment.status = PaymentStatus.FAILED
        await db.flush()
        logger.info(f"Checkout {checkout.get('id')} for session {payment.session_id} did not complete")
        return True
