"""
Integration tests for Stripe checkout, the Stripe webhook and PayPal orders
"""
import json
from types import SimpleNamespace

import httpx
import pytest
import stripe
from sqlalchemy import select

from app.core.config import settings
from app.core.exceptions import SessionStateError
from app.models.payment import Payment, PaymentStatus
from app.services.session_service import SessionService
from app.services.stripe_service import StripeService
from tests.conftest import next_weekday_at


@pytest.fixture
async def awaiting_session(client, student_headers, tutor_headers, tutor):
    """A 60 minute session at the default tutor's rate, accepted and awaiting payment"""
    booked = await client.post(
        "/api/v1/sessions",
        json={"tutor_id": str(tutor.id), "subject": "Math", "scheduled_at": next_weekday_at(0, 10).isoformat()},
        headers=student_headers
    )
    session_id = booked.json()["id"]
    accepted = await client.post(f"/api/v1/sessions/{session_id}/accept", headers=tutor_headers)
    assert accepted.json()["status"] == "awaiting_payment"
    return accepted.json()


@pytest.fixture
def fake_stripe(monkeypatch):
    """Record Checkout Session creation instead of calling Stripe"""
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_123")
    created = []

    def create_checkout(**kwargs):
        created.append(kwargs)
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1")

    monkeypatch.setattr(stripe.Customer, "list", lambda **kwargs: SimpleNamespace(data=[]))
    monkeypatch.setattr(stripe.checkout.Session, "create", create_checkout)
    return created


@pytest.fixture
def trusted_webhooks(monkeypatch):
    monkeypatch.setattr(StripeService, "construct_event", lambda self, payload, signature: json.loads(payload))


def checkout_event(event_id, event_type, session_id, checkout_id="cs_test_1", payment_status="paid"):
    return {
        "id": event_id,
        "type": event_type,
        "data": {
            "object": {
                "id": checkout_id,
                "payment_status": payment_status,
                "amount_total": 6000,
                "metadata": {"session_id": session_id},
            }
        },
    }


async def post_event(client, event):
    return await client.post(
        "/api/v1/payments/stripe/webhook",
        content=json.dumps(event),
        headers={"stripe-signature": "t=1,v1=test"}
    )


class TestStripeCheckout:

    async def test_checkout_uses_stored_price(self, client, student_headers, awaiting_session, fake_stripe, session_factory):
        response = await client.post(
            "/api/v1/payments/stripe/checkout",
            json={"session_id": awaiting_session["id"]},
            headers={**student_headers, "Origin": "https://app.example.com"}
        )

        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.test/cs_test_1"}

        params = fake_stripe[0]
        assert params["customer_email"] == "sam@example.com"
        assert params["line_items"][0]["price_data"]["unit_amount"] == 6000
        assert params["metadata"]["session_id"] == awaiting_session["id"]
        assert params["success_url"].startswith("https://app.example.com/sessions?payment=success")

        async with session_factory() as db:
            payment = (await db.execute(select(Payment))).scalar_one()
            assert payment.status == PaymentStatus.PENDING
            assert payment.provider_reference == "cs_test_1"

    async def test_pending_session_cannot_be_paid(self, client, student_headers, tutor, fake_stripe):
        booked = await client.post(
            "/api/v1/sessions",
            json={"tutor_id": str(tutor.id), "subject": "Math", "scheduled_at": next_weekday_at(0, 10).isoformat()},
            headers=student_headers
        )

        response = await client.post(
            "/api/v1/payments/stripe/checkout",
            json={"session_id": booked.json()["id"]},
            headers=student_headers
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Session is not awaiting payment"
        assert fake_stripe == []

    async def test_only_the_student_can_pay(self, client, other_student_headers, awaiting_session, fake_stripe):
        response = await client.post(
            "/api/v1/payments/stripe/checkout",
            json={"session_id": awaiting_session["id"]},
            headers=other_student_headers
        )
        assert response.status_code == 403

    async def test_stripe_not_configured(self, client, student_headers, awaiting_session, monkeypatch):
        monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "")

        response = await client.post(
            "/api/v1/payments/stripe/checkout",
            json={"session_id": awaiting_session["id"]},
            headers=student_headers
        )
        assert response.status_code == 400


class TestStripeWebhook:

    async def test_paid_checkout_confirms_session(
        self, client, student_headers, awaiting_session, fake_stripe, trusted_webhooks
    ):
        await client.post(
            "/api/v1/payments/stripe/checkout",
            json={"session_id": awaiting_session["id"]},
            headers=student_headers
        )

        event = checkout_event("evt_1", "checkout.session.completed", awaiting_session["id"])
        response = await post_event(client, event)
        assert response.json() == {"status": "success"}

        session = await client.get(f"/api/v1/sessions/{awaiting_session['id']}", headers=student_headers)
        assert session.json()["status"] == "confirmed"

        replay = await post_event(client, event)
        assert replay.json() == {"status": "ignored"}

    async def test_unpaid_checkout_is_ignored(self, client, student_headers, awaiting_session, trusted_webhooks):
        event = checkout_event("evt_2", "checkout.session.completed", awaiting_session["id"], payment_status="unpaid")

        response = await post_event(client, event)

        assert response.json() == {"status": "ignored"}
        session = await client.get(f"/api/v1/sessions/{awaiting_session['id']}", headers=student_headers)
        assert session.json()["status"] == "awaiting_payment"

    async def test_paid_checkout_for_cancelled_session(
        self, client, student_headers, awaiting_session, trusted_webhooks
    ):
        await client.post(f"/api/v1/sessions/{awaiting_session['id']}/cancel", headers=student_headers)

        event = checkout_event("evt_3", "checkout.session.completed", awaiting_session["id"])
        response = await post_event(client, event)

        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}

    async def test_expired_checkout_fails_payment(
        self, client, student_headers, awaiting_session, fake_stripe, trusted_webhooks, session_factory
    ):
        await client.post(
            "/api/v1/payments/stripe/checkout",
            json={"session_id": awaiting_session["id"]},
            headers=student_headers
        )

        event = checkout_event("evt_4", "checkout.session.expired", awaiting_session["id"], payment_status="unpaid")
        response = await post_event(client, event)

        assert response.json() == {"status": "success"}
        async with session_factory() as db:
            payment = (await db.execute(select(Payment))).scalar_one()
            assert payment.status == PaymentStatus.FAILED

    async def test_other_events_are_ignored(self, client, trusted_webhooks):
        response = await post_event(client, {"id": "evt_5", "type": "customer.created", "data": {"object": {}}})
        assert response.json() == {"status": "ignored"}

    async def test_missing_signature(self, client):
        response = await client.post("/api/v1/payments/stripe/webhook", content=b"{}")
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing Stripe signature"

    async def test_bad_signature(self, client, monkeypatch):
        def reject(self, payload, signature):
            raise stripe.SignatureVerificationError("No signatures found", signature)

        monkeypatch.setattr(StripeService, "construct_event", reject)

        response = await post_event(client, {"id": "evt_6", "type": "checkout.session.completed"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid signature"


class TestConnect:

    async def test_status_without_account(self, client, tutor_headers):
        response = await client.get("/api/v1/payments/connect/status", headers=tutor_headers)

        assert response.status_code == 200
        assert response.json()["has_account"] is False

    async def test_students_have_no_connect_account(self, client, student_headers):
        response = await client.get("/api/v1/payments/connect/status", headers=student_headers)
        assert response.status_code == 403


def paypal_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/v1/oauth2/token":
        return httpx.Response(200, json={"access_token": "paypal-token"})
    if path == "/v2/checkout/orders":
        body = json.loads(request.content)
        assert body["purchase_units"][0]["amount"]["value"] == "60.00"
        return httpx.Response(201, json={
            "id": "ORDER-1",
            "status": "CREATED",
            "links": [{"rel": "approve", "href": "https://paypal.test/approve/ORDER-1"}],
        })
    if path == "/v2/checkout/orders/ORDER-1/capture":
        return httpx.Response(201, json={
            "id": "ORDER-1",
            "status": "COMPLETED",
            "purchase_units": [{"payments": {"captures": [{"id": "CAPTURE-1"}]}}],
        })
    return httpx.Response(404, json={"message": "not found"})


@pytest.fixture
def fake_paypal(monkeypatch):
    monkeypatch.setattr(settings, "PAYPAL_CLIENT_ID", "client-id")
    monkeypatch.setattr(settings, "PAYPAL_SECRET", "secret")
    real_client = httpx.AsyncClient

    def mocked_client(**kwargs):
        return real_client(transport=httpx.MockTransport(paypal_handler), **kwargs)

    monkeypatch.setattr("app.services.paypal_service.httpx.AsyncClient", mocked_client)


class TestPayPal:

    async def test_order_then_capture(self, client, student_headers, awaiting_session, fake_paypal):
        order = await client.post(
            "/api/v1/payments/paypal/orders",
            json={"session_id": awaiting_session["id"]},
            headers=student_headers
        )

        assert order.status_code == 200
        assert order.json() == {
            "order_id": "ORDER-1",
            "status": "CREATED",
            "approve_url": "https://paypal.test/approve/ORDER-1",
        }

        capture = await client.post(
            "/api/v1/payments/paypal/capture",
            json={"order_id": "ORDER-1", "session_id": awaiting_session["id"]},
            headers=student_headers
        )

        assert capture.status_code == 200
        assert capture.json() == {
            "success": True,
            "status": "COMPLETED",
            "capture_id": "CAPTURE-1",
            "session_confirmed": True,
        }
        session = await client.get(f"/api/v1/sessions/{awaiting_session['id']}", headers=student_headers)
        assert session.json()["status"] == "confirmed"

    async def test_paypal_not_configured(self, client, student_headers, awaiting_session, monkeypatch):
        monkeypatch.setattr(settings, "PAYPAL_CLIENT_ID", "")

        response = await client.post(
            "/api/v1/payments/paypal/orders",
            json={"session_id": awaiting_session["id"]},
            headers=student_headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "PayPal credentials not configured"

    async def test_order_cannot_confirm_another_session(
        self, client, student_headers, tutor_headers, tutor, awaiting_session, fake_paypal
    ):
        booked = await client.post(
            "/api/v1/sessions",
            json={"tutor_id": str(tutor.id), "subject": "Physics", "scheduled_at": next_weekday_at(0, 13).isoformat()},
            headers=student_headers
        )
        other_id = booked.json()["id"]
        await client.post(f"/api/v1/sessions/{other_id}/accept", headers=tutor_headers)
        await client.post(
            "/api/v1/payments/paypal/orders",
            json={"session_id": awaiting_session["id"]},
            headers=student_headers
        )

        capture = await client.post(
            "/api/v1/payments/paypal/capture",
            json={"order_id": "ORDER-1", "session_id": other_id},
            headers=student_headers
        )

        assert capture.status_code == 400
        assert capture.json()["detail"] == "PayPal order does not belong to this session"
        for session_id in (awaiting_session["id"], other_id):
            session = await client.get(f"/api/v1/sessions/{session_id}", headers=student_headers)
            assert session.json()["status"] == "awaiting_payment"

    async def test_unknown_order_is_rejected(self, client, student_headers, awaiting_session, fake_paypal):
        capture = await client.post(
            "/api/v1/payments/paypal/capture",
            json={"order_id": "ORDER-1", "session_id": awaiting_session["id"]},
            headers=student_headers
        )

        assert capture.status_code == 400
        assert capture.json()["detail"] == "PayPal order does not belong to this session"

    async def test_cancelled_session_is_not_captured(
        self, client, student_headers, awaiting_session, fake_paypal
    ):
        await client.post(
            "/api/v1/payments/paypal/orders",
            json={"session_id": awaiting_session["id"]},
            headers=student_headers
        )
        await client.post(f"/api/v1/sessions/{awaiting_session['id']}/cancel", headers=student_headers)

        capture = await client.post(
            "/api/v1/payments/paypal/capture",
            json={"order_id": "ORDER-1", "session_id": awaiting_session["id"]},
            headers=student_headers
        )

        assert capture.status_code == 400
        assert capture.json()["detail"] == "Session is not awaiting payment"

    async def test_capture_is_recorded_when_session_cannot_be_confirmed(
        self, client, student_headers, awaiting_session, fake_paypal, session_factory, monkeypatch
    ):
        """A session cancelled while PayPal captures keeps the payment on record"""
        await client.post(
            "/api/v1/payments/paypal/orders",
            json={"session_id": awaiting_session["id"]},
            headers=student_headers
        )

        async def cancelled_meanwhile(self, session, actor_id=None):
            raise SessionStateError("cancelled", "confirmed")

        monkeypatch.setattr(SessionService, "confirm_payment", cancelled_meanwhile)

        capture = await client.post(
            "/api/v1/payments/paypal/capture",
            json={"order_id": "ORDER-1", "session_id": awaiting_session["id"]},
            headers=student_headers
        )

        assert capture.status_code == 200
        assert capture.json()["session_confirmed"] is False
        async with session_factory() as db:
            payment = (await db.execute(select(Payment))).scalar_one()
            assert payment.status == PaymentStatus.SUCCEEDED
            assert payment.provider_event_id == "CAPTURE-1"
