"""
Integration tests for session booking and the session lifecycle
"""
import uuid

import pytest
from sqlalchemy import select

from app.models.audit_log import AuditLog
from app.models.tutor_profile import TutorProfile
from app.services.notification_service import NotificationService, build_sms_message
from tests.conftest import next_weekday_at


async def book(client, headers, tutor, start=None, **extra):
    body = {
        "tutor_id": str(tutor.id),
        "subject": "Math",
        "scheduled_at": (start or next_weekday_at(0, 10)).isoformat(),
    }
    body.update(extra)
    return await client.post("/api/v1/sessions", json=body, headers=headers)


@pytest.fixture
async def pending_session(client, student_headers, tutor):
    response = await book(client, student_headers, tutor)
    assert response.status_code == 201
    return response.json()


class TestBooking:

    async def test_book_session(self, client, student, student_headers, tutor):
        response = await book(client, student_headers, tutor, duration_minutes=90)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["price_cents"] == 9000
        assert data["student_name"] == "Sam Student"
        assert data["tutor_name"] == "Tara Tutor"
        assert data["student_timezone_view"] is None

    async def test_booking_notice_has_no_view_suffix_by_default(self, client, student_headers, tutor, monkeypatch):
        sent = []

        async def record(self, notification_type, recipient, data):
            sent.append((notification_type, data))

        monkeypatch.setattr(NotificationService, "dispatch", record)

        response = await book(client, student_headers, tutor)

        assert response.status_code == 201
        assert len(sent) == 1
        assert sent[0][1].student_timezone_view is None
        assert "viewed in" not in build_sms_message(*sent[0])

    async def test_student_timezone_view_is_kept(self, client, student_headers, tutor):
        response = await book(client, student_headers, tutor, student_timezone_view="America/Los_Angeles")
        assert response.json()["student_timezone_view"] == "America/Los_Angeles"

    async def test_outside_availability(self, client, student_headers, tutor):
        response = await book(client, student_headers, tutor, start=next_weekday_at(5, 10))

        assert response.status_code == 409
        assert response.json()["detail"] == "Requested time is outside the tutor's availability"

    async def test_overlapping_session(self, client, student_headers, other_student_headers, tutor):
        first = await book(client, student_headers, tutor, start=next_weekday_at(1, 10))
        assert first.status_code == 201

        second = await book(client, other_student_headers, tutor, start=next_weekday_at(1, 10, 30))
        assert second.status_code == 409
        assert second.json()["detail"] == "Tutor already has a session at this time"

    async def test_naive_datetime_is_rejected(self, client, student_headers, tutor):
        start = next_weekday_at(0, 10).replace(tzinfo=None)
        response = await book(client, student_headers, tutor, start=start)
        assert response.status_code == 422

    async def test_tutors_cannot_book(self, client, tutor_headers, tutor):
        response = await book(client, tutor_headers, tutor)
        assert response.status_code == 403

    async def test_unknown_tutor(self, client, student_headers):
        response = await client.post(
            "/api/v1/sessions",
            json={"tutor_id": str(uuid.uuid4()), "subject": "Math", "scheduled_at": next_weekday_at(0, 10).isoformat()},
            headers=student_headers
        )
        assert response.status_code == 404


class TestLifecycle:

    async def test_accept_moves_paid_session_to_awaiting_payment(self, client, tutor_headers, pending_session):
        response = await client.post(f"/api/v1/sessions/{pending_session['id']}/accept", headers=tutor_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "awaiting_payment"

    async def test_only_the_tutor_can_accept(self, client, student_headers, pending_session):
        response = await client.post(f"/api/v1/sessions/{pending_session['id']}/accept", headers=student_headers)
        assert response.status_code == 403

    async def test_mark_paid_confirms_and_counts(self, client, tutor, tutor_headers, pending_session, session_factory):
        session_id = pending_session["id"]
        await client.post(f"/api/v1/sessions/{session_id}/accept", headers=tutor_headers)

        response = await client.post(f"/api/v1/sessions/{session_id}/mark-paid", headers=tutor_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        async with session_factory() as db:
            tutor_profile = (await db.execute(
                select(TutorProfile).where(TutorProfile.user_id == tutor.id)
            )).scalar_one()
            assert tutor_profile.total_sessions == 1

    async def test_invalid_transition(self, client, tutor_headers, pending_session):
        response = await client.post(f"/api/v1/sessions/{pending_session['id']}/complete", headers=tutor_headers)

        assert response.status_code == 409
        assert response.json()["detail"] == "Cannot change session status from pending to completed"

    async def test_cancelled_session_is_final(self, client, student_headers, tutor_headers, pending_session):
        session_id = pending_session["id"]
        cancelled = await client.post(f"/api/v1/sessions/{session_id}/cancel", headers=student_headers)
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"

        response = await client.post(f"/api/v1/sessions/{session_id}/accept", headers=tutor_headers)
        assert response.status_code == 409

    async def test_status_changes_are_audited(self, client, tutor_headers, pending_session, session_factory):
        await client.post(f"/api/v1/sessions/{pending_session['id']}/accept", headers=tutor_headers)

        async with session_factory() as db:
            logs = (await db.execute(
                select(AuditLog).where(AuditLog.entity_id == pending_session["id"])
            )).scalars().all()
        actions = sorted(log.action for log in logs)
        assert actions == ["create", "status_change"]

    async def test_outsiders_cannot_see_session(self, client, other_student_headers, pending_session):
        response = await client.get(f"/api/v1/sessions/{pending_session['id']}", headers=other_student_headers)
        assert response.status_code in (403, 404)

    async def test_reschedule(self, client, tutor_headers, pending_session):
        new_start = next_weekday_at(2, 14)
        response = await client.patch(
            f"/api/v1/sessions/{pending_session['id']}",
            json={"scheduled_at": new_start.isoformat(), "notes": "Bring the homework"},
            headers=tutor_headers
        )

        assert response.status_code == 200
        assert response.json()["notes"] == "Bring the homework"

    async def test_meeting_link(self, client, tutor_headers, pending_session):
        response = await client.post(
            f"/api/v1/sessions/{pending_session['id']}/meeting-link",
            json={"meeting_link": "https://meet.example.com/abc"},
            headers=tutor_headers
        )

        assert response.status_code == 200
        assert response.json()["meeting_link"] == "https://meet.example.com/abc"

    async def test_meeting_link_must_be_url(self, client, tutor_headers, pending_session):
        response = await client.post(
            f"/api/v1/sessions/{pending_session['id']}/meeting-link",
            json={"meeting_link": "zoom please"},
            headers=tutor_headers
        )
        assert response.status_code == 422


class TestListing:

    async def test_scopes(self, client, student_headers, tutor_headers, tutor):
        first = (await book(client, student_headers, tutor, start=next_weekday_at(0, 10))).json()
        second = (await book(client, student_headers, tutor, start=next_weekday_at(1, 10))).json()
        await client.post(f"/api/v1/sessions/{second['id']}/cancel", headers=student_headers)

        upcoming = await client.get("/api/v1/sessions", params={"scope": "upcoming"}, headers=student_headers)
        past = await client.get("/api/v1/sessions", params={"scope": "past"}, headers=student_headers)
        everything = await client.get("/api/v1/sessions", headers=tutor_headers)

        assert [s["id"] for s in upcoming.json()] == [first["id"]]
        assert [s["id"] for s in past.json()] == [second["id"]]
        assert {s["id"] for s in everything.json()} == {first["id"], second["id"]}

    async def test_bad_scope(self, client, student_headers):
        response = await client.get("/api/v1/sessions", params={"scope": "someday"}, headers=student_headers)
        assert response.status_code == 422


class TestClassSessions:

    async def test_price_is_split(self, client, tutor_headers, student, other_student):
        response = await client.post(
            "/api/v1/sessions/class",
            json={
                "student_ids": [str(student.id), str(other_student.id)],
                "subject": "SAT Prep",
                "scheduled_at": next_weekday_at(3, 15).isoformat(),
                "total_price_cents": 10001,
            },
            headers=tutor_headers
        )

        assert response.status_code == 201
        data = response.json()
        assert data["per_student_price_cents"] == 5001
        assert data["group_session_id"] is not None
        assert len(data["sessions"]) == 2
        for session in data["sessions"]:
            assert session["status"] == "awaiting_payment"
            assert session["is_class_session"] is True
            assert session["group_session_id"] == data["group_session_id"]

    async def test_single_student_has_no_group(self, client, tutor_headers, student):
        response = await client.post(
            "/api/v1/sessions/class",
            json={
                "student_ids": [str(student.id)],
                "subject": "SAT Prep",
                "scheduled_at": next_weekday_at(3, 15).isoformat(),
                "total_price_cents": 4000,
            },
            headers=tutor_headers
        )

        assert response.status_code == 201
        assert response.json()["group_session_id"] is None
        assert response.json()["per_student_price_cents"] == 4000

    async def test_price_floor(self, client, tutor_headers, student):
        response = await client.post(
            "/api/v1/sessions/class",
            json={
                "student_ids": [str(student.id)],
                "subject": "SAT Prep",
                "scheduled_at": next_weekday_at(3, 15).isoformat(),
                "total_price_cents": 49,
            },
            headers=tutor_headers
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Price must be at least $0.50"

    async def test_share_floor(self, client, tutor_headers, student, other_student):
        response = await client.post(
            "/api/v1/sessions/class",
            json={
                "student_ids": [str(student.id), str(other_student.id)],
                "subject": "SAT Prep",
                "scheduled_at": next_weekday_at(3, 15).isoformat(),
                "total_price_cents": 60,
            },
            headers=tutor_headers
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Each student's share must be at least $0.50 ($0.30 for 2 students)"

    async def test_no_students(self, client, tutor_headers):
        response = await client.post(
            "/api/v1/sessions/class",
            json={
                "student_ids": [],
                "subject": "SAT Prep",
                "scheduled_at": next_weekday_at(3, 15).isoformat(),
                "total_price_cents": 4000,
            },
            headers=tutor_headers
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Please select at least one student"
