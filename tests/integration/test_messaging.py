"""
Integration tests for conversations and messages
"""
import uuid

import pytest


@pytest.fixture
async def conversation(client, student_headers, tutor):
    response = await client.post(
        "/api/v1/conversations",
        json={"recipient_id": str(tutor.id)},
        headers=student_headers
    )
    assert response.status_code == 200
    return response.json()


class TestConversations:

    async def test_start_conversation(self, conversation, tutor):
        assert conversation["other_user_id"] == str(tutor.id)
        assert conversation["other_user_name"] == "Tara Tutor"
        assert conversation["last_message"] is None
        assert conversation["unread_count"] == 0

    async def test_starting_twice_reuses_conversation(self, client, student_headers, tutor, conversation):
        response = await client.post(
            "/api/v1/conversations",
            json={"recipient_id": str(tutor.id)},
            headers=student_headers
        )
        assert response.json()["id"] == conversation["id"]

    async def test_other_side_sees_same_conversation(self, client, tutor_headers, student, conversation):
        response = await client.get("/api/v1/conversations", headers=tutor_headers)

        assert [c["id"] for c in response.json()] == [conversation["id"]]
        assert response.json()[0]["other_user_name"] == "Sam Student"

    async def test_cannot_message_yourself(self, client, student, student_headers):
        response = await client.post(
            "/api/v1/conversations",
            json={"recipient_id": str(student.id)},
            headers=student_headers
        )
        assert response.status_code == 400

    async def test_unknown_recipient(self, client, student_headers):
        response = await client.post(
            "/api/v1/conversations",
            json={"recipient_id": str(uuid.uuid4())},
            headers=student_headers
        )
        assert response.status_code == 404


class TestMessages:

    async def test_send_and_read(self, client, student_headers, tutor_headers, conversation):
        sent = await client.post(
            f"/api/v1/conversations/{conversation['id']}/messages",
            json={"content": "  Can we go over derivatives?  "},
            headers=student_headers
        )
        assert sent.status_code == 201
        assert sent.json()["content"] == "Can we go over derivatives?"
        assert sent.json()["read_at"] is None

        unread = await client.get("/api/v1/conversations/unread-count", headers=tutor_headers)
        assert unread.json() == {"unread_count": 1}

        listed = await client.get("/api/v1/conversations", headers=tutor_headers)
        assert listed.json()[0]["last_message"] == "Can we go over derivatives?"
        assert listed.json()[0]["unread_count"] == 1

        messages = await client.get(f"/api/v1/conversations/{conversation['id']}/messages", headers=tutor_headers)
        assert [m["content"] for m in messages.json()] == ["Can we go over derivatives?"]
        assert messages.json()[0]["read_at"] is not None

        unread = await client.get("/api/v1/conversations/unread-count", headers=tutor_headers)
        assert unread.json() == {"unread_count": 0}

    async def test_sender_reading_does_not_mark_read(self, client, student_headers, tutor_headers, conversation):
        await client.post(
            f"/api/v1/conversations/{conversation['id']}/messages",
            json={"content": "Hello"},
            headers=student_headers
        )
        await client.get(f"/api/v1/conversations/{conversation['id']}/messages", headers=student_headers)

        unread = await client.get("/api/v1/conversations/unread-count", headers=tutor_headers)
        assert unread.json() == {"unread_count": 1}

    async def test_polling_with_after(self, client, student_headers, tutor_headers, conversation):
        first = await client.post(
            f"/api/v1/conversations/{conversation['id']}/messages",
            json={"content": "First"},
            headers=student_headers
        )
        await client.post(
            f"/api/v1/conversations/{conversation['id']}/messages",
            json={"content": "Second"},
            headers=tutor_headers
        )

        response = await client.get(
            f"/api/v1/conversations/{conversation['id']}/messages",
            params={"after": first.json()["created_at"]},
            headers=student_headers
        )
        assert [m["content"] for m in response.json()] == ["Second"]

    async def test_blank_message(self, client, student_headers, conversation):
        response = await client.post(
            f"/api/v1/conversations/{conversation['id']}/messages",
            json={"content": "   "},
            headers=student_headers
        )
        assert response.status_code == 422

    async def test_outsider_cannot_read(self, client, other_student_headers, conversation):
        response = await client.get(
            f"/api/v1/conversations/{conversation['id']}/messages",
            headers=other_student_headers
        )
        assert response.status_code == 403
