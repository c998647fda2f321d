"""
Unit tests for notification text and SMS helpers
"""
from types import SimpleNamespace

import pytest
from twilio.base.exceptions import TwilioRestException

from app.core.exceptions import NotificationError
from app.schemas.notification import NotificationType, NotificationData, NotificationRequest, SMSResult
from app.services.notification_service import (
    NotificationService,
    build_sms_message,
    parse_notification_type,
)
from app.core.config import settings
from app.services import sms_service
from app.services.sms_service import SMSService, format_phone_number


class RecordingSMSService:

    def __init__(self):
        self.sent = []

    async def send_sms(self, phone_number, message):
        self.sent.append((phone_number, message))
        return SMSResult(success=True, sid="SM123")


class UnconfiguredEmailService:
    is_configured = False


class TestSMSMessages:

    def test_new_message(self):
        text = build_sms_message(NotificationType.NEW_MESSAGE, NotificationData(sender_name="Sam"))
        assert text == "BrightMinds: New message from Sam. Log in to view and reply."

    def test_session_booked_includes_student_timezone(self):
        data = NotificationData(
            sender_name="Sam",
            subject="Math",
            session_date="Mon, Jan 6 at 2:30 PM EST",
            student_timezone_view="PST"
        )
        text = build_sms_message(NotificationType.SESSION_BOOKED, data)
        assert text == (
            "BrightMinds: New Math session booked with Sam for Mon, Jan 6 at 2:30 PM EST "
            "(student viewed in PST)."
        )

    def test_session_booked_defaults(self):
        text = build_sms_message(NotificationType.SESSION_BOOKED, NotificationData())
        assert text == "BrightMinds: New tutoring session booked with a user for TBD."

    def test_cancelled_without_date(self):
        text = build_sms_message(NotificationType.SESSION_CANCELLED, NotificationData(subject="Physics"))
        assert text == "BrightMinds: Your Physics session scheduled for N/A has been cancelled."

    def test_profile_viewed_and_class_joined(self):
        assert "A student viewed your tutor profile" in build_sms_message(
            NotificationType.PROFILE_VIEWED, NotificationData()
        )
        assert build_sms_message(NotificationType.CLASS_JOINED, NotificationData(sender_name="Olivia")).startswith(
            "BrightMinds: Olivia joined your class!"
        )

    def test_unknown_type(self):
        with pytest.raises(NotificationError, match="Unknown notification type"):
            parse_notification_type("birthday")


class TestPhoneFormatting:

    @pytest.mark.parametrize("raw,expected", [
        ("(555) 123-4567", "+15551234567"),
        ("+44 20 7946 0958", "+442079460958"),
        ("15551234567", "+15551234567"),
    ])
    def test_format(self, raw, expected):
        assert format_phone_number(raw) == expected


@pytest.fixture
def twilio_messages(monkeypatch):
    """Configure Twilio and record message creation instead of calling the API"""
    monkeypatch.setattr(settings, "TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", "token")
    monkeypatch.setattr(settings, "TWILIO_PHONE_NUMBER", "+15550000000")
    sent = []

    class FakeClient:
        def __init__(self, account_sid, auth_token):
            assert (account_sid, auth_token) == ("AC123", "token")
            self.messages = SimpleNamespace(create=self.create)

        def create(self, **kwargs):
            sent.append(kwargs)
            return SimpleNamespace(sid="SM999")

    monkeypatch.setattr(sms_service, "Client", FakeClient)
    return sent


class TestSMSService:

    async def test_unconfigured_service_reports_instead_of_raising(self):
        service = SMSService()
        service.account_sid = None

        result = await service.send_sms("5551234567", "hello")

        assert result.success is False
        assert result.error == "SMS not configured"

    async def test_sends_through_twilio_client(self, twilio_messages):
        result = await SMSService().send_sms("(555) 123-4567", "hello")

        assert result.success is True
        assert result.sid == "SM999"
        assert twilio_messages == [{"to": "+15551234567", "from_": "+15550000000", "body": "hello"}]

    async def test_twilio_error_is_reported(self, twilio_messages, monkeypatch):
        def reject(**kwargs):
            raise TwilioRestException(400, "/Messages.json", msg="Invalid 'To' number")

        service = SMSService()
        monkeypatch.setattr(service.client.messages, "create", reject)

        result = await service.send_sms("123", "hello")

        assert result.success is False
        assert result.error == "Invalid 'To' number"


class TestNotificationService:

    async def test_sends_prefixed_sms(self):
        sms = RecordingSMSService()
        service = NotificationService(sms_service=sms, email_service=UnconfiguredEmailService())

        response = await service.send(NotificationRequest(
            type="new_message",
            recipient_phone="5551234567",
            data=NotificationData(sender_name="Sam")
        ))

        assert response.success
        assert response.sms_result.sid == "SM123"
        assert response.email_sent is False
        assert sms.sent == [("5551234567", "BrightMinds: New message from Sam. Log in to view and reply.")]

    async def test_missing_phone_skips_sms(self):
        sms = RecordingSMSService()
        service = NotificationService(sms_service=sms, email_service=UnconfiguredEmailService())

        response = await service.send(NotificationRequest(type="profile_viewed"))

        assert response.success
        assert response.sms_result.error == "No phone provided"
        assert sms.sent == []

    async def test_dispatch_swallows_unknown_errors(self):
        class ExplodingSMSService:
            async def send_sms(self, phone_number, message):
                raise RuntimeError("boom")

        service = NotificationService(sms_service=ExplodingSMSService(), email_service=UnconfiguredEmailService())

        await service.dispatch(
            NotificationType.SESSION_UPDATED,
            {"phone": "5551234567", "email": None, "name": "Sam"},
            NotificationData(subject="Math")
        )
