"""
Unit tests for matching input validation, result normalisation and the gateway relay
"""
import json
import uuid
from types import SimpleNamespace

import httpx
import openai
import pytest

from app.core.exceptions import (
    MatchingError,
    MatchingRateLimitError,
    MatchingCreditsExhaustedError,
    ValidationError,
)
from app.services.matching_service import (
    MatchingService,
    normalize_matches,
    validate_student_profile,
    validate_tutors,
)


def _tutor(**overrides):
    tutor = {
        "user_id": str(uuid.uuid4()),
        "full_name": "Tara Tutor",
        "subjects": ["Math"],
        "experience_years": 5,
        "teaching_style": "Patient",
        "education": "MSc",
        "rating": 4.5,
    }
    tutor.update(overrides)
    return tutor


def _status_error(error_class, status_code):
    request = httpx.Request("POST", "https://gateway.test/v1/chat/completions")
    response = httpx.Response(status_code, request=request)
    return error_class("gateway error", response=response, body=None)


class FakeCompletions:

    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(content=None, error=None):
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(content, error)))


class TestStudentProfileValidation:

    def test_missing_fields_become_empty(self):
        student = validate_student_profile({})
        assert student["background"] == ""
        assert student["subjects_interested"] == []

    def test_must_be_object(self):
        with pytest.raises(ValidationError, match="studentProfile must be an object"):
            validate_student_profile("student")

    def test_long_text_is_rejected(self):
        with pytest.raises(ValidationError, match="background must be less than 500 characters"):
            validate_student_profile({"background": "x" * 501})

    def test_subject_list_limits(self):
        with pytest.raises(ValidationError, match="must have less than 20 items"):
            validate_student_profile({"subjects_interested": ["Math"] * 21})
        with pytest.raises(ValidationError, match=r"subjects_interested\[0\] must be a string"):
            validate_student_profile({"subjects_interested": [3]})


class TestTutorValidation:

    def test_empty_list_is_rejected(self):
        with pytest.raises(ValidationError, match="tutors array cannot be empty"):
            validate_tutors([])

    def test_too_many_tutors(self):
        with pytest.raises(ValidationError, match="less than 100 items"):
            validate_tutors([_tutor() for _ in range(101)])

    def test_user_id_must_be_uuid_v4(self):
        with pytest.raises(ValidationError, match=r"tutors\[0\]\.user_id must be a valid UUID"):
            validate_tutors([_tutor(user_id="not-a-uuid")])
        with pytest.raises(ValidationError):
            validate_tutors([_tutor(user_id=str(uuid.uuid1()))])

    def test_numbers_are_clamped(self):
        tutor = validate_tutors([_tutor(experience_years=250, rating=9)])[0]
        assert tutor["experience_years"] == 100
        assert tutor["rating"] == 5

    def test_non_numbers_become_zero(self):
        tutor = validate_tutors([_tutor(experience_years="many", rating=None)])[0]
        assert tutor["experience_years"] == 0
        assert tutor["rating"] == 0

    def test_long_teaching_style_is_truncated(self):
        tutor = validate_tutors([_tutor(teaching_style="y" * 800)])[0]
        assert len(tutor["teaching_style"]) == 500

    def test_long_name_is_rejected(self):
        with pytest.raises(ValidationError, match="full_name must be less than 100 characters"):
            validate_tutors([_tutor(full_name="n" * 101)])


class TestNormalizeMatches:

    def test_sorted_and_clamped(self):
        first, second = str(uuid.uuid4()), str(uuid.uuid4())
        matches = normalize_matches([
            {"tutor_id": first, "match_score": 40, "match_reasons": ["Same subject"]},
            {"tutor_id": second, "match_score": 140, "match_reasons": ["Great fit", ""]},
        ])
        assert [m["tutor_id"] for m in matches] == [second, first]
        assert matches[0]["match_score"] == 100
        assert matches[0]["match_reasons"] == ["Great fit"]

    def test_unknown_and_duplicate_tutors_are_dropped(self):
        known = str(uuid.uuid4())
        matches = normalize_matches(
            [
                {"tutor_id": known, "match_score": 80},
                {"tutor_id": known, "match_score": 20},
                {"tutor_id": str(uuid.uuid4()), "match_score": 90},
                "garbage",
            ],
            {known}
        )
        assert matches == [{"tutor_id": known, "match_score": 80, "match_reasons": []}]

    def test_non_numeric_score(self):
        tutor_id = str(uuid.uuid4())
        assert normalize_matches([{"tutor_id": tutor_id, "match_score": "high"}])[0]["match_score"] == 0

    def test_missing_list(self):
        with pytest.raises(MatchingError):
            normalize_matches(None)


class TestMatchingRelay:

    async def test_returns_model_json(self):
        tutor = _tutor()
        payload = {"matches": [{"tutor_id": tutor["user_id"], "match_score": 88, "match_reasons": ["Math"]}]}
        client = fake_client(content=json.dumps(payload))

        result = await MatchingService(client=client).match({"background": "Grade 10"}, [tutor])

        assert result == payload
        call = client.chat.completions.calls[0]
        assert call["response_format"] == {"type": "json_object"}
        assert tutor["user_id"] in call["messages"][1]["content"]

    async def test_validation_happens_before_the_call(self):
        client = fake_client(content="{}")
        with pytest.raises(ValidationError):
            await MatchingService(client=client).match({}, [])
        assert client.chat.completions.calls == []

    async def test_rate_limit(self):
        client = fake_client(error=_status_error(openai.RateLimitError, 429))
        with pytest.raises(MatchingRateLimitError, match="Rate limit exceeded"):
            await MatchingService(client=client).match({}, [_tutor()])

    async def test_credits_exhausted(self):
        client = fake_client(error=_status_error(openai.APIStatusError, 402))
        with pytest.raises(MatchingCreditsExhaustedError, match="AI credits exhausted"):
            await MatchingService(client=client).match({}, [_tutor()])

    async def test_other_gateway_errors(self):
        client = fake_client(error=_status_error(openai.InternalServerError, 503))
        with pytest.raises(MatchingError, match="AI Gateway error: 503"):
            await MatchingService(client=client).match({}, [_tutor()])

    async def test_empty_content(self):
        with pytest.raises(MatchingError, match="No content in AI response"):
            await MatchingService(client=fake_client(content="")).match({}, [_tutor()])

    async def test_invalid_json(self):
        with pytest.raises(MatchingError, match="not valid JSON"):
            await MatchingService(client=fake_client(content="not json")).match({}, [_tutor()])
