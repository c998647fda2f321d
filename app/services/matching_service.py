from typing import List, Dict, Any, Optional
import json
import logging
import re
import uuid

import openai
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from app.core.config import settings
from app.models.profile import Profile, UserRole
from app.models.tutor_profile import TutorProfile
from app.models.student_profile import StudentProfile
from app.models.ai_match import AIMatch
from app.schemas.profile import StudentQuestionnaire
from app.core.exceptions import (
    MatchingError,
    MatchingRateLimitError,
    MatchingCreditsExhaustedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

UUID_V4 = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)

MAX_TUTORS = 100

SYSTEM_PROMPT = """You are an AI tutor matching assistant for Bright Minds Match. Your task is to analyze a student's profile and match them with the best tutors based on compatibility.

Consider these factors when matching:
1. Learning style compatibility (visual, auditory, kinesthetic)
2. Subject expertise alignment
3. Teaching style preferences
4. Personality compatibility
5. Schedule availability
6. Educational goals alignment

For each tutor, provide:
- A match score from 0-100
- 2-3 specific reasons why they're a good match

Return your response as valid JSON in this exact format:
{
  "matches": [
    {
      "tutor_id": "uuid",
      "match_score": 85,
      "match_reasons": ["reason1", "reason2", "reason3"]
    }
  ]
}"""


def validate_string(value: Any, field_name: str, max_length: int = 1000, truncate: bool = False) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    if len(value) > max_length:
        if truncate:
            return value[:max_length]
        raise ValidationError(f"{field_name} must be less than {max_length} characters")
    return value


def validate_string_list(value: Any, field_name: str, max_items: int = 50) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{field_name} must be an array")
    if len(value) > max_items:
        raise ValidationError(f"{field_name} must have less than {max_items} items")
    for i, item in enumerate(value):
        if not isinstance(item, str):
            raise ValidationError(f"{field_name}[{i}] must be a string")
        if len(item) > 200:
            raise ValidationError(f"{field_name}[{i}] must be less than 200 characters")
    return list(value)


def _clamp_number(value: Any, low: float, high: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return min(max(low, value), high)


def validate_student_profile(profile: Any) -> Dict[str, Any]:
    if not isinstance(profile, dict):
        raise ValidationError("studentProfile must be an object")
    return {
        "background": validate_string(profile.get("background"), "background", 500),
        "personality": validate_string(profile.get("personality"), "personality", 500),
        "learning_goals": validate_string(profile.get("learning_goals"), "learning_goals", 500),
        "learning_style": validate_string(profile.get("learning_style"), "learning_style", 200),
        "study_habits": validate_string(profile.get("study_habits"), "study_habits", 500),
        "subjects_interested": validate_string_list(profile.get("subjects_interested"), "subjects_interested", 20),
    }


def validate_tutor(tutor: Any, index: int) -> Dict[str, Any]:
    if not isinstance(tutor, dict):
        raise ValidationError(f"tutors[{index}] must be an object")

    user_id = tutor.get("user_id")
    if not isinstance(user_id, str) or not UUID_V4.match(user_id):
        raise ValidationError(f"tutors[{index}].user_id must be a valid UUID")

    return {
        "user_id": user_id,
        "full_name": validate_string(tutor.get("full_name"), f"tutors[{index}].full_name", 100),
        "subjects": validate_string_list(tutor.get("subjects"), f"tutors[{index}].subjects", 20),
        "experience_years": _clamp_number(tutor.get("experience_years"), 0, 100),
        "teaching_style": validate_string(tutor.get("teaching_style"), f"tutors[{index}].teaching_style", 500, truncate=True),
        "education": validate_string(tutor.get("education"), f"tutors[{index}].education", 500, truncate=True),
        "rating": _clamp_number(tutor.get("rating"), 0, 5),
    }


def validate_tutors(tutors: Any) -> List[Dict[str, Any]]:
    if not isinstance(tutors, list):
        raise ValidationError("tutors must be an array")
    if not tutors:
        raise ValidationError("tutors array cannot be empty")
    if len(tutors) > MAX_TUTORS:
        raise ValidationError(f"tutors array must have less than {MAX_TUTORS} items")
    return [validate_tutor(tutor, i) for i, tutor in enumerate(tutors)]


def build_user_prompt(student: Dict[str, Any], tutors: List[Dict[str, Any]]) -> str:
    def or_default(value: str) -> str:
        return value or "Not specified"

    tutor_blocks = "\n".join(
        f"""
Tutor {i + 1}:
- ID: {t['user_id']}
- Name: {t['full_name']}
- Subjects: {', '.join(t['subjects'])}
- Experience: {t['experience_years']} years
- Teaching Style: {or_default(t['teaching_style'])}
- Education: {or_default(t['education'])}
- Rating: {t['rating']}/5
"""
        for i, t in enumerate(tutors)
    )

    return f"""Student Profile:
- Background: {or_default(student['background'])}
- Personality: {or_default(student['personality'])}
- Learning Goals: {or_default(student['learning_goals'])}
- Learning Style: {or_default(student['learning_style'])}
- Study Habits: {or_default(student['study_habits'])}
- Subjects Interested: {or_default(', '.join(student['subjects_interested']))}

Available Tutors:
{tutor_blocks}

Analyze the compatibility and return the top matches with scores and reasons."""


def normalize_matches(raw_matches: Any, known_tutor_ids: Optional[set] = None) -> List[Dict[str, Any]]:
    """Keep well-formed matches for known tutors, clamp scores to 0-100 and sort best first"""
    if not isinstance(raw_matches, list):
        raise MatchingError("AI response is missing a matches list")

    matches = []
    seen = set()
    for item in raw_matches:
        if not isinstance(item, dict):
            continue
        tutor_id = str(item.get("tutor_id", ""))
        if tutor_id in seen:
            continue
        if known_tutor_ids is not None and tutor_id not in known_tutor_ids:
            logger.warning(f"Dropping match for unknown tutor {tutor_id}")
            continue
        try:
            score = int(round(float(item.get("match_score", 0))))
        except (TypeError, ValueError):
            score = 0
        seen.add(tutor_id)
        reasons = [str(reason) for reason in (item.get("match_reasons") or []) if reason]
        matches.append({
            "tutor_id": tutor_id,
            "match_score": min(max(score, 0), 100),
            "match_reasons": reasons,
        })

    matches.sort(key=lambda match: match["match_score"], reverse=True)
    return matches


class MatchingService:
    """Relays the matching prompt to an OpenAI-compatible gateway and stores results"""

    def __init__(self, client: Optional[openai.AsyncOpenAI] = None):
        self.configured = client is not None or bool(settings.AI_GATEWAY_API_KEY)
        self.client = client or openai.AsyncOpenAI(
            api_key=settings.AI_GATEWAY_API_KEY or "unset",
            base_url=settings.AI_GATEWAY_URL,
            max_retries=0,
        )
        self.model = settings.AI_MATCH_MODEL

    async def match(self, student_profile: Any, tutors: Any) -> Dict[str, Any]:
        """Validate input, call the model and return {"matches": [...]} as the model produced it"""
        student = validate_student_profile(student_profile)
        validated_tutors = validate_tutors(tutors)
        logger.info(f"Input validated successfully: {len(validated_tutors)} tutors")

        if not self.configured:
            raise MatchingError("AI gateway is not configured")

        logger.info("Calling AI gateway for matching...")
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(student, validated_tutors)},
                ],
                response_format={"type": "json_object"},
            )
        except openai.RateLimitError:
            raise MatchingRateLimitError("Rate limit exceeded. Please try again later.")
        except openai.APIStatusError as e:
            logger.error(f"AI gateway error: {e.status_code} {e.message}")
            if e.status_code == 402:
                raise MatchingCreditsExhaustedError("AI credits exhausted. Please add credits to continue.")
            raise MatchingError(f"AI Gateway error: {e.status_code}")
        except openai.APIError as e:
            logger.error(f"AI gateway request failed: {e}")
            raise MatchingError(f"AI Gateway error: {str(e)}")

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise MatchingError("No content in AI response")

        logger.info(f"AI response received ({len(content)} chars)")
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise MatchingError(f"AI response is not valid JSON: {e}")

    async def save_questionnaire(
        self,
        user: Profile,
        answers: StudentQuestionnaire,
        db: AsyncSession
    ) -> StudentProfile:
        result = await db.execute(select(StudentProfile).where(StudentProfile.user_id == user.id))
        student_profile = result.scalar_one_or_none()
        if student_profile is None:
            student_profile = StudentProfile(user_id=user.id)
            db.add(student_profile)

        for field, value in answers.model_dump(exclude_unset=True).items():
            setattr(student_profile, field, value)
        student_profile.ai_matching_completed = True
        await db.flush()
        return student_profile

    async def match_student(
        self,
        user: Profile,
        answers: StudentQuestionnaire,
        db: AsyncSession
    ) -> List[Dict[str, Any]]:
        """Save the questionnaire, rank every tutor and replace the stored matches"""
        student_profile = await self.save_questionnaire(user, answers, db)

        result = await db.execute(
            select(Profile, TutorProfile)
            .join(TutorProfile, TutorProfile.user_id == Profile.id)
            .where(Profile.role == UserRole.TUTOR)
            .limit(MAX_TUTORS)
        )
        rows = result.all()
        if not rows:
            logger.info(f"No tutors available to match student {user.id}")
            return []

        tutors_by_id = {str(profile.id): (profile, tutor) for profile, tutor in rows}
        tutors_payload = [
            {
                "user_id": str(profile.id),
                "full_name": (profile.full_name or "")[:100],
                "subjects": list(tutor.subjects or [])[:20],
                "experience_years": tutor.experience_years or 0,
                "teaching_style": tutor.teaching_style,
                "education": tutor.education,
                "rating": tutor.rating or 0,
            }
            for profile, tutor in rows
        ]
        student_payload = {
            "background": student_profile.background,
            "personality": student_profile.personality,
            "learning_goals": student_profile.learning_goals,
            "learning_style": student_profile.learning_style,
            "study_habits": student_profile.study_habits,
            "subjects_interested": list(student_profile.subjects_interested or []),
        }

        raw = await self.match(student_payload, tutors_payload)
        matches = normalize_matches(raw.get("matches") if isinstance(raw, dict) else None, set(tutors_by_id))

        await db.execute(delete(AIMatch).where(AIMatch.student_id == user.id))
        for match in matches:
            db.add(AIMatch(
                student_id=user.id,
                tutor_id=uuid.UUID(match["tutor_id"]),
                match_score=match["match_score"],
                match_reasons=match["match_reasons"],
            ))
        await db.flush()
        logger.info(f"Stored {len(matches)} AI matches for student {user.id}")

        return [enrich_match(match, *tutors_by_id[match["tutor_id"]]) for match in matches]

    async def get_saved_matches(self, user: Profile, db: AsyncSession) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(AIMatch, Profile, TutorProfile)
            .join(Profile, Profile.id == AIMatch.tutor_id)
            .join(TutorProfile, TutorProfile.user_id == AIMatch.tutor_id)
            .where(AIMatch.student_id == user.id)
            .order_by(AIMatch.match_score.desc())
        )
        return [
            enrich_match(
                {"tutor_id": str(match.tutor_id), "match_score": match.match_score, "match_reasons": match.match_reasons or []},
                profile,
                tutor
            )
            for match, profile, tutor in result.all()
        ]


def enrich_match(match: Dict[str, Any], profile: Profile, tutor: TutorProfile) -> Dict[str, Any]:
    return {
        **match,
        "full_name": profile.full_name,
        "avatar_url": profile.avatar_url,
        "subjects": list(tutor.subjects or []),
        "hourly_rate_cents": tutor.hourly_rate_cents,
        "rating": tutor.rating or 0.0,
        "experience_years": tutor.experience_years,
    }
