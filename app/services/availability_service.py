from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from typing import List, Dict, Any, Optional, Tuple
from datetime import datetime, timezone, timedelta, date, time
from dateutil import rrule
import logging
import uuid

from app.core.pricing import MAX_SESSION_MINUTES
from app.core.timezone_utils import (
    ensure_utc,
    get_timezone,
    format_time_12hr,
    convert_time,
    get_other_timezone,
    timezone_label,
)
from app.models.session import TutoringSession, UPCOMING_STATUSES
from app.schemas.availability import (
    DAYS_OF_WEEK,
    WeeklyAvailability,
    DayAvailability,
    TimeRange,
    BookableSlot,
)
from app.core.exceptions import AvailabilityError

logger = logging.getLogger(__name__)

DEFAULT_DAY_START = "09:00"
DEFAULT_DAY_END = "17:00"
SLOT_STEP_MINUTES = 30

Interval = Tuple[datetime, datetime]


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def _clock(total_minutes: int) -> time:
    return time(total_minutes // 60, total_minutes % 60)


def _overlaps(start: datetime, end: datetime, busy: List[Interval]) -> bool:
    return any(start < busy_end and end > busy_start for busy_start, busy_end in busy)


def default_availability() -> WeeklyAvailability:
    """Mon-Fri 09:00-17:00, weekends off"""
    weekday = DayAvailability(enabled=True, slots=[TimeRange(start=DEFAULT_DAY_START, end=DEFAULT_DAY_END)])
    weekend = DayAvailability(enabled=False, slots=[])
    return WeeklyAvailability(
        monday=weekday,
        tuesday=weekday.model_copy(deep=True),
        wednesday=weekday.model_copy(deep=True),
        thursday=weekday.model_copy(deep=True),
        friday=weekday.model_copy(deep=True),
        saturday=weekend,
        sunday=weekend.model_copy(deep=True),
    )


def normalize_availability(raw: Optional[Dict[str, Any]]) -> WeeklyAvailability:
    """Parse stored JSON; unknown keys are ignored and missing days come back disabled"""
    if not raw:
        return WeeklyAvailability()
    return WeeklyAvailability.model_validate({day: raw[day] for day in DAYS_OF_WEEK if day in raw})


def generate_time_options(
    start_hour: int = 6,
    end_hour: int = 22,
    step_minutes: int = SLOT_STEP_MINUTES,
    tz_name: Optional[str] = None,
    on_date: Optional[date] = None
) -> List[Dict[str, str]]:
    """
    Picker options from start_hour:00 through end_hour's last step.

    With a timezone, each option also carries the same wall-clock time in the
    other supported timezone, e.g. "6:00 AM PST" next to a 9:00 AM EST option.
    """
    other_tz = get_other_timezone(tz_name) if tz_name else None
    options = []
    for total in range(start_hour * 60, (end_hour + 1) * 60, step_minutes):
        value = f"{total // 60:02d}:{total % 60:02d}"
        option = {"value": value, "label": format_time_12hr(value)}
        if other_tz:
            converted = convert_time(value, tz_name, other_tz, on_date)
            option["other_timezone_label"] = f"{format_time_12hr(converted)} {timezone_label(other_tz)}"
        options.append(option)
    return options


def get_bookable_slots(
    availability: WeeklyAvailability,
    tutor_timezone: str,
    target_date: date,
    duration_minutes: int,
    busy: Optional[List[Interval]] = None,
    viewer_timezone: Optional[str] = None,
    not_before: Optional[datetime] = None,
    step_minutes: int = SLOT_STEP_MINUTES
) -> List[BookableSlot]:
    """
    Start times on target_date (tutor's calendar day) where a session of
    duration_minutes fits wholly inside one configured range and does not
    overlap a busy interval.
    """
    if duration_minutes <= 0:
        raise AvailabilityError("Duration must be positive")

    day = availability.day(DAYS_OF_WEEK[target_date.weekday()])
    if not day.enabled:
        return []

    tutor_tz = get_timezone(tutor_timezone)
    viewer_tz = get_timezone(viewer_timezone or tutor_timezone)
    busy = busy or []
    slots: List[BookableSlot] = []

    for time_range in day.slots:
        range_start = _minutes(time_range.start)
        range_end = _minutes(time_range.end)
        cursor = range_start
        while cursor + duration_minutes <= range_end:
            local_start = tutor_tz.localize(datetime.combine(target_date, _clock(cursor)))
            start_utc = local_start.astimezone(timezone.utc)
            end_utc = start_utc + timedelta(minutes=duration_minutes)
            cursor += step_minutes

            if not_before and start_utc < not_before:
                continue
            if _overlaps(start_utc, end_utc, busy):
                continue

            viewer_start = start_utc.astimezone(viewer_tz)
            slots.append(BookableSlot(
                start_at=start_utc,
                end_at=end_utc,
                label=format_time_12hr(viewer_start.strftime("%H:%M"))
            ))

    slots.sort(key=lambda slot: slot.start_at)
    return slots


def is_within_availability(
    availability: WeeklyAvailability,
    tutor_timezone: str,
    start_at: datetime,
    duration_minutes: int
) -> bool:
    """Whether [start_at, start_at + duration] sits inside one configured range"""
    local_start = ensure_utc(start_at).astimezone(get_timezone(tutor_timezone))
    local_end = local_start + timedelta(minutes=duration_minutes)
    if local_end.date() != local_start.date():
        return False

    day = availability.day(DAYS_OF_WEEK[local_start.weekday()])
    if not day.enabled:
        return False

    start_minutes = local_start.hour * 60 + local_start.minute
    end_minutes = start_minutes + duration_minutes
    return any(
        _minutes(r.start) <= start_minutes and end_minutes <= _minutes(r.end)
        for r in day.slots
    )


class AvailabilityService:
    """Service for tutor weekly availability and slot checking"""

    async def get_busy_intervals(
        self,
        tutor_id: uuid.UUID,
        window_start: datetime,
        window_end: datetime,
        db: AsyncSession,
        exclude_session_id: Optional[uuid.UUID] = None
    ) -> List[Interval]:
        """Intervals already taken by the tutor's live sessions"""
        query = select(TutoringSession).where(
            and_(
                TutoringSession.tutor_id == tutor_id,
                TutoringSession.status.in_(UPCOMING_STATUSES),
                TutoringSession.scheduled_at < window_end,
                TutoringSession.scheduled_at > window_start - timedelta(minutes=MAX_SESSION_MINUTES)
            )
        )
        if exclude_session_id is not None:
            query = query.where(TutoringSession.id != exclude_session_id)

        result = await db.execute(query)
        intervals = []
        for session in result.scalars().all():
            start = ensure_utc(session.scheduled_at)
            intervals.append((start, start + timedelta(minutes=session.duration_minutes)))
        return intervals

    async def check_slot_availability(
        self,
        tutor_id: uuid.UUID,
        start_at: datetime,
        duration_minutes: int,
        db: AsyncSession,
        exclude_session_id: Optional[uuid.UUID] = None
    ) -> bool:
        """Check that no live session of the tutor overlaps the interval"""
        start_at = ensure_utc(start_at)
        end_at = start_at + timedelta(minutes=duration_minutes)
        busy = await self.get_busy_intervals(tutor_id, start_at, end_at, db, exclude_session_id)
        return not _overlaps(start_at, end_at, busy)

    async def get_tutor_slots(
        self,
        tutor_id: uuid.UUID,
        raw_availability: Optional[Dict[str, Any]],
        tutor_timezone: str,
        start_date: date,
        days: int,
        duration_minutes: int,
        viewer_timezone: Optional[str],
        db: AsyncSession
    ) -> List[BookableSlot]:
        """Bookable slots for each day in [start_date, start_date + days)"""
        availability = normalize_availability(raw_availability)
        tutor_tz = get_timezone(tutor_timezone)

        window_start = tutor_tz.localize(datetime.combine(start_date, time.min)).astimezone(timezone.utc)
        window_end = window_start + timedelta(days=days + 1)
        busy = await self.get_busy_intervals(tutor_id, window_start, window_end, db)
        now = datetime.now(timezone.utc)

        slots: List[BookableSlot] = []
        for day in rrule.rrule(rrule.DAILY, dtstart=datetime.combine(start_date, time.min), count=days):
            slots.extend(get_bookable_slots(
                availability,
                tutor_timezone,
                day.date(),
                duration_minutes,
                busy=busy,
                viewer_timezone=viewer_timezone,
                not_before=now
            ))

        logger.info(f"Computed {len(slots)} slots for tutor {tutor_id} from {start_date} ({days} days)")
        return slots
