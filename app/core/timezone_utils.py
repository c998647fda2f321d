from datetime import date, datetime, time, timezone
from typing import Dict, Optional
import pytz


SUPPORTED_TIMEZONES: Dict[str, str] = {
    "America/Los_Angeles": "PST",
    "America/New_York": "EST",
}

DEFAULT_TIMEZONE = "America/New_York"


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and normalise aware ones"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_timezone(tz_name: Optional[str]) -> pytz.BaseTzInfo:
    try:
        return pytz.timezone(tz_name or DEFAULT_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        raise ValueError(f"Unknown timezone: {tz_name}")


def timezone_label(tz_name: str) -> str:
    return SUPPORTED_TIMEZONES.get(tz_name, tz_name)


def get_other_timezone(tz_name: str) -> str:
    """The other side of the PST/EST pair the product supports"""
    if tz_name == "America/Los_Angeles":
        return "America/New_York"
    return "America/Los_Angeles"


def parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def local_to_utc(day: date, clock: time, tz_name: str) -> datetime:
    tz = get_timezone(tz_name)
    local = tz.localize(datetime.combine(day, clock))
    return local.astimezone(timezone.utc)


def convert_time(time_str: str, from_tz: str, to_tz: str, on_date: Optional[date] = None) -> str:
    """Convert a wall-clock HH:MM between timezones on a given date (DST aware)"""
    on_date = on_date or datetime.now(timezone.utc).date()
    instant = local_to_utc(on_date, parse_hhmm(time_str), from_tz)
    converted = instant.astimezone(get_timezone(to_tz))
    return converted.strftime("%H:%M")


def format_time_12hr(time_str: str) -> str:
    """'14:30' -> '2:30 PM'"""
    clock = parse_hhmm(time_str)
    period = "PM" if clock.hour >= 12 else "AM"
    hour12 = clock.hour % 12 or 12
    return f"{hour12}:{clock.minute:02d} {period}"


def format_datetime_for_timezone(value: datetime, tz_name: str) -> str:
    local = ensure_utc(value).astimezone(get_timezone(tz_name))
    hour12 = local.hour % 12 or 12
    period = "PM" if local.hour >= 12 else "AM"
    return f"{local.strftime('%a, %b')} {local.day} at {hour12}:{local.minute:02d} {period} {timezone_label(tz_name)}"
