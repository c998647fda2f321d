from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime
import re

DAYS_OF_WEEK = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class TimeRange(BaseModel):
    start: str = Field(..., description="Start time, 24h HH:MM")
    end: str = Field(..., description="End time, 24h HH:MM")

    @field_validator("start", "end")
    @classmethod
    def validate_hhmm(cls, value: str) -> str:
        if not _HHMM.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_order(self):
        if self.start >= self.end:
            raise ValueError("Start time must be before end time")
        return self


class DayAvailability(BaseModel):
    enabled: bool = Field(False, description="Whether the tutor works this day")
    slots: List[TimeRange] = Field(default_factory=list, description="Working ranges for the day")


class WeeklyAvailability(BaseModel):
    """Weekly schedule; days left out are treated as disabled"""
    monday: DayAvailability = Field(default_factory=DayAvailability)
    tuesday: DayAvailability = Field(default_factory=DayAvailability)
    wednesday: DayAvailability = Field(default_factory=DayAvailability)
    thursday: DayAvailability = Field(default_factory=DayAvailability)
    friday: DayAvailability = Field(default_factory=DayAvailability)
    saturday: DayAvailability = Field(default_factory=DayAvailability)
    sunday: DayAvailability = Field(default_factory=DayAvailability)

    def day(self, name: str) -> DayAvailability:
        return getattr(self, name)


class BookableSlot(BaseModel):
    start_at: datetime = Field(..., description="Slot start (UTC)")
    end_at: datetime = Field(..., description="Slot end (UTC)")
    label: str = Field(..., description="Start time in the viewer's timezone, 12-hour clock")


class BookableSlotsResponse(BaseModel):
    tutor_id: str = Field(..., description="Tutor ID")
    start_date: str = Field(..., description="First day in YYYY-MM-DD format (tutor's timezone)")
    days: int = Field(..., description="Number of days covered")
    timezone: str = Field(..., description="Timezone used for labels")
    duration_minutes: int = Field(..., description="Requested session length")
    available_slots: List[BookableSlot] = Field(..., description="Bookable start times")


class TimeOption(BaseModel):
    value: str = Field(..., description="24h HH:MM")
    label: str = Field(..., description="12-hour label")
    other_timezone_label: Optional[str] = Field(None, description="Same time in the other supported timezone")
