"""
Availability models: working hours and personal events.
"""

from __future__ import annotations

from datetime import datetime, time
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from smart_scheduler.core.config import get_settings
from smart_scheduler.models.enums import EventType
from smart_scheduler.utils.datetime_utils import parse_time_of_day


class WorkingHours(BaseModel):
    """
    Scheduling preferences of a user.

    Daily working window, active weekdays (0 = Monday .. 6 = Sunday), holiday
    calendar, long-task splitting and the gap kept around scheduled work.
    """

    start: time
    end: time
    days: frozenset[int] = Field(default_factory=lambda: frozenset({0, 1, 2, 3, 4}))
    holiday_calendar: Optional[str] = Field(
        None, description="Holiday calendar code applied to this user"
    )
    auto_split_long_tasks: bool = Field(
        False, description="Split tasks longer than max_task_minutes before placement"
    )
    max_task_minutes: int = Field(
        180, ge=15, description="Longest single entry when long tasks are split"
    )
    work_buffer_minutes: int = Field(
        0, ge=0, description="Free minutes kept between scheduled work and other occupants"
    )

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: frozenset[int]) -> frozenset[int]:
        for day in value:
            if day < 0 or day > 6:
                raise ValueError(f"weekday out of range: {day}")
        return value

    @model_validator(mode="after")
    def validate_window(self):
        if self.end <= self.start:
            raise ValueError("end of working day must be after its start")
        return self

    def is_active_day(self, weekday: int) -> bool:
        return weekday in self.days


def default_working_hours() -> WorkingHours:
    """Working hours for users without stored preferences."""
    settings = get_settings()
    calendar = settings.DEFAULT_HOLIDAY_CALENDAR or None
    return WorkingHours(
        start=parse_time_of_day(settings.DEFAULT_WORK_START) or time(9, 0),
        end=parse_time_of_day(settings.DEFAULT_WORK_END) or time(17, 0),
        days=frozenset(settings.DEFAULT_WORK_DAYS),
        holiday_calendar=calendar,
        auto_split_long_tasks=settings.DEFAULT_AUTO_SPLIT_LONG_TASKS,
        max_task_minutes=settings.DEFAULT_MAX_TASK_MINUTES,
        work_buffer_minutes=settings.DEFAULT_WORK_BUFFER_MINUTES,
    )


class PersonalEvent(BaseModel):
    """A fixed, non-movable occupant of the calendar."""

    id: UUID
    user_id: str
    title: str = ""
    start: datetime
    end: datetime
    event_type: EventType = EventType.PERSONAL

    @model_validator(mode="after")
    def validate_span(self):
        if self.end <= self.start:
            raise ValueError("event end must be after its start")
        return self
