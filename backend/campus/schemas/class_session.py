from datetime import time

from pydantic import BaseModel, Field, field_validator

from campus.core.exceptions import InvalidArgsError
from campus.services.timeslot import DayOfWeek


def _parse_day(value):
    if value is None:
        return None
    try:
        return DayOfWeek.parse(value)
    except InvalidArgsError as exc:
        raise ValueError(exc.message) from exc


class ClassSessionCreate(BaseModel):
    course_id: str = Field(min_length=1, max_length=32)
    lecturer_id: str = Field(min_length=1, max_length=32)
    day: DayOfWeek
    start_time: time
    end_time: time
    location: str = Field(min_length=1, max_length=200)
    max_capacity: int = Field(ge=1, le=500)

    @field_validator("day", mode="before")
    @classmethod
    def normalize_day(cls, value):
        return _parse_day(value)


class ClassSessionUpdate(BaseModel):
    day: DayOfWeek | None = None
    start_time: time | None = None
    end_time: time | None = None
    location: str | None = Field(default=None, min_length=1, max_length=200)
    max_capacity: int | None = Field(default=None, ge=1, le=500)

    @field_validator("day", mode="before")
    @classmethod
    def normalize_day(cls, value):
        return _parse_day(value)


class ClassSessionOut(BaseModel):
    id: str
    course_id: str
    course_name: str
    lecturer_id: str
    lecturer_name: str
    day: DayOfWeek
    start_time: time
    end_time: time
    location: str
    max_capacity: int
    enrolled_count: int
    available_seats: int
    is_full: bool
    student_ids: list[str]

    model_config = {"from_attributes": True}
