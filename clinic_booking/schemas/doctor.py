from datetime import date
from typing import List, Optional
from pydantic import Field, field_validator, model_validator

from .common import CamelModel

TIME_PATTERN = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"


class BlockedTimeSlot(CamelModel):
    date: date
    start_time: str = Field(..., pattern=TIME_PATTERN)
    end_time: str = Field(..., pattern=TIME_PATTERN)
    reason: str = ""

    @model_validator(mode="after")
    def ordered(self):
        if self.end_time <= self.start_time:
            raise ValueError("Blocked slot must end after it starts")
        return self


class Availability(CamelModel):
    days: List[int] = Field(..., min_length=1)
    start_hour: int = Field(..., ge=0, le=23)
    end_hour: int = Field(..., ge=0, le=23)
    holidays: List[date] = Field(default_factory=list)
    booking_start_date: Optional[date] = None
    booking_end_date: Optional[date] = None
    max_appointments_per_day: int = Field(10, ge=1, le=200)
    blocked_time_slots: List[BlockedTimeSlot] = Field(default_factory=list)

    @field_validator("days")
    @classmethod
    def iso_weekdays(cls, value: List[int]) -> List[int]:
        if any(day < 1 or day > 7 for day in value):
            raise ValueError("Days must be ISO weekdays (1 = Monday ... 7 = Sunday)")
        return sorted(set(value))

    @model_validator(mode="after")
    def hours_ordered(self):
        if self.end_hour <= self.start_hour:
            raise ValueError("End hour must be after start hour")
        if (
            self.booking_start_date
            and self.booking_end_date
            and self.booking_end_date < self.booking_start_date
        ):
            raise ValueError("Booking window ends before it starts")
        return self


class DoctorResponse(CamelModel):
    id: str
    name: str
    display_name: str
    image: str
    category: str


class DoctorAvailabilityResponse(CamelModel):
    doctor_id: str
    availability: Availability


class SlotsResponse(CamelModel):
    doctor_id: str
    date: date
    slots: List[str]
