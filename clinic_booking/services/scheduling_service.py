import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from .base import StoreService
from .realtime import AVAILABILITY_UPDATED, RealtimeBroker, get_broker
from ..core.doctors import DOCTORS, Doctor, get_doctor, get_doctor_by_name
from ..core.exceptions import NotFoundError, ValidationError
from ..core.time_utils import clinic_tz, to_clinic_local, to_utc_naive
from ..models.appointment import Appointment, AppointmentStatus
from ..models.doctor_availability import DoctorAvailability
from ..schemas.doctor import Availability

logger = logging.getLogger(__name__)

SLOT_MINUTES = 30


def resolve_doctor(reference: str) -> Doctor:
    """Find a doctor by id (``dr-abundo``) or by name as stored on appointments."""
    doctor = get_doctor(reference) or get_doctor_by_name(reference)
    if not doctor:
        raise NotFoundError("Doctor not found")
    return doctor


def default_availability(doctor: Doctor) -> Availability:
    defaults = doctor.availability
    return Availability(
        days=list(defaults.days),
        start_hour=defaults.start_hour,
        end_hour=defaults.end_hour,
        holidays=list(defaults.holidays),
        max_appointments_per_day=defaults.max_appointments_per_day,
    )


def slot_times(start_hour: int, end_hour: int) -> List[str]:
    """Every half hour from ``start_hour:00`` up to and including ``end_hour:00``."""
    slots = []
    for hour in range(start_hour, end_hour + 1):
        for minute in range(0, 60, SLOT_MINUTES):
            if hour == end_hour and minute > 0:
                break
            slots.append(f"{hour:02d}:{minute:02d}")
    return slots


class SchedulingService(StoreService):
    """Doctor availability and bookable slot enumeration."""

    def __init__(self, db: Session, broker: Optional[RealtimeBroker] = None):
        super().__init__(db)
        self.broker = broker or get_broker()

    def list_doctors(self) -> List[Doctor]:
        return list(DOCTORS)

    def get_availability(self, doctor: Doctor) -> Availability:
        """Default weekly availability overlaid with any saved override."""
        with self._store_call("loading doctor availability"):
            override = self.db.query(DoctorAvailability).filter(
                DoctorAvailability.doctor_id == doctor.id
            ).first()

        if not override:
            return default_availability(doctor)

        return Availability(
            days=override.days,
            start_hour=override.start_hour,
            end_hour=override.end_hour,
            holidays=override.holidays or [],
            booking_start_date=override.booking_start_date,
            booking_end_date=override.booking_end_date,
            max_appointments_per_day=override.max_appointments_per_day,
            blocked_time_slots=override.blocked_time_slots or [],
        )

    def set_availability(self, doctor: Doctor, availability: Availability) -> Availability:
        data = availability.model_dump(mode="json")

        with self._store_call("saving doctor availability"):
            override = self.db.query(DoctorAvailability).filter(
                DoctorAvailability.doctor_id == doctor.id
            ).first()
            if not override:
                override = DoctorAvailability(doctor_id=doctor.id)
                self.db.add(override)

            override.days = data["days"]
            override.start_hour = availability.start_hour
            override.end_hour = availability.end_hour
            override.holidays = data["holidays"]
            override.booking_start_date = availability.booking_start_date
            override.booking_end_date = availability.booking_end_date
            override.max_appointments_per_day = availability.max_appointments_per_day
            override.blocked_time_slots = data["blocked_time_slots"]
            self.db.commit()

        logger.info(f"Availability updated for {doctor.id}")
        self.broker.publish(
            "availability",
            AVAILABILITY_UPDATED,
            {"doctorId": doctor.id, "availability": availability.model_dump(mode="json", by_alias=True)},
        )
        return availability

    def _booked_schedules(self, doctor: Doctor, day: date, exclude_id: Optional[str] = None) -> List[datetime]:
        tz = clinic_tz()
        start = to_utc_naive(datetime.combine(day, time.min, tzinfo=tz))
        end = to_utc_naive(datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz))

        with self._store_call("loading booked slots"):
            query = self.db.query(Appointment.schedule).filter(
                Appointment.primary_physician == doctor.name,
                Appointment.schedule >= start,
                Appointment.schedule < end,
                Appointment.status != AppointmentStatus.CANCELLED,
                Appointment.archived.is_(False),
            )
            if exclude_id:
                query = query.filter(Appointment.id != exclude_id)
            return [row[0] for row in query.all()]

    def _unavailable_reason(self, availability: Availability, day: date) -> Optional[str]:
        if day.isoweekday() not in availability.days:
            return "Doctor is not available on this day"
        if day in availability.holidays:
            return "The clinic is closed on this holiday"
        if availability.booking_start_date and day < availability.booking_start_date:
            return "Date is outside the booking window"
        if availability.booking_end_date and day > availability.booking_end_date:
            return "Date is outside the booking window"
        return None

    def available_slots(self, doctor: Doctor, day: date, exclude_id: Optional[str] = None) -> List[str]:
        """Free ``HH:MM`` slots (clinic time) for a doctor on a date."""
        availability = self.get_availability(doctor)
        if self._unavailable_reason(availability, day):
            return []

        booked = self._booked_schedules(doctor, day, exclude_id)
        if len(booked) >= availability.max_appointments_per_day:
            return []

        taken: Set[str] = {to_clinic_local(schedule).strftime("%H:%M") for schedule in booked}
        blocked = [slot for slot in availability.blocked_time_slots if slot.date == day]

        slots = []
        for slot in slot_times(availability.start_hour, availability.end_hour):
            if slot in taken:
                continue
            if any(b.start_time <= slot < b.end_time for b in blocked):
                continue
            slots.append(slot)
        return slots

    def ensure_bookable(self, doctor: Doctor, schedule: datetime, exclude_id: Optional[str] = None) -> None:
        """Raise ``ValidationError`` unless ``schedule`` (stored naive UTC) is a free slot."""
        local = to_clinic_local(schedule)
        day = local.date()

        availability = self.get_availability(doctor)
        reason = self._unavailable_reason(availability, day)
        if reason:
            raise ValidationError(reason)

        if local.strftime("%H:%M") not in self.available_slots(doctor, day, exclude_id):
            raise ValidationError("Selected time slot is not available")
