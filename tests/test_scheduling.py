from datetime import date

import pytest

from clinic_booking.core.doctors import get_doctor
from clinic_booking.core.exceptions import NotFoundError, ValidationError
from clinic_booking.schemas.appointment import AppointmentCreate
from clinic_booking.schemas.doctor import Availability
from clinic_booking.services.appointment_service import AppointmentService
from clinic_booking.services.scheduling_service import (
    SchedulingService, resolve_doctor, slot_times
)

from .conftest import BOOKING_DAY, booking_time

DR_ABUNDO = get_doctor("dr-abundo")


def availability(**overrides) -> Availability:
    data = {"days": [1, 2, 3, 4, 5], "start_hour": 8, "end_hour": 10}
    data.update(overrides)
    return Availability(**data)


class TestSlotTimes:
    def test_half_hours_up_to_end_hour(self):
        assert slot_times(8, 10) == ["08:00", "08:30", "09:00", "09:30", "10:00"]


class TestAvailableSlots:
    """Tests for bookable slot enumeration."""

    def test_default_availability(self, db):
        slots = SchedulingService(db).available_slots(DR_ABUNDO, BOOKING_DAY)
        assert slots[0] == "08:00"
        assert slots[-1] == "17:00"
        assert len(slots) == 19

    def test_weekend_has_no_slots(self, db):
        assert SchedulingService(db).available_slots(DR_ABUNDO, date(2030, 1, 6)) == []

    def test_default_holiday_has_no_slots(self, db):
        # Labor Day 2025 is a Thursday
        assert SchedulingService(db).available_slots(DR_ABUNDO, date(2025, 5, 1)) == []

    def test_override_replaces_defaults(self, db):
        service = SchedulingService(db)
        service.set_availability(DR_ABUNDO, availability(days=[6]))

        assert service.available_slots(DR_ABUNDO, BOOKING_DAY) == []
        assert service.available_slots(DR_ABUNDO, date(2030, 1, 5)) == [
            "08:00", "08:30", "09:00", "09:30", "10:00"
        ]

    def test_custom_holiday(self, db):
        service = SchedulingService(db)
        service.set_availability(DR_ABUNDO, availability(holidays=[BOOKING_DAY]))
        assert service.available_slots(DR_ABUNDO, BOOKING_DAY) == []

    def test_booking_window(self, db):
        service = SchedulingService(db)
        service.set_availability(DR_ABUNDO, availability(
            booking_start_date=date(2030, 1, 8),
            booking_end_date=date(2030, 1, 31),
        ))
        assert service.available_slots(DR_ABUNDO, BOOKING_DAY) == []
        assert service.available_slots(DR_ABUNDO, date(2030, 1, 8)) != []
        assert service.available_slots(DR_ABUNDO, date(2030, 2, 4)) == []

    def test_blocked_slots_are_removed(self, db):
        service = SchedulingService(db)
        service.set_availability(DR_ABUNDO, availability(blocked_time_slots=[{
            "date": BOOKING_DAY, "startTime": "08:30", "endTime": "09:30", "reason": "Meeting"
        }]))
        assert service.available_slots(DR_ABUNDO, BOOKING_DAY) == ["08:00", "09:30", "10:00"]

    def test_booked_slots_are_removed(self, db, patient):
        SchedulingService(db).set_availability(DR_ABUNDO, availability())
        AppointmentService(db).create_appointment(AppointmentCreate(
            patient_id=patient.id,
            primary_physician=DR_ABUNDO.name,
            schedule=booking_time(9),
            reason="Checkup",
        ))
        slots = SchedulingService(db).available_slots(DR_ABUNDO, BOOKING_DAY)
        assert "09:00" not in slots
        assert len(slots) == 4

    def test_daily_maximum(self, db, patient):
        SchedulingService(db).set_availability(DR_ABUNDO, availability(max_appointments_per_day=1))
        AppointmentService(db).create_appointment(AppointmentCreate(
            patient_id=patient.id,
            primary_physician=DR_ABUNDO.name,
            schedule=booking_time(9),
            reason="Checkup",
        ))
        assert SchedulingService(db).available_slots(DR_ABUNDO, BOOKING_DAY) == []
        with pytest.raises(ValidationError):
            SchedulingService(db).ensure_bookable(DR_ABUNDO, booking_time(10))

    def test_ensure_bookable_reports_reason(self, db):
        with pytest.raises(ValidationError, match="not available on this day"):
            SchedulingService(db).ensure_bookable(DR_ABUNDO, booking_time(9, day=date(2030, 1, 6)))


class TestAvailabilitySchema:
    def test_days_are_iso_weekdays(self):
        with pytest.raises(ValueError):
            availability(days=[0, 1])

    def test_hours_must_be_ordered(self):
        with pytest.raises(ValueError):
            availability(start_hour=10, end_hour=8)


class TestResolveDoctor:
    def test_by_id_and_name(self):
        assert resolve_doctor("dr-decastro").name == "Genevieve S. De Castro"
        assert resolve_doctor("Genevieve S. De Castro").id == "dr-decastro"

    def test_unknown(self):
        with pytest.raises(NotFoundError):
            resolve_doctor("dr-who")


class TestDoctorEndpoints:
    """Tests for the public doctor endpoints."""

    def test_list_doctors(self, client):
        response = client.get("/api/doctors")
        assert response.status_code == 200
        assert [d["id"] for d in response.json()] == ["dr-abundo", "dr-decastro"]

    def test_slots(self, client):
        response = client.get("/api/doctors/dr-abundo/slots", params={"date": "2030-01-07"})
        assert response.status_code == 200
        assert response.json()["slots"][0] == "08:00"

    def test_unknown_doctor(self, client):
        assert client.get("/api/doctors/dr-who/availability").status_code == 404

    def test_admin_sets_availability(self, client, admin_headers, staff_headers):
        body = {"days": [1, 3], "startHour": 9, "endHour": 12, "maxAppointmentsPerDay": 5}

        assert client.put(
            "/api/doctors/dr-decastro/availability", json=body, headers=staff_headers
        ).status_code == 403

        response = client.put("/api/doctors/dr-decastro/availability", json=body, headers=admin_headers)
        assert response.status_code == 200

        response = client.get("/api/doctors/dr-decastro/availability")
        saved = response.json()["availability"]
        assert saved["days"] == [1, 3]
        assert saved["startHour"] == 9
        assert saved["maxAppointmentsPerDay"] == 5
