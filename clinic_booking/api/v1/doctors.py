from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.security import TokenPayload
from ...api.deps import get_admin_session
from ...services.scheduling_service import SchedulingService, resolve_doctor
from ...schemas.doctor import (
    Availability, DoctorAvailabilityResponse, DoctorResponse, SlotsResponse
)

router = APIRouter(prefix="/doctors", tags=["Doctors"])


@router.get("", response_model=List[DoctorResponse])
async def list_doctors(db: Session = Depends(get_db)):
    doctors = SchedulingService(db).list_doctors()
    return [DoctorResponse.model_validate(doctor) for doctor in doctors]


@router.get("/{doctor_id}/availability", response_model=DoctorAvailabilityResponse)
async def get_availability(
    doctor_id: str,
    db: Session = Depends(get_db)
):
    doctor = resolve_doctor(doctor_id)
    availability = SchedulingService(db).get_availability(doctor)
    return DoctorAvailabilityResponse(doctor_id=doctor.id, availability=availability)


@router.put("/{doctor_id}/availability", response_model=DoctorAvailabilityResponse)
async def set_availability(
    doctor_id: str,
    availability: Availability,
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_admin_session)
):
    doctor = resolve_doctor(doctor_id)
    saved = SchedulingService(db).set_availability(doctor, availability)
    return DoctorAvailabilityResponse(doctor_id=doctor.id, availability=saved)


@router.get("/{doctor_id}/slots", response_model=SlotsResponse)
async def get_available_slots(
    doctor_id: str,
    day: date = Query(..., alias="date"),
    db: Session = Depends(get_db)
):
    """Free half-hour slots for a doctor on a date (clinic time)."""
    doctor = resolve_doctor(doctor_id)
    slots = SchedulingService(db).available_slots(doctor, day)
    return SlotsResponse(doctor_id=doctor.id, date=day, slots=slots)
