from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.exceptions import ValidationError
from ...core.security import AuthorizationError, SessionRole, TokenPayload
from ...api.deps import (
    check_patient_access, check_patient_id_access, get_clinician_session,
    get_current_session, get_doctor_session, get_staff_session, session_doctor
)
from ...services.appointment_service import AppointmentService
from ...services.qr_image import render_qr_png
from ...services.scheduling_service import resolve_doctor
from ...schemas.appointment import (
    AppointmentCreate, AppointmentListResponse, AppointmentResponse, AppointmentUpdate,
    ArchiveResult, ClearAction, ClearRequest, ScanVerifyRequest, ScanVerifyResponse,
    StatusUpdate
)


router = APIRouter(prefix="/appointments", tags=["Appointments"])


def _check_doctor_scope(session: TokenPayload, doctor_reference: str):
    doctor = resolve_doctor(doctor_reference)
    if session.role == SessionRole.DOCTOR.value and session_doctor(session).id != doctor.id:
        raise AuthorizationError("Doctors can only access their own appointments")
    return doctor


def _load_for_session(service: AppointmentService, appointment_id: str, session: TokenPayload):
    """Load an appointment, checking patient ownership before any code backfill is written."""
    appointment = service.get_appointment(appointment_id, backfill_code=False)
    if session.role == SessionRole.PATIENT.value:
        if not appointment.patient:
            raise AuthorizationError("You can only access your own records")
        check_patient_access(session, appointment.patient)
    return service.ensure_code(appointment)


@router.get("", response_model=AppointmentListResponse)
async def list_doctor_appointments(
    doctor: Optional[str] = Query(None, description="Doctor name or id"),
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_clinician_session)
):
    """Scheduled, non-archived appointments for one doctor."""
    if not doctor:
        if session.role != SessionRole.DOCTOR.value:
            raise ValidationError("Doctor name is required")
        doctor = session.doctor_id
    doctor_entry = _check_doctor_scope(session, doctor)

    appointments = AppointmentService(db).doctor_appointments(doctor_entry)
    return AppointmentListResponse(
        documents=[AppointmentResponse.model_validate(a) for a in appointments]
    )


@router.post("", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    appointment_data: AppointmentCreate,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_current_session)
):
    if session.role == SessionRole.DOCTOR.value:
        raise AuthorizationError("Doctors cannot book appointments")
    check_patient_id_access(session, appointment_data.patient_id, db)

    appointment = AppointmentService(db).create_appointment(appointment_data)
    return AppointmentResponse.model_validate(appointment)


@router.get("/code/{code}", response_model=AppointmentResponse)
async def get_appointment_by_code(
    code: str,
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_clinician_session)
):
    appointment = AppointmentService(db).get_by_code(code)
    return AppointmentResponse.model_validate(appointment)


@router.post("/verify", response_model=ScanVerifyResponse)
async def verify_scanned_code(
    scan: ScanVerifyRequest,
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_clinician_session)
):
    """Resolve whatever the QR scanner produced to an appointment."""
    code, appointment = AppointmentService(db).verify_scan(scan.payload)
    return ScanVerifyResponse(
        code=code,
        appointment=AppointmentResponse.model_validate(appointment),
    )


@router.post("/update-status", response_model=AppointmentResponse)
async def update_appointment_status(
    status_data: StatusUpdate,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_clinician_session)
):
    service = AppointmentService(db)
    if session.role == SessionRole.DOCTOR.value:
        current = service.get_appointment(status_data.appointment_id, backfill_code=False)
        _check_doctor_scope(session, current.primary_physician)

    appointment = service.update_status(
        status_data.appointment_id, status_data.status
    )
    return AppointmentResponse.model_validate(appointment)


@router.post("/clear", response_model=ArchiveResult)
async def clear_appointments(
    clear_data: ClearRequest,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_doctor_session)
):
    """Archive a doctor's appointment history or a single appointment."""
    service = AppointmentService(db)

    if clear_data.action == ClearAction.ARCHIVE and clear_data.doctor_name:
        doctor = _check_doctor_scope(session, clear_data.doctor_name)
        result = service.clear_doctor_history(doctor, clear_data.preserve_patient_data)
        return ArchiveResult(
            message="Successfully archived appointments",
            count=result["count"],
            preserved_patient_count=result["preserved_patient_count"],
        )

    if clear_data.action == ClearAction.ARCHIVE_SINGLE and clear_data.appointment_id:
        appointment = service.get_appointment(clear_data.appointment_id)
        _check_doctor_scope(session, appointment.primary_physician)
        service.archive_appointment(appointment.id)
        return ArchiveResult(message="Successfully archived the appointment", count=1)

    raise ValidationError("Invalid request. Missing required parameters.")


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_current_session)
):
    appointment = _load_for_session(AppointmentService(db), appointment_id, session)
    return AppointmentResponse.model_validate(appointment)


@router.get("/{appointment_id}/qr")
async def get_appointment_qr(
    appointment_id: str,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_current_session)
):
    """PNG QR code pointing at the verification page for this appointment."""
    appointment = _load_for_session(AppointmentService(db), appointment_id, session)
    return Response(content=render_qr_png(appointment), media_type="image/png")


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: str,
    update_data: AppointmentUpdate,
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_staff_session)
):
    """Schedule or cancel an appointment; the patient is notified by SMS."""
    appointment = AppointmentService(db).update_appointment(appointment_id, update_data)
    return AppointmentResponse.model_validate(appointment)
