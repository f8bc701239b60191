from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.exceptions import ValidationError
from ...core.security import AuthorizationError, SessionRole, TokenPayload
from ...api.deps import (
    check_patient_access, get_admin_session, get_current_session,
    get_doctor_session, get_staff_session, session_doctor
)
from ...services.appointment_service import AppointmentService
from ...services.patient_service import PatientService
from ...services.scheduling_service import resolve_doctor
from ...schemas.appointment import (
    AppointmentListResponse, AppointmentResponse, ArchiveResult, DoctorPatientsResponse
)
from ...schemas.patient import (
    DocumentInfo, PatientCategory, PatientDeleteResponse, PatientListResponse,
    PatientMedicalUpdate, PatientPersonalUpdate, PatientRegister, PatientResponse
)


router = APIRouter(prefix="/patients", tags=["Patients"])


def _load_patient(patient_id: str, session: TokenPayload, db: Session, allow_doctor: bool = False):
    patient = PatientService(db).get_patient(patient_id)
    check_patient_access(session, patient, allow_doctor=allow_doctor)
    return patient


@router.post("", response_model=PatientResponse, status_code=201)
async def register_patient(
    patient_data: PatientRegister,
    db: Session = Depends(get_db)
):
    """Self-registration for students and employees."""
    patient = PatientService(db).register_patient(patient_data)
    return PatientResponse.model_validate(patient)


@router.get("", response_model=PatientListResponse)
async def list_patients(
    search: Optional[str] = None,
    category: Optional[PatientCategory] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_staff_session)
):
    result = PatientService(db).list_patients(
        search=search,
        category=category.value if category else None,
        skip=skip,
        limit=limit,
    )
    return PatientListResponse(
        patients=[PatientResponse.model_validate(p) for p in result["patients"]],
        total_count=result["total_count"],
    )


@router.get("/doctor", response_model=DoctorPatientsResponse)
async def list_doctor_patients(
    name: Optional[str] = None,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_doctor_session)
):
    """Unique patients a doctor has seen, with their latest appointment."""
    if session.role == SessionRole.DOCTOR.value:
        doctor = session_doctor(session)
        if name and resolve_doctor(name).id != doctor.id:
            raise AuthorizationError("Doctors can only list their own patients")
    else:
        if not name:
            raise ValidationError("Doctor name is required")
        doctor = resolve_doctor(name)

    patients = AppointmentService(db).doctor_patients(doctor)
    return DoctorPatientsResponse(patients=patients, count=len(patients))


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: str,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_current_session)
):
    patient = _load_patient(patient_id, session, db, allow_doctor=True)
    return PatientResponse.model_validate(patient)


@router.delete("/{patient_id}", response_model=PatientDeleteResponse)
async def delete_patient(
    patient_id: str,
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_admin_session)
):
    """Delete a patient; their appointments are archived, not removed."""
    result = PatientService(db).delete_patient(patient_id)
    return PatientDeleteResponse(
        message="Patient deleted successfully",
        appointments_updated=result["appointments_updated"],
        notes_deleted=result["notes_deleted"],
    )


@router.put("/{patient_id}/personal", response_model=PatientResponse)
async def update_personal_info(
    patient_id: str,
    personal_data: PatientPersonalUpdate,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_current_session)
):
    _load_patient(patient_id, session, db)
    patient = PatientService(db).update_personal_info(patient_id, personal_data)
    return PatientResponse.model_validate(patient)


@router.put("/{patient_id}/medical", response_model=PatientResponse)
async def update_medical_info(
    patient_id: str,
    medical_data: PatientMedicalUpdate,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_current_session)
):
    _load_patient(patient_id, session, db)
    patient = PatientService(db).update_medical_info(patient_id, medical_data)
    return PatientResponse.model_validate(patient)


@router.get("/{patient_id}/appointments", response_model=AppointmentListResponse)
async def list_patient_appointments(
    patient_id: str,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_current_session)
):
    _load_patient(patient_id, session, db)
    appointments = AppointmentService(db).patient_appointments(patient_id)
    return AppointmentListResponse(
        documents=[AppointmentResponse.model_validate(a) for a in appointments]
    )


@router.post("/{patient_id}/appointments/clear", response_model=ArchiveResult)
async def clear_patient_appointments(
    patient_id: str,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_current_session)
):
    """Hide past appointments from the patient dashboard."""
    _load_patient(patient_id, session, db)
    count = AppointmentService(db).clear_patient_history(patient_id)
    return ArchiveResult(message="Appointment history cleared", count=count)


@router.post("/{patient_id}/documents", response_model=DocumentInfo, status_code=201)
async def upload_document(
    patient_id: str,
    file: UploadFile = File(...),
    kind: str = Form("identification"),
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_current_session)
):
    _load_patient(patient_id, session, db)
    document = PatientService(db).add_document(
        patient_id,
        file.file,
        file.filename,
        content_type=file.content_type,
        kind=kind,
    )
    return DocumentInfo.model_validate(document)
