from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.exceptions import ValidationError
from ...core.security import SessionRole, TokenPayload
from ...api.deps import get_doctor_session, session_doctor
from ...services.note_service import NoteService
from ...schemas.note import NoteCreate, NoteResponse

router = APIRouter(prefix="/patients", tags=["Patient Notes"])


@router.get("/{patient_id}/notes", response_model=List[NoteResponse])
async def list_notes(
    patient_id: str,
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_doctor_session)
):
    """Notes on a patient, newest first."""
    notes = NoteService(db).list_notes(patient_id)
    return [NoteResponse.model_validate(note) for note in notes]


@router.post("/{patient_id}/notes", response_model=NoteResponse, status_code=201)
async def create_note(
    patient_id: str,
    note_data: NoteCreate,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_doctor_session)
):
    # Doctors always write as themselves; admins must say on whose behalf
    if session.role == SessionRole.DOCTOR.value:
        doctor_id = session_doctor(session).id
    elif note_data.doctor_id:
        doctor_id = note_data.doctor_id
    else:
        raise ValidationError("Doctor is required")

    note = NoteService(db).create_note(patient_id, doctor_id, note_data.note)
    return NoteResponse.model_validate(note)
