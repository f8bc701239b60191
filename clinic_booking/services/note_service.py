import logging
from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from .base import StoreService
from ..core.exceptions import NotFoundError, ValidationError
from ..models.patient import Patient
from ..models.patient_note import PatientNote

logger = logging.getLogger(__name__)


class NoteService(StoreService):
    """Append-only clinical notes written by doctors."""

    def __init__(self, db: Session):
        super().__init__(db)

    def _ensure_patient(self, patient_id: str):
        with self._store_call("loading patient"):
            exists = self.db.query(Patient.id).filter(Patient.id == patient_id).first()
        if not exists:
            raise NotFoundError("Patient not found")

    def create_note(self, patient_id: str, doctor_id: str, note: str) -> PatientNote:
        note = (note or "").strip()
        if not note:
            raise ValidationError("Note must not be empty")
        if not doctor_id:
            raise ValidationError("Doctor is required")
        self._ensure_patient(patient_id)

        record = PatientNote(
            patient_id=patient_id,
            doctor_id=doctor_id,
            note=note,
            created_at=datetime.utcnow(),
        )
        with self._store_call("saving note"):
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)

        logger.info(f"Note {record.id} added for patient {patient_id} by {doctor_id}")
        return record

    def list_notes(self, patient_id: str) -> List[PatientNote]:
        self._ensure_patient(patient_id)
        with self._store_call("listing notes"):
            return (
                self.db.query(PatientNote)
                .filter(PatientNote.patient_id == patient_id)
                .order_by(PatientNote.created_at.desc(), PatientNote.id.desc())
                .all()
            )
