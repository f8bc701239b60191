import logging
from typing import BinaryIO, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import storage_service
from .base import StoreService
from ..core.exceptions import NotFoundError, ValidationError
from ..models.appointment import Appointment
from ..models.patient import Patient
from ..models.patient_document import PatientDocument
from ..models.patient_note import PatientNote
from ..schemas.patient import PatientMedicalUpdate, PatientPersonalUpdate, PatientRegister

logger = logging.getLogger(__name__)

REMOVED_NOTE = "[Patient data removed]"
DOCUMENT_KINDS = ("identification", "avatar")


class PatientService(StoreService):
    def __init__(self, db: Session):
        super().__init__(db)

    def _ensure_unique_identification(self, id_number: str, exclude_id: Optional[str] = None):
        query = self.db.query(Patient).filter(Patient.identification_number == id_number)
        if exclude_id:
            query = query.filter(Patient.id != exclude_id)
        with self._store_call("checking identification number"):
            exists = query.first()
        if exists:
            raise ValidationError("A patient with this identification number already exists")

    def register_patient(self, data: PatientRegister) -> Patient:
        """Create a patient record from a validated registration form."""
        id_number = data.identification_number.strip()
        self._ensure_unique_identification(id_number)

        patient = Patient(
            name=data.name.strip(),
            email=data.email,
            phone=data.phone,
            birth_date=data.birth_date,
            gender=data.gender.value,
            address=data.address,
            category=data.category.value,
            emergency_contact_name=data.emergency_contact_name,
            emergency_contact_number=data.emergency_contact_number,
            identification_type=data.identification_type,
            identification_number=id_number,
            signs_symptoms=data.signs_symptoms,
            allergies=data.allergies,
            current_medication=data.current_medication,
            family_medical_history=data.family_medical_history,
            past_medical_history=data.past_medical_history,
            privacy_consent=data.privacy_consent,
        )

        with self._store_call("registering patient"):
            self.db.add(patient)
            self.db.commit()
            self.db.refresh(patient)

        logger.info(f"Patient {patient.id} registered ({patient.category})")
        return patient

    def get_patient(self, patient_id: str) -> Patient:
        with self._store_call("loading patient"):
            patient = self.db.query(Patient).filter(Patient.id == patient_id).first()
        if not patient:
            raise NotFoundError("Patient not found")
        return patient

    def get_by_identification_number(self, id_number: str) -> Optional[Patient]:
        with self._store_call("loading patient by identification number"):
            return self.db.query(Patient).filter(
                Patient.identification_number == (id_number or "").strip()
            ).first()

    def list_patients(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Dict[str, object]:
        query = self.db.query(Patient)
        if category:
            query = query.filter(Patient.category == category)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Patient.name.ilike(pattern),
                Patient.email.ilike(pattern),
                Patient.identification_number.ilike(pattern),
            ))

        with self._store_call("listing patients"):
            total = query.count()
            patients = query.order_by(Patient.created_at.desc(), Patient.name).offset(skip).limit(limit).all()
        return {"patients": patients, "total_count": total}

    def update_personal_info(self, patient_id: str, data: PatientPersonalUpdate) -> Patient:
        patient = self.get_patient(patient_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("identification_number"):
            changes["identification_number"] = changes["identification_number"].strip()
            self._ensure_unique_identification(changes["identification_number"], exclude_id=patient.id)
        if changes.get("gender") is not None:
            changes["gender"] = changes["gender"].value

        for field, value in changes.items():
            setattr(patient, field, value)

        with self._store_call("updating patient"):
            self.db.commit()
            self.db.refresh(patient)
        logger.info(f"Personal info updated for patient {patient.id}: {sorted(changes)}")
        return patient

    def update_medical_info(self, patient_id: str, data: PatientMedicalUpdate) -> Patient:
        """Only fields present in the request are written."""
        patient = self.get_patient(patient_id)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(patient, field, value)

        with self._store_call("updating medical info"):
            self.db.commit()
            self.db.refresh(patient)
        logger.info(f"Medical info updated for patient {patient.id}: {sorted(changes)}")
        return patient

    def add_document(
        self,
        patient_id: str,
        fileobj: BinaryIO,
        filename: str,
        content_type: Optional[str] = None,
        kind: str = "identification",
    ) -> PatientDocument:
        if kind not in DOCUMENT_KINDS:
            raise ValidationError("Document kind must be identification or avatar")
        if not filename:
            raise ValidationError("A file is required")
        patient = self.get_patient(patient_id)

        stored = storage_service.save_file(fileobj, filename)
        document = PatientDocument(
            patient_id=patient.id,
            kind=kind,
            filename=filename,
            content_type=content_type,
            storage_type=stored.storage_type,
            local_path=stored.local_path,
            s3_bucket=stored.s3_bucket,
            s3_key=stored.s3_key,
        )

        with self._store_call("saving patient document"):
            self.db.add(document)
            self.db.commit()
            self.db.refresh(document)

        logger.info(f"Stored {kind} document {document.id} for patient {patient.id}")
        return document

    def get_document(self, document_id: str) -> PatientDocument:
        with self._store_call("loading document"):
            document = self.db.query(PatientDocument).filter(PatientDocument.id == document_id).first()
        if not document:
            raise NotFoundError("Document not found")
        return document

    def delete_patient(self, patient_id: str) -> Dict[str, int]:
        """Remove a patient while keeping their appointments for clinic records.

        Appointments are archived, annotated and detached; notes, documents and
        stored files go with the patient.
        """
        patient = self.get_patient(patient_id)

        with self._store_call("deleting patient"):
            appointments = self.db.query(Appointment).filter(
                Appointment.patient_id == patient.id
            ).all()
            for appointment in appointments:
                appointment.archived = True
                appointment.note = f"{appointment.note}\n{REMOVED_NOTE}" if appointment.note else REMOVED_NOTE
                appointment.patient_id = None

            notes_deleted = self.db.query(PatientNote).filter(
                PatientNote.patient_id == patient.id
            ).count()
            documents = list(patient.documents)

            self.db.delete(patient)
            self.db.commit()

        for document in documents:
            storage_service.delete_file(document)

        logger.info(
            f"Patient {patient_id} deleted: {len(appointments)} appointments archived, "
            f"{notes_deleted} notes removed"
        )
        return {"appointments_updated": len(appointments), "notes_deleted": notes_deleted}
