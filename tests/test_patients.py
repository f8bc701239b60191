import pytest

from clinic_booking.core.exceptions import ValidationError
from clinic_booking.core.security import SessionRole
from clinic_booking.models.appointment import Appointment
from clinic_booking.models.patient_note import PatientNote
from clinic_booking.schemas.appointment import AppointmentCreate
from clinic_booking.schemas.patient import PatientMedicalUpdate, PatientRegister
from clinic_booking.services.appointment_service import AppointmentService
from clinic_booking.services.note_service import NoteService
from clinic_booking.services.patient_service import REMOVED_NOTE, PatientService

from .conftest import auth_headers, booking_time, patient_payload


class TestPatientRegistration:
    """Tests for patient self-registration."""

    def test_register(self, client):
        response = client.post("/api/patients", json=patient_payload())
        assert response.status_code == 201
        data = response.json()
        assert data["identificationNumber"] == "2023-0456"
        assert data["birthDate"] == "2001-05-14"
        assert data["privacyConsent"] is True
        assert data["identificationDocuments"] == []

    def test_duplicate_identification_number(self, client):
        assert client.post("/api/patients", json=patient_payload()).status_code == 201
        response = client.post("/api/patients", json=patient_payload(email="other@uep.edu.ph"))
        assert response.status_code == 400

    def test_duplicate_in_service(self, db, patient):
        with pytest.raises(ValidationError):
            PatientService(db).register_patient(PatientRegister.model_validate(patient_payload()))

    @pytest.mark.parametrize("field,value", [
        ("privacyConsent", False),
        ("treatmentConsent", False),
        ("gender", "Prefer not to say"),
        ("emergencyContactNumber", "09181234567"),
        ("phone", "12345"),
        ("identificationNumber", "12345678901"),
        ("name", "J"),
        ("email", "not-an-email"),
        ("category", "Visitor"),
    ])
    def test_invalid_registration(self, client, field, value):
        response = client.post("/api/patients", json=patient_payload(**{field: value}))
        assert response.status_code == 422

    def test_missing_consent_message(self):
        data = patient_payload()
        del data["disclosureConsent"]
        with pytest.raises(ValueError, match="You must consent to disclosure in order to proceed"):
            PatientRegister.model_validate(data)


class TestPatientAccess:
    """Tests for patient record endpoints."""

    def test_owner_can_read(self, client, patient):
        headers = auth_headers(SessionRole.PATIENT, patient.id)
        response = client.get(f"/api/patients/{patient.id}", headers=headers)
        assert response.status_code == 200
        assert response.json()["name"] == patient.name

    def test_session_by_identification_number(self, client, patient):
        headers = auth_headers(SessionRole.PATIENT, patient.identification_number)
        assert client.get(f"/api/patients/{patient.id}", headers=headers).status_code == 200

    def test_other_patient_is_forbidden(self, client, patient):
        headers = auth_headers(SessionRole.PATIENT, "someone-else")
        assert client.get(f"/api/patients/{patient.id}", headers=headers).status_code == 403

    def test_missing_patient(self, client, staff_headers):
        assert client.get("/api/patients/nope", headers=staff_headers).status_code == 404

    def test_list_and_search(self, client, staff_headers, make_patient):
        make_patient()
        make_patient(identificationNumber="EMP-0123", name="Rosa Santos", email="rosa@uep.edu.ph",
                     category="Employee")

        response = client.get("/api/patients", headers=staff_headers)
        assert response.json()["totalCount"] == 2

        response = client.get("/api/patients", params={"search": "rosa"}, headers=staff_headers)
        assert [p["name"] for p in response.json()["patients"]] == ["Rosa Santos"]

        response = client.get("/api/patients", params={"category": "Student"}, headers=staff_headers)
        assert response.json()["totalCount"] == 1

    def test_list_requires_staff(self, client, patient):
        headers = auth_headers(SessionRole.PATIENT, patient.id)
        assert client.get("/api/patients", headers=headers).status_code == 403

    def test_update_personal_info(self, client, patient):
        headers = auth_headers(SessionRole.PATIENT, patient.id)
        response = client.put(
            f"/api/patients/{patient.id}/personal",
            json={"address": "45 Mabini Avenue, Catarman"},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["address"] == "45 Mabini Avenue, Catarman"
        assert response.json()["name"] == patient.name

    def test_update_medical_info_is_partial(self, db, patient):
        service = PatientService(db)
        service.update_medical_info(patient.id, PatientMedicalUpdate(blood_type="O+", allergies="Penicillin"))
        updated = service.update_medical_info(patient.id, PatientMedicalUpdate(smoker=False))

        assert updated.blood_type == "O+"
        assert updated.allergies == "Penicillin"
        assert updated.smoker is False

    def test_personal_update_cannot_take_existing_id_number(self, client, staff_headers, make_patient):
        first = make_patient()
        make_patient(identificationNumber="EMP-0123", email="rosa@uep.edu.ph")
        response = client.put(
            f"/api/patients/{first.id}/personal",
            json={"identificationNumber": "EMP-0123"},
            headers=staff_headers
        )
        assert response.status_code == 400


class TestSafeDelete:
    """Tests for deleting patients while keeping appointments."""

    def test_delete_archives_appointments(self, db, patient):
        appointment = AppointmentService(db).create_appointment(AppointmentCreate(
            patient_id=patient.id,
            primary_physician="Abegail M. Abundo",
            schedule=booking_time(9),
            reason="Fever",
            note="Bring records",
        ))
        NoteService(db).create_note(patient.id, "dr-abundo", "Prescribed rest")
        appointment_id = appointment.id
        patient_id = patient.id

        result = PatientService(db).delete_patient(patient_id)
        assert result == {"appointments_updated": 1, "notes_deleted": 1}

        db.expire_all()
        kept = db.query(Appointment).filter(Appointment.id == appointment_id).one()
        assert kept.archived is True
        assert kept.patient_id is None
        assert kept.note == f"Bring records\n{REMOVED_NOTE}"
        assert db.query(PatientNote).count() == 0

    def test_delete_endpoint_is_admin_only(self, client, staff_headers, admin_headers, patient):
        assert client.delete(f"/api/patients/{patient.id}", headers=staff_headers).status_code == 403

        response = client.delete(f"/api/patients/{patient.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["appointmentsUpdated"] == 0

        assert client.get(f"/api/patients/{patient.id}", headers=admin_headers).status_code == 404


class TestDocuments:
    """Tests for identification document uploads."""

    def test_upload_and_fetch(self, client, patient):
        headers = auth_headers(SessionRole.PATIENT, patient.id)
        response = client.post(
            f"/api/patients/{patient.id}/documents",
            files={"file": ("student-id.png", b"fake-image-bytes", "image/png")},
            data={"kind": "identification"},
            headers=headers
        )
        assert response.status_code == 201
        document_id = response.json()["id"]

        response = client.get(f"/api/documents/{document_id}", headers=headers)
        assert response.status_code == 200
        assert response.json() == {
            "url": f"/api/documents/{document_id}/content",
            "filename": "student-id.png",
        }

        response = client.get(f"/api/documents/{document_id}/content", headers=headers)
        assert response.status_code == 200
        assert response.content == b"fake-image-bytes"

        response = client.get(f"/api/patients/{patient.id}", headers=headers)
        assert [d["id"] for d in response.json()["identificationDocuments"]] == [document_id]

    def test_invalid_kind(self, client, patient):
        headers = auth_headers(SessionRole.PATIENT, patient.id)
        response = client.post(
            f"/api/patients/{patient.id}/documents",
            files={"file": ("x.png", b"x", "image/png")},
            data={"kind": "selfie"},
            headers=headers
        )
        assert response.status_code == 400

    def test_other_patient_cannot_read_document(self, client, patient, make_patient):
        owner_headers = auth_headers(SessionRole.PATIENT, patient.id)
        document_id = client.post(
            f"/api/patients/{patient.id}/documents",
            files={"file": ("id.png", b"x", "image/png")},
            headers=owner_headers
        ).json()["id"]

        stranger = auth_headers(SessionRole.PATIENT, "someone-else")
        assert client.get(f"/api/documents/{document_id}", headers=stranger).status_code == 403


class TestNotes:
    """Tests for doctor notes on patients."""

    def test_doctor_writes_and_lists_notes(self, client, doctor_headers, patient):
        for text in ("First visit", "Follow-up"):
            response = client.post(
                f"/api/patients/{patient.id}/notes",
                json={"note": text},
                headers=doctor_headers
            )
            assert response.status_code == 201
            assert response.json()["doctorId"] == "dr-abundo"

        response = client.get(f"/api/patients/{patient.id}/notes", headers=doctor_headers)
        assert [n["note"] for n in response.json()] == ["Follow-up", "First visit"]

    def test_admin_must_name_doctor(self, client, admin_headers, patient):
        response = client.post(
            f"/api/patients/{patient.id}/notes", json={"note": "x"}, headers=admin_headers
        )
        assert response.status_code == 400

        response = client.post(
            f"/api/patients/{patient.id}/notes",
            json={"note": "x", "doctorId": "dr-decastro"},
            headers=admin_headers
        )
        assert response.status_code == 201

    def test_notes_for_missing_patient(self, client, doctor_headers):
        assert client.get("/api/patients/nope/notes", headers=doctor_headers).status_code == 404

    def test_staff_cannot_read_notes(self, client, staff_headers, patient):
        assert client.get(f"/api/patients/{patient.id}/notes", headers=staff_headers).status_code == 403


class TestDoctorPatients:
    def test_doctor_sees_own_patients(self, client, staff_headers, doctor_headers, patient):
        client.post(
            "/api/appointments",
            json={
                "patientId": patient.id,
                "primaryPhysician": "Abegail M. Abundo",
                "schedule": booking_time(9).isoformat(),
                "reason": "Cough",
            },
            headers=staff_headers
        )
        response = client.get("/api/patients/doctor", headers=doctor_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["patients"][0]["patient"]["id"] == patient.id
        assert data["patients"][0]["appointmentCount"] == 1

        response = client.get(
            "/api/patients/doctor", params={"name": "Genevieve S. De Castro"}, headers=doctor_headers
        )
        assert response.status_code == 403
