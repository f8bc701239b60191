from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient

from clinic_booking.main import app
from clinic_booking.core.database import Base, SessionLocal, engine, redis_client
from clinic_booking.core.security import SessionRole, create_session_token
from clinic_booking.schemas.patient import PatientRegister
from clinic_booking.services.patient_service import PatientService

# Monday; the default roster works Monday to Friday
BOOKING_DAY = date(2030, 1, 7)


def auth_headers(role: SessionRole, subject: str = None, doctor_id: str = None) -> dict:
    token = create_session_token(subject or role.value, role, doctor_id)
    return {"Authorization": f"Bearer {token.access_token}"}


def patient_payload(**overrides) -> dict:
    data = {
        "name": "Juan Dela Cruz",
        "email": "juan@uep.edu.ph",
        "phone": "+639171234567",
        "birthDate": "2001-05-14",
        "gender": "Male",
        "address": "123 Rizal Street, Catarman",
        "category": "Student",
        "emergencyContactName": "Maria Dela Cruz",
        "emergencyContactNumber": "+639181234567",
        "identificationType": "Student ID",
        "identificationNumber": "2023-0456",
        "treatmentConsent": True,
        "disclosureConsent": True,
        "privacyConsent": True,
    }
    data.update(overrides)
    return data


def booking_time(hour: int, minute: int = 0, day: date = BOOKING_DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    redis_client.flushall()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(test_db):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(test_db):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client


@pytest.fixture
def admin_headers():
    return auth_headers(SessionRole.ADMIN)


@pytest.fixture
def staff_headers():
    return auth_headers(SessionRole.STAFF)


@pytest.fixture
def doctor_headers():
    return auth_headers(SessionRole.DOCTOR, "dr_abundo", "dr-abundo")


@pytest.fixture
def make_patient(db):
    def _make(**overrides):
        return PatientService(db).register_patient(
            PatientRegister.model_validate(patient_payload(**overrides))
        )
    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient()
