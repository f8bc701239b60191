from .patient import Patient
from .patient_document import PatientDocument
from .appointment import Appointment, AppointmentStatus
from .passkey import Passkey
from .patient_note import PatientNote
from .doctor_availability import DoctorAvailability

__all__ = [
    "Patient",
    "PatientDocument",
    "Appointment",
    "AppointmentStatus",
    "Passkey",
    "PatientNote",
    "DoctorAvailability",
]
