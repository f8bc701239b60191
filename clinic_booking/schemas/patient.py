from datetime import date, datetime
from typing import List, Optional
from enum import Enum
from pydantic import EmailStr, Field, field_validator

from .common import CamelModel


PHONE_PATTERN = r"^\+?[0-9]{10,15}$"
EMERGENCY_PHONE_PATTERN = r"^\+639[0-9]{9}$"


class PatientCategory(str, Enum):
    STUDENT = "Student"
    EMPLOYEE = "Employee"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"
    PREFER_NOT_TO_SAY = "Prefer not to say"


class PatientRegister(CamelModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN)
    birth_date: date
    gender: Gender
    address: str = Field(..., min_length=5, max_length=500)
    category: PatientCategory
    emergency_contact_name: str = Field(..., min_length=2, max_length=50)
    emergency_contact_number: str = Field(..., pattern=EMERGENCY_PHONE_PATTERN)
    identification_type: Optional[str] = Field(None, max_length=50)
    identification_number: str = Field(..., min_length=1, max_length=10)
    signs_symptoms: Optional[str] = None
    allergies: Optional[str] = None
    current_medication: Optional[str] = None
    family_medical_history: Optional[str] = None
    past_medical_history: Optional[str] = None
    treatment_consent: bool = Field(False, validate_default=True)
    disclosure_consent: bool = Field(False, validate_default=True)
    privacy_consent: bool = Field(False, validate_default=True)

    @field_validator("gender")
    @classmethod
    def registration_gender(cls, value: Gender) -> Gender:
        if value == Gender.PREFER_NOT_TO_SAY:
            raise ValueError("Gender must be Male, Female or Other")
        return value

    @field_validator("treatment_consent", "disclosure_consent", "privacy_consent")
    @classmethod
    def consent_required(cls, value: bool, info) -> bool:
        if not value:
            topic = info.field_name.replace("_consent", "")
            raise ValueError(f"You must consent to {topic} in order to proceed")
        return value


class PatientPersonalUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=10, max_length=20)
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = Field(None, min_length=5, max_length=500)
    emergency_contact_name: Optional[str] = Field(None, min_length=2, max_length=50)
    emergency_contact_number: Optional[str] = Field(None, min_length=10, max_length=20)
    identification_type: Optional[str] = Field(None, max_length=50)
    identification_number: Optional[str] = Field(None, min_length=1, max_length=10)


class PatientMedicalUpdate(CamelModel):
    blood_type: Optional[str] = Field(None, max_length=10)
    allergies: Optional[str] = None
    current_medication: Optional[str] = None
    family_medical_history: Optional[str] = None
    past_medical_history: Optional[str] = None
    signs_symptoms: Optional[str] = None
    lifestyle_habits: Optional[str] = None
    smoker: Optional[bool] = None
    alcohol_consumption: Optional[str] = Field(None, max_length=50)
    height: Optional[str] = Field(None, max_length=20)
    weight: Optional[str] = Field(None, max_length=20)


class DocumentInfo(CamelModel):
    id: str
    kind: str
    filename: str
    content_type: Optional[str] = None
    created_at: Optional[datetime] = None


class PatientSummary(CamelModel):
    id: str
    name: str
    email: str
    phone: str
    category: str
    identification_number: str


class PatientResponse(PatientSummary):
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_number: Optional[str] = None
    identification_type: Optional[str] = None
    signs_symptoms: Optional[str] = None
    allergies: Optional[str] = None
    current_medication: Optional[str] = None
    family_medical_history: Optional[str] = None
    past_medical_history: Optional[str] = None
    blood_type: Optional[str] = None
    height: Optional[str] = None
    weight: Optional[str] = None
    smoker: Optional[bool] = None
    alcohol_consumption: Optional[str] = None
    lifestyle_habits: Optional[str] = None
    privacy_consent: bool
    identification_documents: List[DocumentInfo] = Field(default_factory=list)
    avatar: Optional[DocumentInfo] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PatientListResponse(CamelModel):
    patients: List[PatientResponse]
    total_count: int


class PatientDeleteResponse(CamelModel):
    success: bool = True
    message: str
    appointments_updated: int
    notes_deleted: int


class DocumentUrlResponse(CamelModel):
    url: str
    filename: str
