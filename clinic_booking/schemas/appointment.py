from datetime import datetime
from typing import Any, Dict, List, Optional
from enum import Enum
from pydantic import Field, model_validator

from .common import CamelModel
from .patient import PatientSummary
from ..models.appointment import AppointmentStatus


class AppointmentCreate(CamelModel):
    patient_id: str = Field(..., min_length=1)
    primary_physician: str = Field(..., min_length=2)
    schedule: datetime
    reason: str = Field(..., min_length=2, max_length=500)
    note: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.PENDING


class AppointmentChanges(CamelModel):
    primary_physician: Optional[str] = Field(None, min_length=2)
    schedule: Optional[datetime] = None
    reason: Optional[str] = Field(None, max_length=500)
    note: Optional[str] = None
    cancellation_reason: Optional[str] = None


class UpdateType(str, Enum):
    SCHEDULE = "schedule"
    CANCEL = "cancel"


class AppointmentUpdate(CamelModel):
    type: UpdateType
    appointment: AppointmentChanges
    time_zone: Optional[str] = None

    @model_validator(mode="after")
    def cancellation_reason_required(self):
        if self.type == UpdateType.CANCEL:
            reason = (self.appointment.cancellation_reason or "").strip()
            if not 2 <= len(reason) <= 500:
                raise ValueError("Cancellation reason must be between 2 and 500 characters")
        return self


class StatusUpdate(CamelModel):
    appointment_id: str = Field(..., min_length=1)
    status: AppointmentStatus


class ClearAction(str, Enum):
    ARCHIVE = "archive"
    ARCHIVE_SINGLE = "archiveSingle"


class ClearRequest(CamelModel):
    action: ClearAction
    doctor_name: Optional[str] = None
    appointment_id: Optional[str] = None
    preserve_patient_data: bool = False


class ScanVerifyRequest(CamelModel):
    # Whatever the QR decoder produced: string, object, list...
    payload: Any = None


class AppointmentResponse(CamelModel):
    id: str
    patient_id: Optional[str] = None
    patient: Optional[PatientSummary] = None
    schedule: datetime
    status: AppointmentStatus
    primary_physician: str
    reason: Optional[str] = None
    note: Optional[str] = None
    cancellation_reason: Optional[str] = None
    archived: bool = False
    appointment_code: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AppointmentListResponse(CamelModel):
    documents: List[AppointmentResponse]


class ScanVerifyResponse(CamelModel):
    code: str
    appointment: AppointmentResponse


class AppointmentSearchResponse(CamelModel):
    appointments: List[AppointmentResponse]
    total_count: int
    total_pages: int
    current_page: int


class ArchiveResult(CamelModel):
    success: bool = True
    message: str
    count: int
    preserved_patient_count: Optional[int] = None


class DashboardSummary(CamelModel):
    status_counts: Dict[str, int]
    today_count: int
    student_count: int
    employee_count: int
    total_count: int
    documents: List[AppointmentResponse]


class ChartPoint(CamelModel):
    date: str
    counts: Dict[str, int]
    total: int


class ChartData(CamelModel):
    chart_data: List[ChartPoint]
    totals: Dict[str, int]


class DoctorPatientEntry(CamelModel):
    patient: PatientSummary
    latest_appointment: AppointmentResponse
    appointment_count: int


class DoctorPatientsResponse(CamelModel):
    success: bool = True
    patients: List[DoctorPatientEntry]
    count: int
