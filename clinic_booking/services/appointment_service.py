import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from .appointment_code import generate_appointment_code
from .base import StoreService
from .qr_normalizer import normalize_scan
from .realtime import APPOINTMENT_CREATED, APPOINTMENT_UPDATED, RealtimeBroker, get_broker
from .scheduling_service import SchedulingService
from ..core.database import new_document_id
from ..core.doctors import DOCTOR_CATEGORIES, DOCTORS, Doctor, get_doctor, get_doctor_by_name
from ..core.exceptions import NotFoundError, ValidationError
from ..core.time_utils import clinic_today, clinic_tz, to_clinic_local, to_utc_naive
from ..models.appointment import Appointment, AppointmentStatus
from ..models.patient import Patient
from ..schemas.appointment import (
    AppointmentCreate, AppointmentResponse, AppointmentUpdate, ChartData, ChartPoint,
    DashboardSummary, DoctorPatientEntry, UpdateType
)
from ..schemas.patient import PatientCategory, PatientSummary

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "schedule": Appointment.schedule,
    "createdAt": Appointment.created_at,
}


def appointment_payload(appointment: Appointment) -> Dict[str, Any]:
    """JSON-ready camelCase view of an appointment for realtime events."""
    return AppointmentResponse.model_validate(appointment).model_dump(mode="json", by_alias=True)


class AppointmentService(StoreService):
    def __init__(self, db: Session, broker: Optional[RealtimeBroker] = None):
        super().__init__(db)
        self.broker = broker or get_broker()
        self.scheduling = SchedulingService(db, self.broker)

    def _query(self):
        return self.db.query(Appointment).options(joinedload(Appointment.patient))

    def _get_patient(self, patient_id: str) -> Patient:
        with self._store_call("loading patient"):
            patient = self.db.query(Patient).filter(Patient.id == patient_id).first()
        if not patient:
            raise NotFoundError("Patient not found")
        return patient

    @staticmethod
    def _doctor_for(reference: str) -> Doctor:
        doctor = get_doctor_by_name(reference) or get_doctor(reference)
        if not doctor:
            raise ValidationError("Please select a valid doctor")
        return doctor

    def create_appointment(self, data: AppointmentCreate) -> Appointment:
        """Book an appointment and stamp it with its verification code."""
        patient = self._get_patient(data.patient_id)
        doctor = self._doctor_for(data.primary_physician)
        schedule = to_utc_naive(data.schedule)
        self.scheduling.ensure_bookable(doctor, schedule)

        appointment_id = new_document_id()
        appointment = Appointment(
            id=appointment_id,
            patient_id=patient.id,
            primary_physician=doctor.name,
            schedule=schedule,
            reason=data.reason,
            note=data.note,
            status=data.status,
            appointment_code=generate_appointment_code(appointment_id, patient.id),
            created_at=datetime.utcnow(),
        )

        with self._store_call("creating appointment"):
            self.db.add(appointment)
            self.db.commit()
            self.db.refresh(appointment)

        logger.info(f"Appointment {appointment.id} created with code {appointment.appointment_code}")
        self.broker.publish("appointments", APPOINTMENT_CREATED, appointment_payload(appointment))
        return appointment

    def get_appointment(self, appointment_id: str, backfill_code: bool = True) -> Appointment:
        with self._store_call("loading appointment"):
            appointment = self._query().filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise NotFoundError("Appointment not found")

        if backfill_code:
            self.ensure_code(appointment)
        return appointment

    def ensure_code(self, appointment: Appointment) -> Appointment:
        # Records booked before codes existed get one on first read
        if not appointment.appointment_code and appointment.patient_id:
            appointment.appointment_code = generate_appointment_code(
                appointment.id, appointment.patient_id
            )
            self._commit("backfilling appointment code")
            logger.info(f"Backfilled code for appointment {appointment.id}")

        return appointment

    def get_by_code(self, code: str) -> Appointment:
        """Resolve an appointment code, archived records included.

        Codes are not unique; the latest schedule wins, then the newest record.
        """
        code = (code or "").strip()
        if not code:
            raise NotFoundError("Appointment not found")

        with self._store_call("looking up appointment code"):
            appointment = (
                self._query()
                .filter(Appointment.appointment_code == code)
                .order_by(Appointment.schedule.desc(), Appointment.created_at.desc())
                .first()
            )

        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment

    def verify_scan(self, raw: Any) -> Tuple[str, Appointment]:
        code = normalize_scan(raw)
        logger.info(f"Verifying scanned appointment code {code!r}")
        return code, self.get_by_code(code)

    def update_appointment(self, appointment_id: str, update: AppointmentUpdate) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        changes = update.appointment

        if update.type == UpdateType.SCHEDULE:
            doctor = self._doctor_for(changes.primary_physician or appointment.primary_physician)
            schedule = to_utc_naive(changes.schedule) if changes.schedule else appointment.schedule
            if schedule != appointment.schedule or doctor.name != appointment.primary_physician:
                self.scheduling.ensure_bookable(doctor, schedule, exclude_id=appointment.id)

            appointment.primary_physician = doctor.name
            appointment.schedule = schedule
            if changes.reason is not None:
                appointment.reason = changes.reason
            if changes.note is not None:
                appointment.note = changes.note
            appointment.status = AppointmentStatus.SCHEDULED
            appointment.cancellation_reason = None
        else:
            appointment.status = AppointmentStatus.CANCELLED
            appointment.cancellation_reason = changes.cancellation_reason.strip()

        with self._store_call("updating appointment"):
            self.db.commit()
            self.db.refresh(appointment)

        logger.info(f"Appointment {appointment.id} updated ({update.type.value})")
        self.broker.publish("appointments", APPOINTMENT_UPDATED, {
            "type": update.type.value,
            "timeZone": update.time_zone,
            "appointment": appointment_payload(appointment),
        })
        return appointment

    def update_status(self, appointment_id: str, status) -> Appointment:
        try:
            status = AppointmentStatus(status)
        except ValueError:
            raise ValidationError("Invalid appointment status") from None

        appointment = self.get_appointment(appointment_id)
        appointment.status = status
        with self._store_call("updating appointment status"):
            self.db.commit()
            self.db.refresh(appointment)

        self.broker.publish("appointments", APPOINTMENT_UPDATED, {
            "type": "status",
            "appointment": appointment_payload(appointment),
        })
        return appointment

    def doctor_appointments(self, doctor: Doctor) -> List[Appointment]:
        with self._store_call("listing doctor appointments"):
            return (
                self._query()
                .filter(
                    Appointment.primary_physician == doctor.name,
                    Appointment.status == AppointmentStatus.SCHEDULED,
                    Appointment.archived.is_(False),
                )
                .order_by(Appointment.schedule.asc())
                .all()
            )

    def patient_appointments(self, patient_id: str) -> List[Appointment]:
        self._get_patient(patient_id)
        with self._store_call("listing patient appointments"):
            return (
                self._query()
                .filter(Appointment.patient_id == patient_id, Appointment.archived.is_(False))
                .order_by(Appointment.schedule.desc())
                .all()
            )

    def _archive(self, appointments: List[Appointment], action: str) -> int:
        for appointment in appointments:
            appointment.archived = True
        self._commit(action)
        return len(appointments)

    def clear_patient_history(self, patient_id: str) -> int:
        """Hide a patient's appointments from their dashboard; records are kept."""
        appointments = self.patient_appointments(patient_id)
        count = self._archive(appointments, "archiving patient appointments")
        logger.info(f"Archived {count} appointments for patient {patient_id}")
        return count

    def clear_doctor_history(self, doctor: Doctor, preserve_patient_data: bool = False) -> Dict[str, int]:
        with self._store_call("loading doctor appointments"):
            appointments = self.db.query(Appointment).filter(
                Appointment.primary_physician == doctor.name,
                Appointment.archived.is_(False),
            ).all()

        preserved = {a.patient_id for a in appointments if a.patient_id} if preserve_patient_data else set()
        count = self._archive(appointments, "archiving doctor appointments")
        logger.info(f"Archived {count} appointments for {doctor.name}")
        return {"count": count, "preserved_patient_count": len(preserved)}

    def archive_appointment(self, appointment_id: str) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        self._archive([appointment], "archiving appointment")
        return appointment

    def search_appointments(
        self,
        search: Optional[str] = None,
        status: Optional[AppointmentStatus] = None,
        doctor: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        sort_field: str = "schedule",
        sort_order: str = "desc",
        limit: int = 50,
        page: int = 1,
    ) -> Dict[str, Any]:
        if sort_field not in SORT_FIELDS:
            raise ValidationError("Sort field must be schedule or createdAt")
        if sort_order not in ("asc", "desc"):
            raise ValidationError("Sort order must be asc or desc")

        query = self.db.query(Appointment).outerjoin(Patient, Appointment.patient_id == Patient.id)
        if status:
            query = query.filter(Appointment.status == status)
        if doctor:
            query = query.filter(Appointment.primary_physician == doctor)
        tz = clinic_tz()
        if start_date:
            query = query.filter(
                Appointment.schedule >= to_utc_naive(datetime.combine(start_date, time.min, tzinfo=tz))
            )
        if end_date:
            query = query.filter(
                Appointment.schedule < to_utc_naive(datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz))
            )
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Appointment.reason.ilike(pattern),
                Appointment.note.ilike(pattern),
                Patient.name.ilike(pattern),
            ))

        column = SORT_FIELDS[sort_field]
        query = query.order_by(column.asc() if sort_order == "asc" else column.desc())

        with self._store_call("searching appointments"):
            total_count = query.count()
            appointments = (
                query.options(joinedload(Appointment.patient))
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )

        return {
            "appointments": appointments,
            "total_count": total_count,
            "total_pages": math.ceil(total_count / limit) if limit else 0,
            "current_page": page,
        }

    def dashboard_summary(self) -> DashboardSummary:
        tz = clinic_tz()
        today = clinic_today()
        day_start = to_utc_naive(datetime.combine(today, time.min, tzinfo=tz))
        day_end = to_utc_naive(datetime.combine(today + timedelta(days=1), time.min, tzinfo=tz))

        with self._store_call("building dashboard summary"):
            status_rows = self.db.query(
                Appointment.status, func.count(Appointment.id)
            ).group_by(Appointment.status).all()

            today_count = self.db.query(func.count(Appointment.id)).filter(
                Appointment.schedule >= day_start,
                Appointment.schedule < day_end,
                Appointment.status == AppointmentStatus.SCHEDULED,
            ).scalar()

            category_rows = dict(self.db.query(
                Patient.category, func.count(Patient.id)
            ).group_by(Patient.category).all())

            total_count = self.db.query(func.count(Appointment.id)).scalar()
            recent = self._query().order_by(Appointment.created_at.desc()).limit(10).all()

        status_counts = {status.value: 0 for status in AppointmentStatus}
        for status, count in status_rows:
            status_counts[AppointmentStatus(status).value] = count

        return DashboardSummary(
            status_counts=status_counts,
            today_count=today_count or 0,
            student_count=category_rows.get(PatientCategory.STUDENT.value, 0),
            employee_count=category_rows.get(PatientCategory.EMPLOYEE.value, 0),
            total_count=total_count or 0,
            documents=[AppointmentResponse.model_validate(a) for a in recent],
        )

    def chart_data(self, days: int = 7) -> ChartData:
        """Appointments per day for the last ``days`` days, split by doctor category."""
        if days < 1 or days > 366:
            raise ValidationError("Days must be between 1 and 366")

        tz = clinic_tz()
        end_day = clinic_today()
        start_day = end_day - timedelta(days=days - 1)
        start = to_utc_naive(datetime.combine(start_day, time.min, tzinfo=tz))
        end = to_utc_naive(datetime.combine(end_day + timedelta(days=1), time.min, tzinfo=tz))

        with self._store_call("loading chart data"):
            rows = self.db.query(Appointment.schedule, Appointment.primary_physician).filter(
                Appointment.schedule >= start,
                Appointment.schedule < end,
            ).all()

        category_by_name = {doctor.name: doctor.category for doctor in DOCTORS}
        buckets = {
            (start_day + timedelta(days=offset)).isoformat(): {category: 0 for category in DOCTOR_CATEGORIES}
            for offset in range(days)
        }
        for schedule, physician in rows:
            category = category_by_name.get(physician)
            key = to_clinic_local(schedule).date().isoformat()
            if category and key in buckets:
                buckets[key][category] += 1

        totals = {category: sum(counts[category] for counts in buckets.values()) for category in DOCTOR_CATEGORIES}
        return ChartData(
            chart_data=[
                ChartPoint(date=key, counts=counts, total=sum(counts.values()))
                for key, counts in buckets.items()
            ],
            totals=totals,
        )

    def doctor_patients(self, doctor: Doctor) -> List[DoctorPatientEntry]:
        """Patients a doctor has seen, each with their latest appointment."""
        with self._store_call("listing doctor patients"):
            appointments = (
                self._query()
                .filter(
                    Appointment.primary_physician == doctor.name,
                    Appointment.patient_id.isnot(None),
                )
                .order_by(Appointment.schedule.desc())
                .all()
            )

        entries: Dict[str, DoctorPatientEntry] = {}
        for appointment in appointments:
            entry = entries.get(appointment.patient_id)
            if entry:
                entry.appointment_count += 1
                continue
            entries[appointment.patient_id] = DoctorPatientEntry(
                patient=PatientSummary.model_validate(appointment.patient),
                latest_appointment=AppointmentResponse.model_validate(appointment),
                appointment_count=1,
            )
        return list(entries.values())
