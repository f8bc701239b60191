from sqlalchemy import Column, String, Integer, DateTime, Date, JSON
from sqlalchemy.sql import func

from ..core.database import Base

class DoctorAvailability(Base):
    """Persisted override of a doctor's default weekly availability."""

    __tablename__ = "doctor_availability"

    doctor_id = Column(String(50), primary_key=True)

    days = Column(JSON, nullable=False)
    start_hour = Column(Integer, nullable=False)
    end_hour = Column(Integer, nullable=False)
    holidays = Column(JSON, nullable=False, default=list)
    booking_start_date = Column(Date, nullable=True)
    booking_end_date = Column(Date, nullable=True)
    max_appointments_per_day = Column(Integer, nullable=False, default=10)
    blocked_time_slots = Column(JSON, nullable=False, default=list)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<DoctorAvailability(doctor_id='{self.doctor_id}', hours={self.start_hour}-{self.end_hour})>"
