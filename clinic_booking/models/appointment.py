from sqlalchemy import Column, String, ForeignKey, DateTime, Boolean, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base, new_document_id

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    MISSED = "missed"

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=new_document_id)

    # Relationships
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="SET NULL"), nullable=True, index=True)

    # Appointment details
    schedule = Column(DateTime, nullable=False, index=True)
    status = Column(SQLEnum(AppointmentStatus), default=AppointmentStatus.PENDING, nullable=False, index=True)
    primary_physician = Column(String(100), nullable=False, index=True)
    reason = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    archived = Column(Boolean, default=False, nullable=False)
    appointment_code = Column(String(20), nullable=True, index=True)

    # Tracking
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    patient = relationship("Patient", back_populates="appointments")

    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, physician='{self.primary_physician}', schedule='{self.schedule}')>"
