from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base, new_document_id

class PatientNote(Base):
    __tablename__ = "patient_notes"

    id = Column(String(36), primary_key=True, default=new_document_id)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(String(50), nullable=False)
    note = Column(Text, nullable=False)

    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("Patient", back_populates="notes")

    def __repr__(self):
        return f"<PatientNote(id={self.id}, patient_id={self.patient_id}, doctor_id='{self.doctor_id}')>"
