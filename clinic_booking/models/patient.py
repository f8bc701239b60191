from sqlalchemy import Column, String, Date, DateTime, Boolean, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base, new_document_id

class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=new_document_id)

    # Personal information
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), nullable=False)
    birth_date = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    address = Column(String(500), nullable=True)
    category = Column(String(20), nullable=False, index=True)

    # Emergency contact
    emergency_contact_name = Column(String(100), nullable=True)
    emergency_contact_number = Column(String(20), nullable=True)

    # Identification
    identification_type = Column(String(50), nullable=True)
    identification_number = Column(String(20), nullable=False, unique=True, index=True)

    # Medical information
    signs_symptoms = Column(Text, nullable=True)
    allergies = Column(Text, nullable=True)
    current_medication = Column(Text, nullable=True)
    family_medical_history = Column(Text, nullable=True)
    past_medical_history = Column(Text, nullable=True)
    blood_type = Column(String(10), nullable=True)
    height = Column(String(20), nullable=True)
    weight = Column(String(20), nullable=True)
    smoker = Column(Boolean, nullable=True)
    alcohol_consumption = Column(String(50), nullable=True)
    lifestyle_habits = Column(Text, nullable=True)

    privacy_consent = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    appointments = relationship("Appointment", back_populates="patient")
    documents = relationship(
        "PatientDocument",
        back_populates="patient",
        cascade="all, delete-orphan",
        order_by="PatientDocument.created_at",
    )
    notes = relationship("PatientNote", back_populates="patient", cascade="all, delete-orphan")

    @property
    def identification_documents(self):
        return [doc for doc in self.documents if doc.kind == "identification"]

    @property
    def avatar(self):
        avatars = [doc for doc in self.documents if doc.kind == "avatar"]
        return avatars[-1] if avatars else None

    def __repr__(self):
        return f"<Patient(id={self.id}, name='{self.name}', category='{self.category}')>"
