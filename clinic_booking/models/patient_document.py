from sqlalchemy import Column, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base, new_document_id

class PatientDocument(Base):
    __tablename__ = "patient_documents"

    id = Column(String(36), primary_key=True, default=new_document_id)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)

    kind = Column(String(20), nullable=False, default="identification")
    filename = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=True)

    storage_type = Column(String(10), nullable=False)
    local_path = Column(String(512), nullable=True)
    s3_bucket = Column(String(255), nullable=True)
    s3_key = Column(String(512), nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    patient = relationship("Patient", back_populates="documents")

    __table_args__ = (
        CheckConstraint("kind IN ('identification', 'avatar')", name="valid_document_kind"),
        CheckConstraint("storage_type IN ('local', 's3')", name="valid_storage_type"),
        CheckConstraint(
            "(storage_type = 'local' AND local_path IS NOT NULL) OR "
            "(storage_type = 's3' AND s3_bucket IS NOT NULL AND s3_key IS NOT NULL)",
            name="valid_storage_path"
        ),
    )

    def __repr__(self):
        return f"<PatientDocument(id={self.id}, patient_id={self.patient_id}, kind='{self.kind}')>"
