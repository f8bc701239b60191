from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from ..core.database import Base, new_document_id

class Passkey(Base):
    __tablename__ = "passkeys"

    id = Column(String(36), primary_key=True, default=new_document_id)
    id_number = Column(String(50), unique=True, index=True, nullable=False)
    passkey_hash = Column(String(255), nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Passkey(id={self.id}, id_number='{self.id_number}')>"
