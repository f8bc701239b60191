from datetime import datetime
from typing import Optional
from pydantic import Field

from .common import CamelModel


class NoteCreate(CamelModel):
    note: str = Field(..., min_length=1, max_length=5000)
    doctor_id: Optional[str] = Field(None, max_length=50)


class NoteResponse(CamelModel):
    id: str
    patient_id: str
    doctor_id: str
    note: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
