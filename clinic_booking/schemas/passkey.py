from datetime import datetime
from typing import List, Optional
from pydantic import Field

from .common import CamelModel


class PasskeyUpsert(CamelModel):
    id_number: str = Field(..., min_length=1, max_length=50)
    passkey: str = Field(..., max_length=64)


class PasskeyRecord(CamelModel):
    """Stored passkey metadata; the hash is never serialised."""

    id: str
    id_number: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PasskeyListResponse(CamelModel):
    success: bool = True
    passkeys: List[PasskeyRecord]


class ImportRowError(CamelModel):
    id_number: str
    error: str


class ImportResult(CamelModel):
    total: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[ImportRowError] = Field(default_factory=list)


class ImportResponse(CamelModel):
    success: bool = True
    message: str
    results: ImportResult
