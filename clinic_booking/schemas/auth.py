from typing import Optional
from pydantic import Field

from .common import CamelModel
from ..core.security import PasskeyType


class RolePasskeyRequest(CamelModel):
    passkey: str = Field(..., max_length=64)
    type: PasskeyType


class PatientPasskeyRequest(CamelModel):
    id_number: str = Field(..., min_length=1, max_length=50)
    passkey: str = Field(..., max_length=64)


class PasskeyValidationResponse(CamelModel):
    success: bool = True
    is_valid: bool
    access_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None


class SessionInfo(CamelModel):
    valid: bool = True
    subject: Optional[str] = None
    role: Optional[str] = None
    doctor_id: Optional[str] = None
    expires: Optional[int] = None
