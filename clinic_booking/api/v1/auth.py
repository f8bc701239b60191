import asyncio
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.config import settings
from ...core.database import get_db
from ...core.doctors import get_doctor_by_passkey_type
from ...core.security import (
    PasskeyType, SessionRole, TokenPayload, create_session_token
)
from ...api.deps import get_current_session, rate_limit_check
from ...services.passkey_service import PasskeyService
from ...services.patient_service import PatientService
from ...schemas.auth import (
    PasskeyValidationResponse, PatientPasskeyRequest, RolePasskeyRequest, SessionInfo
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])

ROLE_FOR_PASSKEY = {
    PasskeyType.ADMIN: SessionRole.ADMIN,
    PasskeyType.STAFF: SessionRole.STAFF,
    PasskeyType.DR_ABUNDO: SessionRole.DOCTOR,
    PasskeyType.DR_DECASTRO: SessionRole.DOCTOR,
}


async def _passkey_delay():
    if settings.PASSKEY_RESPONSE_DELAY_SECONDS > 0:
        await asyncio.sleep(settings.PASSKEY_RESPONSE_DELAY_SECONDS)


@router.post("/auth/validate-passkey", response_model=PasskeyValidationResponse)
async def validate_passkey(
    request_data: RolePasskeyRequest,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Unlock the admin, staff or doctor area with its role passkey."""
    is_valid = PasskeyService(db).verify_role_passkey(request_data.type, request_data.passkey)
    await _passkey_delay()

    if not is_valid:
        logger.info(f"Rejected {request_data.type.value} passkey")
        return PasskeyValidationResponse(is_valid=False)

    doctor = get_doctor_by_passkey_type(request_data.type)
    token = create_session_token(
        subject=request_data.type.value,
        role=ROLE_FOR_PASSKEY[request_data.type],
        doctor_id=doctor.id if doctor else None,
    )
    logger.info(f"Issued {ROLE_FOR_PASSKEY[request_data.type].value} session")
    return PasskeyValidationResponse(
        is_valid=True,
        access_token=token.access_token,
        token_type=token.token_type,
        expires_in=token.expires_in,
    )


@router.post("/verify-patient-passkey", response_model=PasskeyValidationResponse)
async def verify_patient_passkey(
    request_data: PatientPasskeyRequest,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Check a patient's passkey; a valid one yields a patient session."""
    id_number = request_data.id_number.strip()
    is_valid = PasskeyService(db).verify_passkey(id_number, request_data.passkey)
    await _passkey_delay()

    if not is_valid:
        return PasskeyValidationResponse(is_valid=False)

    # Not-yet-registered patients are identified by their id number
    patient = PatientService(db).get_by_identification_number(id_number)
    token = create_session_token(
        subject=patient.id if patient else id_number,
        role=SessionRole.PATIENT,
    )
    return PasskeyValidationResponse(
        is_valid=True,
        access_token=token.access_token,
        token_type=token.token_type,
        expires_in=token.expires_in,
    )


@router.post("/auth/verify-token", response_model=SessionInfo)
async def verify_session_token(
    session: TokenPayload = Depends(get_current_session)
):
    """Return the claims of the presented session token."""
    return SessionInfo(
        subject=session.sub,
        role=session.role,
        doctor_id=session.doctor_id,
        expires=session.exp,
    )
