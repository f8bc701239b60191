from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List

from ..core.config import settings
from ..core.database import get_redis
from ..core.doctors import Doctor, get_doctor
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, SessionRole, TokenPayload
)
from ..models.patient import Patient

async def get_current_session(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify the session token from the Authorization header."""
    token = credentials.credentials

    # Verify token
    token_payload = verify_token(token)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    # Check if token is access token
    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    if not token_payload.sub or not token_payload.role:
        raise AuthenticationError("Invalid token payload")

    return token_payload

# Role-based access control dependencies
def require_role(allowed_roles: List[SessionRole]):
    """Create a dependency that requires specific session roles."""
    allowed = {role.value for role in allowed_roles}

    async def role_checker(
        session: TokenPayload = Depends(get_current_session)
    ) -> TokenPayload:
        if session.role not in allowed:
            raise AuthorizationError(
                f"Access denied. Required roles: {sorted(allowed)}"
            )
        return session

    return role_checker

# Specific role dependencies
get_admin_session = require_role([SessionRole.ADMIN])
get_staff_session = require_role([SessionRole.STAFF, SessionRole.ADMIN])
get_clinician_session = require_role([SessionRole.DOCTOR, SessionRole.STAFF, SessionRole.ADMIN])
get_doctor_session = require_role([SessionRole.DOCTOR, SessionRole.ADMIN])


def session_doctor(session: TokenPayload) -> Doctor:
    """The doctor bound to a doctor session."""
    doctor = get_doctor(session.doctor_id) if session.doctor_id else None
    if not doctor:
        raise AuthorizationError("Session is not bound to a doctor")
    return doctor


def is_staff(session: TokenPayload) -> bool:
    return session.role in (SessionRole.ADMIN.value, SessionRole.STAFF.value)


def check_patient_access(
    session: TokenPayload,
    patient: Patient,
    allow_doctor: bool = False,
) -> None:
    """Patients may only reach their own record; staff and admins reach all."""
    if is_staff(session):
        return
    if allow_doctor and session.role == SessionRole.DOCTOR.value:
        return
    if session.role == SessionRole.PATIENT.value and session.sub in (
        patient.id, patient.identification_number
    ):
        return
    raise AuthorizationError("You can only access your own records")


def check_patient_id_access(
    session: TokenPayload,
    patient_id: str,
    db: Session,
    allow_doctor: bool = False,
) -> None:
    if is_staff(session) or (allow_doctor and session.role == SessionRole.DOCTOR.value):
        return
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if not patient:
        # Do not reveal which ids exist to other patients
        raise AuthorizationError("You can only access your own records")
    check_patient_access(session, patient, allow_doctor)

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Basic rate limiting for passkey verification endpoints."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, 3600, 1)  # 1 hour window
    else:
        if int(current_requests) >= settings.RATE_LIMIT_PER_HOUR:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)
