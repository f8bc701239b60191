from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import HTTPException, status
from fastapi.security import HTTPBearer
from pydantic import BaseModel
from enum import Enum

from .config import settings

# Passkey hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.PASSKEY_HASH_ROUNDS,
)

# Session tokens
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)

class SessionRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    DOCTOR = "doctor"
    PATIENT = "patient"

class PasskeyType(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    DR_ABUNDO = "dr_abundo"
    DR_DECASTRO = "dr_decastro"

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int

class TokenPayload(BaseModel):
    sub: Optional[str] = None
    role: Optional[str] = None
    doctor_id: Optional[str] = None
    exp: Optional[int] = None
    token_type: Optional[str] = None

# Passkey utilities
def verify_passkey_hash(plain_passkey: str, hashed_passkey: str) -> bool:
    """Verify a plain passkey against its hash."""
    return pwd_context.verify(plain_passkey, hashed_passkey)

def get_passkey_hash(passkey: str) -> str:
    """Generate a salted passkey hash."""
    return pwd_context.hash(passkey)

# JWT utilities
def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({
        "exp": expire,
        "token_type": "access"
    })

    encoded_jwt = jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )
    return encoded_jwt

def verify_token(token: str) -> Optional[TokenPayload]:
    """Verify and decode JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )

        return TokenPayload(**payload)

    except JWTError:
        return None

def create_session_token(
    subject: str,
    role: SessionRole,
    doctor_id: Optional[str] = None
) -> Token:
    """Issue the session credential handed back after a successful passkey check."""
    token_data = {
        "sub": subject,
        "role": role.value,
    }
    if doctor_id:
        token_data["doctor_id"] = doctor_id

    return Token(
        access_token=create_access_token(token_data),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    )

# Security exceptions
class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Not enough permissions"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )
