import logging

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from ...core.config import settings
from ...core.database import get_db
from ...core.security import AuthorizationError, TokenPayload
from ...api.deps import get_admin_session
from ...services.passkey_import import import_passkeys, parse_passkey_csv
from ...services.passkey_service import PasskeyService
from ...schemas.common import MessageResponse
from ...schemas.passkey import (
    ImportResponse, PasskeyListResponse, PasskeyRecord, PasskeyUpsert
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Passkeys"])


@router.post("/passkey", response_model=MessageResponse)
async def set_passkey(
    passkey_data: PasskeyUpsert,
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_admin_session)
):
    """Create or replace a patient passkey."""
    PasskeyService(db).set_passkey(passkey_data.id_number, passkey_data.passkey)
    return MessageResponse(message="Passkey set successfully")


@router.get("/passkey", response_model=PasskeyListResponse)
async def list_passkeys(
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_admin_session)
):
    records = PasskeyService(db).list_passkeys()
    return PasskeyListResponse(
        passkeys=[PasskeyRecord.model_validate(record) for record in records]
    )


@router.delete("/passkey/{passkey_id}", response_model=MessageResponse)
async def delete_passkey(
    passkey_id: str,
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_admin_session)
):
    PasskeyService(db).delete_passkey(passkey_id)
    return MessageResponse(message="Passkey deleted successfully")


@router.post("/import-passkeys", response_model=ImportResponse)
async def import_passkeys_csv(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_admin_session)
):
    """Bulk-load passkeys from a CSV with ``idNumber`` and ``passkey`` columns."""
    contents = await file.read()
    rows = parse_passkey_csv(file.filename, contents)
    results = import_passkeys(db, rows)

    return ImportResponse(
        message=f"Processed {results.processed} records: {results.successful} successful, {results.failed} failed",
        results=results,
    )


@router.get("/init-passkeys", response_model=MessageResponse)
async def init_passkeys(
    db: Session = Depends(get_db),
    _: TokenPayload = Depends(get_admin_session)
):
    """Seed sample passkeys on development databases."""
    if settings.is_production:
        raise AuthorizationError("Sample passkeys cannot be created in production")

    count = PasskeyService(db).initialize_default_passkeys()
    logger.info(f"Seeded {count} sample passkeys")
    return MessageResponse(message=f"Initialized {count} sample passkeys")
