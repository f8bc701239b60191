from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.security import SessionRole, TokenPayload
from ...api.deps import check_patient_access, get_current_session
from ...services import storage_service
from ...services.patient_service import PatientService
from ...schemas.patient import DocumentUrlResponse

router = APIRouter(prefix="/documents", tags=["Documents"])


def _load_document(document_id: str, session: TokenPayload, db: Session):
    document = PatientService(db).get_document(document_id)
    if session.role == SessionRole.PATIENT.value:
        check_patient_access(session, document.patient)
    return document


@router.get("/{document_id}", response_model=DocumentUrlResponse)
async def get_document_url(
    document_id: str,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_current_session)
):
    """Where to fetch an uploaded document: a presigned S3 URL or the content route."""
    document = _load_document(document_id, session, db)
    return DocumentUrlResponse(url=storage_service.file_url(document), filename=document.filename)


@router.get("/{document_id}/content")
async def get_document_content(
    document_id: str,
    db: Session = Depends(get_db),
    session: TokenPayload = Depends(get_current_session)
):
    document = _load_document(document_id, session, db)
    return FileResponse(
        storage_service.local_file_path(document),
        media_type=document.content_type or "application/octet-stream",
        filename=document.filename,
    )
