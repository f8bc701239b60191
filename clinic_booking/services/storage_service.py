import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, Optional
from uuid import uuid4

from ..core.config import settings
from ..core.exceptions import NotFoundError, UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class StoredFile:
    storage_type: str
    local_path: Optional[str] = None
    s3_bucket: Optional[str] = None
    s3_key: Optional[str] = None


def _s3_client():
    import boto3
    return boto3.client("s3")


def _safe_name(filename: str) -> str:
    return os.path.basename(filename or "upload").replace(" ", "_")


def save_file_locally(fileobj: BinaryIO, filename: str) -> StoredFile:
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    file_path = os.path.join(settings.UPLOAD_DIR, f"{uuid4()}_{_safe_name(filename)}")
    with open(file_path, "wb") as f:
        f.write(fileobj.read())
    return StoredFile(storage_type="local", local_path=file_path)


def save_file_to_s3(fileobj: BinaryIO, filename: str) -> StoredFile:
    bucket_name = settings.S3_BUCKET_NAME
    if not bucket_name:
        raise UpstreamError("S3 storage is not configured")
    key = f"{uuid4()}_{_safe_name(filename)}"
    try:
        _s3_client().upload_fileobj(fileobj, bucket_name, key)
    except Exception as exc:
        logger.error(f"S3 upload failed for {key}: {exc}")
        raise UpstreamError("Failed to upload file", error_type=type(exc).__name__) from exc
    return StoredFile(storage_type="s3", s3_bucket=bucket_name, s3_key=key)


def save_file(fileobj: BinaryIO, filename: str) -> StoredFile:
    if settings.STORAGE_TYPE.lower() == "s3":
        return save_file_to_s3(fileobj, filename)
    return save_file_locally(fileobj, filename)


def file_url(document) -> str:
    """Presigned URL for S3 documents, API content path for local ones."""
    if document.storage_type == "s3":
        try:
            return _s3_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": document.s3_bucket, "Key": document.s3_key},
                ExpiresIn=settings.S3_URL_TTL_SECONDS,
            )
        except Exception as exc:
            logger.error(f"Could not presign {document.s3_key}: {exc}")
            raise UpstreamError("Failed to create document URL", error_type=type(exc).__name__) from exc
    return f"/api/documents/{document.id}/content"


def local_file_path(document) -> str:
    if document.storage_type != "local" or not document.local_path:
        raise NotFoundError("Document is not stored locally")
    if not os.path.exists(document.local_path):
        raise NotFoundError("Document file not found")
    return document.local_path


def delete_file(document) -> None:
    """Remove a stored file; failures are logged and never raised."""
    try:
        if document.storage_type == "s3":
            _s3_client().delete_object(Bucket=document.s3_bucket, Key=document.s3_key)
        elif document.local_path and os.path.exists(document.local_path):
            os.remove(document.local_path)
    except Exception as exc:
        logger.warning(f"Could not remove stored file for document {document.id}: {exc}")
