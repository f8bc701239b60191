import logging
from io import BytesIO
from typing import Iterable, List, Tuple

import pandas as pd
from sqlalchemy.orm import Session

from .passkey_service import PasskeyService
from ..core.config import settings
from ..core.exceptions import ClinicError, ValidationError
from ..schemas.passkey import ImportResult, ImportRowError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("idNumber", "passkey")


def parse_passkey_csv(filename: str, contents: bytes) -> List[Tuple[str, str]]:
    """Read ``(idNumber, passkey)`` rows from an uploaded CSV.

    The whole file is rejected before any row is processed when it is not a
    CSV, cannot be parsed, is empty, or lacks a required column.
    """
    extension = (filename or "").rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""
    if extension != "csv":
        raise ValidationError("Only CSV files are supported")

    try:
        # Everything stays text so passkeys such as 012345 keep their zeros
        df = pd.read_csv(
            BytesIO(contents),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8",
        )
    except pd.errors.EmptyDataError:
        raise ValidationError("CSV file is empty") from None
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise ValidationError(f"Error parsing CSV file: {exc}") from None

    headers = [str(column).strip() for column in df.columns]
    df.columns = headers
    missing = [column for column in REQUIRED_COLUMNS if column not in headers]
    if missing:
        raise ValidationError("CSV must contain 'idNumber' and 'passkey' columns")

    if df.empty:
        raise ValidationError("CSV file is empty")

    return list(zip(df["idNumber"].tolist(), df["passkey"].tolist()))


def import_passkeys(
    db: Session,
    rows: Iterable[Tuple[str, str]],
    batch_size: int = None,
) -> ImportResult:
    """Hash and upsert many passkeys, isolating per-row failures.

    Rows are handled in sequential batches; a failing row is recorded and the
    import moves on.
    """
    rows = list(rows)
    batch_size = batch_size or settings.PASSKEY_IMPORT_BATCH_SIZE
    service = PasskeyService(db)
    result = ImportResult(total=len(rows))

    for start in range(0, len(rows), batch_size):
        batch = rows[start:start + batch_size]
        logger.info(f"Importing passkeys {start + 1}-{start + len(batch)} of {len(rows)}")

        for id_number, passkey in batch:
            result.processed += 1
            try:
                service.set_passkey(id_number, passkey)
                result.successful += 1
            except ClinicError as exc:
                result.failed += 1
                result.errors.append(ImportRowError(id_number=str(id_number), error=exc.message))

    logger.info(
        f"Passkey import finished: {result.successful} of {result.total} succeeded, "
        f"{result.failed} failed"
    )
    return result
