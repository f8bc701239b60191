import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class StoreService:
    """Shared plumbing for services that talk to the backing store."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _store_call(self, action: str):
        """Roll back and translate store failures into ``UpstreamError``."""
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            code = getattr(getattr(exc, "orig", None), "pgcode", None)
            logger.error(
                f"Store call failed while {action}: "
                f"message={exc} type={type(exc).__name__} code={code}"
            )
            raise UpstreamError(
                f"Failed while {action}",
                error_type=type(exc).__name__,
                code=code,
            ) from exc

    def _commit(self, action: str):
        with self._store_call(action):
            self.db.commit()
