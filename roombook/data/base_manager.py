import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from roombook.errors import Conflict
from roombook.utils.validation import BookingValidator

logger = logging.getLogger("roombook.data")


class BaseManager:
    """Shared plumbing for the SQLAlchemy-backed managers.

    Each manager owns its session and its own ``BookingValidator``.
    """

    def __init__(self, db: Session, validator: Optional[BookingValidator] = None):
        self.db = db
        self.validator = validator or BookingValidator()

    def _commit(self, req_id, action: str, conflict_detail: Optional[str] = None) -> None:
        """Commit, rolling back on failure.

        Unique-key violations surface as ``Conflict``; any other database error
        becomes a 500.
        """
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(f"[{req_id}] Integrity error while trying to {action}: {exc.orig}")
            raise Conflict(conflict_detail or f"Could not {action}: duplicate value.")
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"[{req_id}] Database error while trying to {action}: {exc}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to {action}.",
            )
