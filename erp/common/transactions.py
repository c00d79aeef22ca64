"""
Commit-or-rollback block for service methods that write several rows.
"""
from contextlib import contextmanager
import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@contextmanager
def service_transaction(db: Session, error_detail: str, conflict_detail: str = "El registro ya existe"):
    """
    Commit when the block finishes. HTTPException is re-raised after a
    rollback, IntegrityError becomes 409 and anything else becomes 500
    with `error_detail` (the driver error is only logged).
    """
    try:
        yield
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Integrity error: {e.orig}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=conflict_detail)
    except Exception as e:
        db.rollback()
        logger.exception(f"{error_detail}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error_detail)
