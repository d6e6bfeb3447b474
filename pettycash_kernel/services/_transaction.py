"""
Shared commit/rollback handling for write services.

Every public write method runs inside ``write_scope``.  With
``auto_commit=True`` the scope owns the transaction: commit on success,
rollback and re-raise on failure.  With ``auto_commit=False`` the caller owns
it and the scope only translates driver errors.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from pettycash_kernel.exceptions import StorageUnavailableError
from pettycash_kernel.logging_config import get_logger

logger = get_logger("services.transaction")


@contextmanager
def write_scope(session: Session, operation: str, auto_commit: bool = True) -> Iterator[None]:
    try:
        yield
        if auto_commit:
            session.commit()
            logger.debug("transaction_committed", extra={"operation": operation})
    except OperationalError as exc:
        if auto_commit:
            session.rollback()
        logger.error(
            "storage_unavailable",
            extra={"operation": operation},
            exc_info=True,
        )
        raise StorageUnavailableError(operation, str(exc.orig)) from exc
    except Exception:
        if auto_commit:
            session.rollback()
            logger.warning("transaction_rolled_back", extra={"operation": operation})
        raise
