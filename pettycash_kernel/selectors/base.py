"""
Module: pettycash_kernel.selectors.base
Responsibility: Base class for read-only query selectors.  Selectors are the
    read side of the kernel: they take a caller-owned Session, run queries,
    and return frozen DTOs.
Architecture position: Kernel > Selectors.  May import from db/, domain/ and
    models/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - DTO return convention: no ORM instance leaves a selector.

Failure modes:
    - Single-entity reads raise the matching NotFoundError.
    - List reads degrade to an empty list when the database is unreachable
      (logged at WARNING); single-entity and float reads let the error
      propagate.
"""

from abc import ABC
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from pettycash_kernel.logging_config import get_logger

logger = get_logger("selectors")

T = TypeVar("T")


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session

    def _degrading_list(self, query_name: str, run: Callable[[], list[T]]) -> list[T]:
        """Run a list query, returning ``[]`` if storage is unavailable."""
        try:
            return run()
        except OperationalError as exc:
            self.session.rollback()
            logger.warning(
                "list_query_degraded",
                extra={"query": query_name, "error": str(exc.orig)},
            )
            return []
