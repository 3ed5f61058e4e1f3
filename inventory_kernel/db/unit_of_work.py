"""
Module: inventory_kernel.db.unit_of_work
Responsibility: Transaction boundary for every kernel operation, with retry
    of the whole operation on write conflicts.
Architecture position: Kernel > DB.  Injected into every service.  Services
    only ever flush; UnitOfWork owns commit and rollback.

Invariants enforced:
    - One operation = one transaction.  Either every stock row change, the
      paired movements and the request update commit together, or none do.
    - Nested begin()/run() calls join the outer transaction, so a service
      composed of other services still commits exactly once.
    - Retries re-run the whole operation from a fresh session; nothing from
      a failed attempt survives.

Retryable conflicts:
    - sqlalchemy.orm.exc.StaleDataError (StockRow.version moved underneath us)
    - PostgreSQL serialization failure (40001) and deadlock (40P01)
    - SQLite "database is locked" after the busy timeout

Failure modes:
    - OptimisticLockError when conflicts persist after max_attempts.
    - RuntimeError when ``session`` is read outside an active transaction.
    - Every other exception propagates unchanged after rollback.

Session state is thread-local, so a single UnitOfWork may be shared by
worker threads; each thread gets its own session and transaction.
"""

import threading
import time
from contextlib import contextmanager
from typing import Callable, Generator, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from inventory_kernel.exceptions import OptimisticLockError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.unit_of_work")

T = TypeVar("T")

_RETRYABLE_PGCODES = frozenset({"40001", "40P01"})


def is_retryable_conflict(exc: BaseException) -> bool:
    """True when exc is a write conflict that a fresh attempt may avoid."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        if getattr(orig, "pgcode", None) in _RETRYABLE_PGCODES:
            return True
        if "database is locked" in str(orig).lower():
            return True
    return False


class UnitOfWork:
    """
    Transaction scope plus conflict retry.

    Contract:
        ``begin()`` opens (or joins) a transaction and yields its Session.
        ``run(operation)`` calls ``operation(session)`` inside a transaction
        and retries it on write conflicts.

    Guarantees:
        - Commit on normal exit of the outermost scope, rollback on any
          exception.
        - A joined scope neither commits nor rolls back; the outermost
          scope decides.

    Non-goals:
        - Does not retry business errors (insufficient stock, invalid
          transitions).  Those propagate on the first attempt.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        max_attempts: int = 3,
        backoff_seconds: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._session_factory = session_factory
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._local = threading.local()

    @property
    def session(self) -> Session:
        """The Session of the active transaction on this thread."""
        session = getattr(self._local, "session", None)
        if session is None:
            raise RuntimeError("No active transaction. Use UnitOfWork.begin() or run().")
        return session

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "session", None) is not None

    @contextmanager
    def begin(self) -> Generator[Session, None, None]:
        """Open a transaction, or join the one already open on this thread."""
        existing = getattr(self._local, "session", None)
        if existing is not None:
            yield existing
            return

        session = self._session_factory()
        self._local.session = session
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            self._local.session = None
            session.close()

    def run(self, operation: Callable[[Session], T], name: str = "operation") -> T:
        """Run ``operation`` in a transaction, retrying on write conflicts.

        When a transaction is already open on this thread the operation joins
        it and is not retried here; the outermost run() retries the whole.
        """
        if self.in_transaction:
            return operation(self.session)

        attempt = 0
        while True:
            attempt += 1
            try:
                with self.begin() as session:
                    return operation(session)
            except Exception as exc:
                if not is_retryable_conflict(exc):
                    raise
                if attempt >= self._max_attempts:
                    logger.error(
                        "transaction_retries_exhausted",
                        extra={
                            "operation": name,
                            "attempts": attempt,
                            "error": type(exc).__name__,
                        },
                    )
                    raise OptimisticLockError(name, attempt) from exc
                logger.warning(
                    "transaction_conflict_retry",
                    extra={
                        "operation": name,
                        "attempt": attempt,
                        "max_attempts": self._max_attempts,
                        "error": type(exc).__name__,
                    },
                )
                self._sleep(self._backoff_seconds * attempt)
