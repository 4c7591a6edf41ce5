# Overview: Service-layer helpers for locking, retries and statement deadlines.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class DeadlineExceeded(TimeoutError):
    """Raised when a caller-supplied time budget runs out."""


class Deadline:
    """
    Time budget shared by a sequence of external calls.

    timeout=None means no limit.
    """

    def __init__(self, timeout: float | None = None, clock=time.monotonic):
        self._clock = clock
        self.timeout = timeout
        self.expires_at = None if timeout is None else clock() + timeout

    def remaining(self) -> float | None:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self._clock())

    def expired(self) -> bool:
        return self.expires_at is not None and self._clock() >= self.expires_at

    def check(self, operation: str) -> None:
        if self.expired():
            raise DeadlineExceeded(f"{operation} exceeded its {self.timeout}s budget")


@contextmanager
def statement_timeout(seconds: float | None):
    """
    Bound the statements issued inside the block.

    PostgreSQL honors SET LOCAL statement_timeout for the rest of the
    current transaction. SQLite has no equivalent; its busy timeout is set
    on the engine instead, so this is a no-op there.
    """
    if seconds is not None and db.engine.dialect.name == "postgresql":
        ms = max(1, int(seconds * 1000))
        db.session.execute(text(f"SET LOCAL statement_timeout = {ms}"))
    yield


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Only for self-contained operations that
    commit on their own; checkout persistence is never retried.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
