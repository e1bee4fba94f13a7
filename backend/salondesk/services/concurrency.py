# Overview: Concurrency helpers; row locks, retry on conflicts, per-entity in-process serialization.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import ConcurrencyTimeout


APPOINTMENT = "appointment"
COMMANDA = "commanda"

# Locks are always taken appointment-first so two callers never wait on each other crosswise
_LOCK_ORDER = {APPOINTMENT: 0, COMMANDA: 1}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    EntityLocks covers the single-process SQLite case.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Each retry starts from a rolled-back
    session, so the operation re-reads current state.
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


class EntityLocks:
    """
    One re-entrant lock per (entity kind, id).

    Mutations on the same appointment or commanda are applied one at a time
    inside this process; the database row lock and version counter take over
    across processes. A key's lock lives only while some caller holds or
    waits for it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, holders + waiters]
        self._locks: dict[tuple[str, int], list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: tuple[str, int]) -> threading.RLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: tuple[str, int]) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, *keys: tuple[str, int], timeout: float = 10.0):
        wanted = {key for key in keys if key[1] is not None}
        ordered = sorted(wanted, key=lambda key: (_LOCK_ORDER.get(key[0], 99), key[1]))
        acquired = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                if not lock.acquire(timeout=timeout):
                    self._checkin(key)
                    raise ConcurrencyTimeout(
                        f"Timed out waiting for {key[0]} {key[1]}",
                        details={"entity": key[0], "id": key[1], "timeout": timeout},
                    )
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)


entity_locks = EntityLocks()
