# stockledger/utils/locks.py
import hashlib
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterable, Iterator, Tuple

from sqlalchemy import text
from sqlalchemy.orm import Session


class KeyedLocks:
    """
    Process-wide registry of one lock per stock key.

    ``hold(*keys)`` acquires the locks for all keys in sorted order and
    releases them in reverse, so two writers needing overlapping key sets
    (e.g. opposite-direction transfers) can never deadlock.

    These locks only serialize writers inside one process. Across worker
    processes the same keys are taken as database advisory locks, see
    ``take_advisory_locks``.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, *keys: Tuple) -> Iterator[None]:
        ordered = sorted(set(keys))
        acquired = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def batch_key(variant_id: int) -> Tuple:
    return ("batch", variant_id)


def stock_key(variant_id: int, warehouse_id: int) -> Tuple:
    return ("stock", variant_id, warehouse_id)


def idempotency_lock_key(key: str) -> Tuple:
    return ("idempotency", key)


def advisory_id(key: Tuple) -> int:
    # Stable across processes, unlike hash(); fits a signed bigint
    digest = hashlib.blake2b(repr(key).encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


def take_advisory_locks(db: Session, keys: Iterable[Tuple]) -> None:
    """
    Take a transaction-scoped PostgreSQL advisory lock per key, in the same
    sorted order as ``KeyedLocks.hold``. They are released by the commit or
    rollback that ends the transaction. Other databases are skipped; there
    the in-process locks are the only guard.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    for key in sorted(set(keys)):
        db.execute(text("SELECT pg_advisory_xact_lock(:lock_id)"), {"lock_id": advisory_id(key)})


stock_locks = KeyedLocks()
