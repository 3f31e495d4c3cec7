"""
Per-key locks and the unit of work.

Balance and stock are the only shared mutable state. Every
mutation of either happens inside unit_of_work(), which:

1. Acquires the locks for the given keys in sorted order,
   giving up with Busy after the configured timeout
2. Yields the session to the caller
3. Commits on success, rolls back on any exception
4. Releases the locks after the commit or rollback

Holding the lock across the commit is what makes the
check-then-debit of a purchase atomic: a second request for
the same student cannot read the balance until the first
request's debit is durable.

Locks are per process. Multi-process deployments rely on the
row locks taken with SELECT ... FOR UPDATE in the services.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from sqlalchemy.orm import Session

from points_ledger.config import get_settings
from points_ledger.errors import Busy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def student_key(student_id: int) -> str:
    return f"student:{student_id}"


def item_key(item_id: int) -> str:
    return f"item:{item_id}"


class LockRegistry:
    """
    Hands out one lock per key while someone needs it.

    An entry is counted for every holder and waiter and is
    dropped when the last of them leaves, so keys built from
    arbitrary request ids do not accumulate.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
                self._users[key] = 0
            self._users[key] += 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    @contextmanager
    def hold(self, keys: list[str], timeout: float) -> Iterator[None]:
        """
        Hold every lock in `keys` for the duration of the block.

        Keys are taken in sorted order so two callers needing the
        same pair can never deadlock. On timeout the locks already
        taken are released and Busy is raised.
        """
        checked_out: list[str] = []
        acquired: list[threading.Lock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._checkout(key)
                checked_out.append(key)
                if not lock.acquire(timeout=timeout):
                    logger.warning("lock timeout on %s after %.2fs", key, timeout)
                    raise Busy(key)
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in checked_out:
                self._checkin(key)


registry = LockRegistry()


@contextmanager
def unit_of_work(
    db: Session,
    keys: list[str],
    timeout: float | None = None,
) -> Iterator[Session]:
    """Run a locked, all-or-nothing block against `db`."""
    if timeout is None:
        timeout = get_settings().LOCK_TIMEOUT_SECONDS

    with registry.hold(keys, timeout):
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise


def call_with_busy_retry(
    operation: Callable[[], T],
    attempts: int | None = None,
    base_delay: float | None = None,
) -> T:
    """
    Call `operation`, retrying on Busy with exponential backoff.

    Any other error propagates immediately. After the last
    attempt the Busy error itself propagates.
    """
    settings = get_settings()
    if attempts is None:
        attempts = settings.BUSY_RETRY_ATTEMPTS
    if base_delay is None:
        base_delay = settings.BUSY_RETRY_BASE_DELAY

    attempt = 1
    while True:
        try:
            return operation()
        except Busy:
            if attempt >= attempts:
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.info("busy, retry %d/%d in %.2fs", attempt, attempts, delay)
            time.sleep(delay)
            attempt += 1
