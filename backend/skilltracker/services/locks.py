import threading
import zlib
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.orm import Session

from skilltracker.models.entities import InstrumentType

_registry_lock = threading.Lock()
# key -> [lock, number of holders and waiters]; entries go away when the count drops to zero
_locks: dict[tuple[int, str], list] = {}


@contextmanager
def _local_lock(key: tuple[int, str]) -> Iterator[None]:
    with _registry_lock:
        entry = _locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                del _locks[key]


def advisory_key(user_id: int, instrument: InstrumentType) -> int:
    # stable across processes, fits a signed bigint
    return ((user_id & 0x7FFFFFFF) << 32) | zlib.crc32(instrument.value.encode("utf-8"))


@contextmanager
def aggregation_lock(db: Session, user_id: int, instrument: InstrumentType) -> Iterator[None]:
    """Serialize snapshot computation for one (user, instrument) pair.

    Threads of this process wait on a keyed lock; on PostgreSQL a
    transaction-scoped advisory lock also holds off other API processes and
    Celery workers until the caller commits or rolls back.
    """
    with _local_lock((user_id, instrument.value)):
        if db.get_bind().dialect.name == "postgresql":
            db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": advisory_key(user_id, instrument)})
        yield
