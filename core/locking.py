"""
Per-key serialization for the scheduling engine.

On PostgreSQL the engines rely on ``SELECT ... FOR UPDATE`` row locks scoped to a
queue or a professional. Backends without row locks (SQLite for local runs and
the test suite) silently ignore ``select_for_update``, so ``keyed_lock`` falls
back to an in-process lock per key with the same granularity.
"""
import contextlib
import threading

from django.db import connections, DEFAULT_DB_ALIAS


_registry_lock = threading.Lock()
# key -> [RLock, number of holders and waiters]; dropped when nobody needs it
_key_locks = {}


@contextlib.contextmanager
def _held(key):
    with _registry_lock:
        entry = _key_locks.setdefault(key, [threading.RLock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                del _key_locks[key]


def supports_row_locks(using=DEFAULT_DB_ALIAS):
    return connections[using].features.has_select_for_update


@contextlib.contextmanager
def keyed_lock(key, using=DEFAULT_DB_ALIAS):
    """Hold an exclusive lock on ``key`` for the duration of the block.

    A no-op when the database provides row locks; must wrap the whole
    transaction so the lock is released only after commit or rollback.
    """
    if supports_row_locks(using):
        yield
        return

    with _held(key):
        yield


def queue_key(queue_id):
    return f"queue:{queue_id}"


def professional_key(professional_id):
    return f"professional:{professional_id}"
