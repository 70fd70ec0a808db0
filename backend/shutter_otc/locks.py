"""Per-session mutual exclusion for the settlement step."""

import threading
from contextlib import contextmanager

_guard = threading.Lock()
# session_id -> [lock, holders]; entries are dropped once nobody holds or waits
_locks: dict[str, list] = {}


@contextmanager
def session_lock(session_id: str):
    """Serialize callers that share a session id within this process."""
    with _guard:
        entry = _locks.setdefault(session_id, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _guard:
            entry[1] -= 1
            if entry[1] == 0:
                _locks.pop(session_id, None)


def active_session_locks() -> int:
    """Number of sessions that currently have a lock entry."""
    with _guard:
        return len(_locks)
