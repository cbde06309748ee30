import threading
from contextlib import contextmanager

# Fixed pool: machine ids come from requests, so one lock per id would grow forever
LOCK_STRIPES = 64
_stripes = tuple(threading.Lock() for _ in range(LOCK_STRIPES))


def lock_for(machine_id) -> threading.Lock:
    return _stripes[hash(machine_id) % LOCK_STRIPES]


@contextmanager
def machine_lock(machine_id):
    """
    Serialize check-and-write sequences on one machine within this process.

    Unrelated machines may share a stripe; that only costs some waiting.
    Cross-process exclusivity of approved slots is enforced by the
    uq_machine_held_slot constraint.
    """
    with lock_for(machine_id):
        yield
