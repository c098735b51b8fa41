# utils/ids.py
import itertools
import threading
import time


class IdAllocator:
    """
    Hands out ids of the form ``<prefix>-<seed>-<n>``.

    The seed is the process start time in milliseconds and ``n`` a counter
    shared by every prefix, so two ids allocated in the same run never
    collide regardless of clock resolution.
    """

    def __init__(self, seed: int = None):
        self.seed = seed if seed is not None else int(time.time() * 1000)
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next_id(self, prefix: str) -> str:
        with self._lock:
            n = next(self._counter)
        return f"{prefix}-{self.seed}-{n}"


# Module-level allocator for the running process
id_allocator = IdAllocator()


def new_plan_id() -> str:
    return id_allocator.next_id("plan")
