"""
Per-key locks for score persistence

Rescoring holds the week lock for (user_id, season, week) and, inside it,
the season lock for (user_id, season). Locks are always taken in that order.
A key's lock is dropped from the table once no thread holds or waits on it.
"""

import threading
from contextlib import contextmanager


class KeyedLockTable:
    """Lazily created re-entrant locks, one per key in use"""

    def __init__(self, name="locks"):
        self.name = name
        self._guard = threading.Lock()
        # key -> [lock, number of threads holding or waiting]
        self._locks = {}

    def _checkout(self, key):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, key):
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key):
        lock = self._checkout(key)
        try:
            with lock:
                yield
        finally:
            self._checkin(key)

    def __contains__(self, key):
        with self._guard:
            return key in self._locks

    def __repr__(self):
        return f"<KeyedLockTable {self.name}: {len(self)} keys>"

    def __len__(self):
        with self._guard:
            return len(self._locks)


week_locks = KeyedLockTable("week")
season_locks = KeyedLockTable("season")
