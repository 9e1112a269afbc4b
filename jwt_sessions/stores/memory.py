"""
In-memory session database.

This is the reference database, and the default when no other database has
been registered. Nothing is persisted and nothing expires on its own: the
lifetime of each session is tracked by the :class:`.Provider`.
"""

import copy
import threading
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Dict, Generator, Iterator, NamedTuple, Optional

from .base import Database, Visitor
from ..domain import LifeTime


class RWLock(object):
    """
    A readers/writer lock.

    Writers wait for readers to drain; once a writer is waiting, new readers
    wait for it.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Generator[None, None, None]:
        """Hold the lock in shared mode."""
        with self._cond:
            while self._writing or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Generator[None, None, None]:
        """Hold the lock exclusively."""
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writing or self._readers > 0:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class Entry(NamedTuple):
    """A single key/value pair in a :class:`.MemStore`."""

    key: str
    value: Any
    immutable: bool = False

    def get_value(self) -> Any:
        """Get the value; immutable values are handed out as copies."""
        if self.immutable:
            return copy.deepcopy(self.value)
        return self.value


class MemStore(object):
    """Thread-safe bag of values belonging to one session."""

    def __init__(self) -> None:
        self._entries: Dict[str, Entry] = {}
        self._lock = threading.Lock()

    def save(self, key: str, value: Any, immutable: bool = False) -> bool:
        """Store ``value`` under ``key``; returns ``False`` if refused."""
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None and existing.immutable:
                return False
            self._entries[key] = Entry(key, value, immutable)
            return True

    def get_entry(self, key: str) -> Optional[Entry]:
        with self._lock:
            return self._entries.get(key)

    def get(self, key: str) -> Any:
        entry = self.get_entry(key)
        return entry.get_value() if entry is not None else None

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def reset(self) -> None:
        with self._lock:
            self._entries = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        """Iterate over a snapshot of the entries."""
        with self._lock:
            entries = list(self._entries.values())
        return iter(entries)


class MemDB(Database):
    """
    Keeps session data in a dict of :class:`.MemStore`.

    The top-level mapping is guarded by a readers/writer lock: creating and
    releasing sessions is exclusive, while everything else only needs a
    shared lock to find the session's own store. Reads for unknown sessions
    return empty values instead of raising.
    """

    def __init__(self) -> None:
        self._values: Dict[str, MemStore] = {}
        self._lock = RWLock()

    @contextmanager
    def _store(self, sid: str) -> Generator[Optional[MemStore], None, None]:
        """Look up the store of ``sid``, holding the shared lock."""
        with self._lock.read():
            yield self._values.get(sid)

    def acquire(self, sid: str, expires: timedelta) -> LifeTime:
        with self._lock.write():
            self._values[sid] = MemStore()
        return LifeTime()

    def on_update_expiration(self, sid: str, expires: timedelta) -> None:
        # The provider manages the lifetime of in-memory sessions.
        return None

    def set(self, sid: str, lifetime: LifeTime, key: str, value: Any,
            immutable: bool) -> None:
        with self._store(sid) as store:
            if store is not None:
                store.save(key, value, immutable)

    def get(self, sid: str, key: str) -> Any:
        with self._store(sid) as store:
            return store.get(key) if store is not None else None

    def visit(self, sid: str, visitor: Visitor) -> None:
        with self._store(sid) as store:
            entries = list(store) if store is not None else []
        for entry in entries:
            visitor(entry.key, entry.get_value())

    def len(self, sid: str) -> int:
        with self._store(sid) as store:
            return len(store) if store is not None else 0

    def delete(self, sid: str, key: str) -> bool:
        with self._store(sid) as store:
            return store.remove(key) if store is not None else False

    def clear(self, sid: str) -> None:
        with self._store(sid) as store:
            if store is not None:
                store.reset()

    def release(self, sid: str) -> None:
        with self._lock.write():
            self._values.pop(sid, None)

    def __contains__(self, sid: str) -> bool:
        with self._store(sid) as store:
            return store is not None
