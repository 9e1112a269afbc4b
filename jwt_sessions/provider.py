"""
Tracks live sessions and the databases that hold their data.

The provider owns the lifetime of each session: it creates sessions, shifts
their deadlines, and destroys them, releasing their data and notifying
destroy listeners.
"""

import logging
import threading
from datetime import timedelta
from typing import Dict, List, Optional

from .domain import DestroyListener, ZERO
from .exceptions import SessionNotFound
from .session import Session
from .stores.base import Database
from .stores.memory import MemDB

logger = logging.getLogger(__name__)


class Provider(object):
    """
    Holds the sessions of one manager.

    Several databases may be registered; the most recently registered one
    governs all session data. The others stay registered so that destroying
    a session also releases anything they still hold for it. Until a
    database is registered, an in-memory one is used.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.RLock()
        self._databases: List[Database] = []
        self._default = MemDB()
        self._listeners: List[DestroyListener] = []
        self._listeners_lock = threading.Lock()

    @property
    def db(self) -> Database:
        """The database governing session data."""
        with self._lock:
            if self._databases:
                return self._databases[-1]
            return self._default

    @property
    def databases(self) -> List[Database]:
        with self._lock:
            return list(self._databases) or [self._default]

    def register_database(self, db: Database) -> None:
        with self._lock:
            self._databases.append(db)

    def register_destroy_listener(self, listener: DestroyListener) -> None:
        with self._listeners_lock:
            self._listeners.append(listener)

    def _new_session(self, sid: str, expires: timedelta) -> Session:
        lifetime = self.db.acquire(sid, expires)
        if lifetime.is_zero():
            # Either the database does not track expiration, or it had no
            # live entry for this ID; start the clock now.
            lifetime.begin(expires)
        return Session(sid, self, lifetime)

    def init(self, sid: str, expires: timedelta) -> Session:
        """Start tracking a new session ``sid``."""
        with self._lock:
            session = self._new_session(sid, expires)
            self._sessions[sid] = session
        return session

    def read(self, sid: str, expires: timedelta) -> Optional[Session]:
        """
        Get the session ``sid``, starting to track it if necessary.

        Returns
        -------
        :class:`.Session` or None
            ``None`` if the session has expired; it is destroyed in passing.

        """
        with self._lock:
            session = self._sessions.get(sid)
            if session is None:
                session = self._new_session(sid, expires)
                self._sessions[sid] = session
                return session
        if session.has_expired():
            logger.debug('Session %s has expired', sid)
            self.destroy(sid)
            return None
        return session

    def update_expiration(self, sid: str, expires: timedelta) -> None:
        """
        Change the deadline of ``sid`` to ``expires`` from now.

        A zero ``expires`` changes nothing; a negative one expires the
        session immediately.

        Raises
        ------
        :class:`.SessionNotFound`
        :class:`.ExpirationUpdateNotSupported`

        """
        with self._lock:
            session = self._sessions.get(sid)
        if session is None:
            raise SessionNotFound(f'No such session: {sid}')
        if expires == ZERO:
            return
        if expires < ZERO:
            session.lifetime.expire_now()
        else:
            session.lifetime.shift(expires)
        self.db.on_update_expiration(sid, expires)

    def _release(self, sid: str) -> None:
        for db in self.databases:
            db.release(sid)

    def _fire_destroy(self, sid: str) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(sid)
            except Exception:
                logger.exception('Destroy listener failed for session %s',
                                 sid)

    def destroy(self, sid: str) -> None:
        """Remove ``sid`` from all databases, then notify listeners."""
        with self._lock:
            tracked = self._sessions.pop(sid, None) is not None
        self._release(sid)
        if tracked:
            self._fire_destroy(sid)

    def destroy_all(self) -> None:
        """
        Destroy every tracked session.

        A failure to release one session does not stop the others from being
        destroyed; the first such failure is raised at the end.
        """
        with self._lock:
            sids = list(self._sessions)
            self._sessions.clear()
        failure: Optional[Exception] = None
        for sid in sids:
            try:
                self._release(sid)
            except Exception as e:
                logger.error('Failed to release session %s: %s', sid, e)
                if failure is None:
                    failure = e
            self._fire_destroy(sid)
        if failure is not None:
            raise failure

    def destroy_expired(self) -> int:
        """Destroy all tracked sessions that have expired; get how many."""
        with self._lock:
            expired = [sid for sid, session in self._sessions.items()
                       if session.has_expired()]
        for sid in expired:
            self.destroy(sid)
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
