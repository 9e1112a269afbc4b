"""The session handle exposed to request-handling code."""

import threading
from typing import TYPE_CHECKING, Any, Dict, Optional

from .domain import LifeTime
from .stores.base import Visitor

if TYPE_CHECKING:
    from .provider import Provider


class Session(object):
    """
    Reads and writes the server-side data of one session.

    The same instance is shared by all concurrent requests that present the
    same session ID; every call goes straight to the session database.

    Attributes
    ----------
    lifetime : :class:`.LifeTime`
    is_new : bool
        ``True`` if the session was created on this request.

    """

    def __init__(self, sid: str, provider: 'Provider', lifetime: LifeTime,
                 is_new: bool = False) -> None:
        self._sid = sid
        self._provider = provider
        self.lifetime = lifetime
        self.is_new = is_new
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f'Session(id={self._sid!r}, is_new={self.is_new!r})'

    @property
    def id(self) -> str:
        return self._sid

    def has_expired(self) -> bool:
        return self.lifetime.has_expired()

    def get(self, key: str) -> Any:
        """Get the value stored under ``key``, or ``None``."""
        return self._provider.db.get(self._sid, key)

    def get_default(self, key: str, default: Any) -> Any:
        value = self.get(key)
        return default if value is None else value

    def get_string(self, key: str, default: str = '') -> str:
        value = self.get(key)
        return default if value is None else str(value)

    def get_int(self, key: str, default: int = 0) -> int:
        try:
            return int(self.get(key))
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        try:
            return float(self.get(key))
        except (TypeError, ValueError):
            return default

    def get_boolean(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ('1', 'true', 'yes', 'on')
        if isinstance(value, (int, float)):
            return bool(value)
        return default

    def get_all(self) -> Dict[str, Any]:
        """Get a copy of all values in the session."""
        values: Dict[str, Any] = {}
        self.visit(values.__setitem__)
        return values

    def visit(self, visitor: Visitor) -> None:
        self._provider.db.visit(self._sid, visitor)

    def len(self) -> int:
        return self._provider.db.len(self._sid)

    def __len__(self) -> int:
        return self.len()

    def set(self, key: str, value: Any) -> None:
        self._provider.db.set(self._sid, self.lifetime, key, value, False)

    def set_immutable(self, key: str, value: Any) -> None:
        """Set a value that can not be overwritten afterwards."""
        self._provider.db.set(self._sid, self.lifetime, key, value, True)

    def increment(self, key: str, n: int = 1) -> int:
        """Add ``n`` to the integer under ``key``, and get the result."""
        with self._lock:
            value = self.get_int(key) + n
            self.set(key, value)
        return value

    def decrement(self, key: str, n: int = 1) -> int:
        return self.increment(key, -n)

    def delete(self, key: str) -> bool:
        """Remove ``key``; returns whether there was anything to remove."""
        return self._provider.db.delete(self._sid, key)

    def clear(self) -> None:
        self._provider.db.clear(self._sid)

    def destroy(self) -> None:
        """Remove the session from the server, and notify listeners."""
        self._provider.destroy(self._sid)

    def pop(self, key: str, default: Optional[Any] = None) -> Any:
        """Remove ``key`` and get the value it had."""
        with self._lock:
            value = self.get(key)
            if value is None:
                return default
            self.delete(key)
        return value
