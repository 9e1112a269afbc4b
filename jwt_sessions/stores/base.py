"""
Contract for session databases.

Every backend keeps, per session ID, a bag of key/value pairs. The
:class:`.Provider` decides when a session is created and destroyed; the
database only holds the data.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Callable

from ..domain import LifeTime

Visitor = Callable[[str, Any], None]


class Database(ABC):
    """Abstract base for session databases."""

    @abstractmethod
    def acquire(self, sid: str, expires: timedelta) -> LifeTime:
        """
        Allocate storage for a session.

        Parameters
        ----------
        sid : str
            Session ID.
        expires : :class:`timedelta`
            Configured lifetime of new sessions.

        Returns
        -------
        :class:`.LifeTime`
            The stored lifetime, if the database already knew ``sid`` and
            tracks expiration itself; otherwise a zero lifetime, which lets
            the provider start the clock.

        """

    @abstractmethod
    def on_update_expiration(self, sid: str, expires: timedelta) -> None:
        """
        Update the server-side expiration of ``sid``.

        Raises
        ------
        :class:`.ExpirationUpdateNotSupported`
            Raised by databases that cannot honor the update.

        """

    @abstractmethod
    def set(self, sid: str, lifetime: LifeTime, key: str, value: Any,
            immutable: bool) -> None:
        """
        Store ``value`` under ``key``.

        An immutable entry can not be overwritten afterwards; attempts to do
        so are ignored.
        """

    @abstractmethod
    def get(self, sid: str, key: str) -> Any:
        """Get the value of ``key``, or ``None``."""

    @abstractmethod
    def visit(self, sid: str, visitor: Visitor) -> None:
        """Call ``visitor(key, value)`` for each entry, in no given order."""

    @abstractmethod
    def len(self, sid: str) -> int:
        """Get the number of entries stored for ``sid``."""

    @abstractmethod
    def delete(self, sid: str, key: str) -> bool:
        """Remove ``key``; returns whether there was anything to remove."""

    @abstractmethod
    def clear(self, sid: str) -> None:
        """Remove all entries of ``sid``, but keep the session."""

    @abstractmethod
    def release(self, sid: str) -> None:
        """Remove the session ``sid`` entirely."""
