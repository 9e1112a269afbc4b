"""Core concepts shared by the token codec, the stores and the manager."""

from typing import Any, Callable, Dict, NamedTuple, Optional
from datetime import datetime, timedelta

from pytz import UTC

DestroyListener = Callable[[str], None]
"""Called with the session ID once a session has been removed entirely."""

ZERO = timedelta(0)


def now() -> datetime:
    """Get the current time, in UTC."""
    return datetime.now(tz=UTC)


def epoch(t: datetime) -> int:
    """Convert a :class:`.datetime` to UNIX time."""
    return int(t.timestamp())


def from_epoch(t: Any) -> datetime:
    """Get a :class:`datetime` from a UNIX timestamp."""
    return datetime.fromtimestamp(int(t), tz=UTC)


class SessionClaims(NamedTuple):
    """The claims carried by a session token."""

    session_id: str
    """Identifies the server-side session entry."""

    expires: Optional[datetime] = None
    """Value of the ``exp`` claim, if the token expires at all."""

    issued_at: Optional[datetime] = None
    """Value of the ``iat`` claim."""

    def to_dict(self) -> Dict[str, Any]:
        """Generate a JWT payload from these claims."""
        data: Dict[str, Any] = {'session_id': self.session_id}
        if self.expires is not None:
            data['exp'] = epoch(self.expires)
        if self.issued_at is not None:
            data['iat'] = epoch(self.issued_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionClaims':
        """
        Load claims from a decoded JWT payload.

        Raises
        ------
        :class:`ValueError`
            Raised if the payload does not carry a usable ``session_id``.

        """
        session_id = data.get('session_id')
        if not isinstance(session_id, str) or not session_id:
            raise ValueError('Payload has no session_id claim')
        expires = data.get('exp')
        issued_at = data.get('iat')
        return cls(
            session_id=session_id,
            expires=from_epoch(expires) if expires is not None else None,
            issued_at=from_epoch(issued_at) if issued_at is not None else None
        )


class LifeTime(object):
    """
    Expiration deadline of a server-side session.

    A lifetime without a deadline never expires. Every update replaces the
    deadline outright.
    """

    def __init__(self, expires_at: Optional[datetime] = None) -> None:
        self.expires_at = expires_at

    def __repr__(self) -> str:
        return f'LifeTime(expires_at={self.expires_at!r})'

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, LifeTime):
            return NotImplemented
        return self.expires_at == other.expires_at

    def is_zero(self) -> bool:
        """Whether no deadline has been set."""
        return self.expires_at is None

    def begin(self, expires: timedelta) -> None:
        """Start counting down ``expires`` from now; ``<= 0`` means never."""
        if expires > ZERO:
            self.expires_at = now() + expires
        else:
            self.expires_at = None

    def shift(self, expires: timedelta) -> None:
        """Move the deadline to ``expires`` from now, if ``expires > 0``."""
        if expires > ZERO:
            self.expires_at = now() + expires

    def expire_now(self) -> None:
        """Set the deadline to a moment that has already passed."""
        self.expires_at = now() - timedelta(microseconds=1)

    def has_expired(self) -> bool:
        """Whether the deadline has passed."""
        if self.expires_at is None:
            return False
        return self.expires_at <= now()

    def duration_until_expiration(self) -> timedelta:
        """Time remaining before the deadline; zero for "never"."""
        if self.expires_at is None:
            return ZERO
        return self.expires_at - now()
