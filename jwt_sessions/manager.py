"""
The session lifecycle manager.

JWT sessions work mostly like regular cookie sessions, but the session ID is
resolved from a signed token rather than from an opaque cookie value. On
each request, :meth:`.JWTSessions.start` resolves the session ID carried by
the client, or starts a new session and hands the client a fresh token.
"""

import logging
from datetime import timedelta
from typing import Optional, cast

from .carriers import Carrier
from .config import Config
from .domain import DestroyListener, SessionClaims, ZERO, now
from .exceptions import MalformedAuthHeader, MalformedToken, \
    SessionNotFound, TokenError
from .exchange import Exchange
from .provider import Provider
from .session import Session
from .stores.base import Database

logger = logging.getLogger(__name__)


def _client_expires(expires: timedelta) -> timedelta:
    # Sessions that last as long as the browser session get a cookie
    # without an expiry date.
    return max(expires, ZERO)


class JWTSessions(object):
    """
    Manages server-side sessions addressed by signed tokens.

    Parameters
    ----------
    config : :class:`.Config`

    Raises
    ------
    :class:`.ConfigurationError`
        Raised if ``config`` is unusable.

    """

    def __init__(self, config: Config) -> None:
        self.config = config.validate()
        self.provider = Provider()

    @property
    def carrier(self) -> Carrier:
        return cast(Carrier, self.config.carrier)

    def use_database(self, db: Database) -> None:
        """Register a session database; it governs all session data."""
        self.provider.register_database(db)

    def on_destroy(self, *listeners: DestroyListener) -> None:
        """
        Register one or more destroy listeners.

        A destroy listener is called with the session ID once the session has
        been removed from the server and its token invalidated. Listeners are
        called synchronously; a slow listener should hand its work off to a
        thread of its own. Exceptions raised by listeners are logged.
        """
        for listener in listeners:
            self.provider.register_destroy_listener(listener)

    def token_for(self, sid: str) -> str:
        """Generate the token that the client will carry for ``sid``."""
        if self.config.codec is None:
            return sid
        return self.config.codec.serialize(
            SessionClaims(session_id=sid, issued_at=now())
        )

    def _update_token(self, exchange: Exchange, sid: str,
                      expires: timedelta) -> None:
        self.carrier.inject(exchange, self.token_for(sid), expires)

    def session_id(self, exchange: Exchange) -> str:
        """
        Resolve the session ID presented on ``exchange``.

        A missing token, a malformed ``Authorization`` header or a token that
        is not a JWT at all mean that there is no session.

        Raises
        ------
        :class:`.InvalidToken`
            Raised if a token was presented but could not be validated. The
            caller should reject the request.

        """
        try:
            token = self.carrier.extract(exchange)
        except MalformedAuthHeader as e:
            logger.debug('Ignoring authorization header: %s', e)
            return ''
        if not token:
            return ''
        if self.config.codec is None:
            return token
        try:
            claims: Optional[SessionClaims] = self.config.codec.parse(token)
        except MalformedToken as e:
            logger.debug('Ignoring session token: %s', e)
            return ''
        return claims.session_id if claims is not None else ''

    def start(self, exchange: Exchange) -> Session:
        """Get the session of this request, starting a new one if needed."""
        sid = self.session_id(exchange)
        if sid:
            session = self.provider.read(sid, self.config.expires)
            if session is not None:
                session.is_new = False
                if self.carrier.reissue_on_read:
                    remaining = session.lifetime.duration_until_expiration()
                    self._update_token(exchange, sid, remaining)
                return session

        sid = self.config.session_id_generator()
        session = self.provider.init(sid, self.config.expires)
        session.is_new = True
        logger.debug('Started new session %s', sid)
        self._update_token(exchange, sid, _client_expires(self.config.expires))
        return session

    def shift_expiration(self, exchange: Exchange) -> None:
        """Move the deadline of the session by the configured lifetime."""
        self.update_expiration(exchange, self.config.expires)

    def update_expiration(self, exchange: Exchange,
                          expires: timedelta) -> None:
        """
        Move the deadline of the session to ``expires`` from now.

        A negative ``expires`` expires the session immediately.

        Raises
        ------
        :class:`.SessionNotFound`
            Raised if there is no session on ``exchange``.
        :class:`.ExpirationUpdateNotSupported`
            Raised if the database cannot update the expiration.

        """
        sid = self.session_id(exchange)
        if not sid:
            raise SessionNotFound('No session on this request')
        reissue = self.carrier.reissue_on_expiration_update
        try:
            self.provider.update_expiration(sid, expires)
        except Exception:
            if reissue and expires < ZERO:
                self.carrier.remove(exchange)
            raise
        if reissue and expires != ZERO:
            self._update_token(exchange, sid, expires)

    def destroy(self, exchange: Exchange) -> None:
        """
        Destroy the session of this request, and invalidate its token.

        A token that does not validate is stripped all the same.
        """
        try:
            sid = self.session_id(exchange)
        except TokenError as e:
            logger.debug('Stripping rejected session token: %s', e)
            sid = ''
        self.carrier.remove(exchange)
        if sid:
            self.destroy_by_id(sid)

    def destroy_by_id(self, sid: str) -> None:
        """Destroy the session ``sid``; its token is left with the client."""
        self.provider.destroy(sid)

    def destroy_all(self) -> None:
        """Destroy all sessions."""
        self.provider.destroy_all()

    def destroy_expired(self) -> int:
        """Destroy all sessions that have expired; get how many."""
        return self.provider.destroy_expired()
