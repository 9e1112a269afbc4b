"""
Transports for the session token.

A carrier gets the token presented by the client on an :class:`.Exchange`,
and hands a (new) token back to the client. :class:`HeaderCarrier` uses the
``Authorization: Bearer <token>`` header, :class:`CookieCarrier` uses a
cookie. A manager uses exactly one carrier.
"""

import ipaddress
import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Callable, Optional, Tuple

from itsdangerous import URLSafeSerializer

from .domain import ZERO, now
from .exceptions import MalformedAuthHeader
from .exchange import Exchange

logger = logging.getLogger(__name__)

AUTHORIZATION = 'Authorization'
DEFAULT_COOKIE_NAME = 'JWT_SESSION_ID'

CookieHook = Callable[[str, str], str]
"""Called with the cookie name and a value; returns the transformed value."""


class Carrier(ABC):
    """Moves a session token between client and server."""

    reissue_on_read = False
    """Whether the token is handed back on every request, not only new ones."""

    reissue_on_expiration_update = False
    """Whether the token must be handed back when its expiration changes."""

    @abstractmethod
    def extract(self, exchange: Exchange) -> str:
        """Get the token presented by the client, or ``''``."""

    @abstractmethod
    def inject(self, exchange: Exchange, token: str,
               expires: timedelta = ZERO) -> None:
        """Hand ``token`` to the client, valid for ``expires``."""

    @abstractmethod
    def remove(self, exchange: Exchange) -> None:
        """Invalidate the token held by the client."""


class HeaderCarrier(Carrier):
    """
    Carries a bearer token in the ``Authorization`` header.

    Parameters
    ----------
    allow_reclaim : bool
        If set, a new token is also written to the inbound request so that
        code handling the rest of the request sees it.

    """

    def __init__(self, allow_reclaim: bool = False) -> None:
        self.allow_reclaim = allow_reclaim

    def extract(self, exchange: Exchange) -> str:
        """
        Extract the token from an ``Authorization: Bearer <token>`` header.

        Raises
        ------
        :class:`.MalformedAuthHeader`
            Raised if the header is present but not of that form.

        """
        header = exchange.get_header(AUTHORIZATION)
        if not header:
            return ''   # No error, just no token.
        parts = header.split(' ')
        if len(parts) != 2 or parts[0].lower() != 'bearer':
            raise MalformedAuthHeader(
                'Authorization header format must be Bearer {token}'
            )
        return parts[1]

    def inject(self, exchange: Exchange, token: str,
               expires: timedelta = ZERO) -> None:
        value = f'Bearer {token}'
        if self.allow_reclaim:
            exchange.set_request_header(AUTHORIZATION, value)
        exchange.set_response_header(AUTHORIZATION, value)

    def remove(self, exchange: Exchange) -> None:
        exchange.remove_request_header(AUTHORIZATION)
        exchange.remove_response_header(AUTHORIZATION)


def cookie_domain(host: str, disable_subdomain_persistence: bool = False) \
        -> Optional[str]:
    """
    Get the ``Domain`` attribute for a cookie set on a request to ``host``.

    Allows one level of subdomains to share the cookie: a request to
    ``api.example.com`` yields ``.example.com``. Addresses and single-label
    hosts (like ``localhost``) get no domain at all.
    """
    if disable_subdomain_persistence or not host:
        return None
    if host.startswith('['):    # IPv6 literal, with or without port.
        return None
    name = host.rsplit(':', 1)[0]
    try:
        ipaddress.ip_address(name)
        return None
    except ValueError:
        pass
    labels = [label for label in name.split('.') if label]
    if len(labels) < 2:
        return None
    return '.' + '.'.join(labels[-2:])


class CookieCarrier(Carrier):
    """
    Carries the token in a cookie.

    Parameters
    ----------
    name : str
        Name of the cookie.
    encode : callable
        Optional hook applied to the token before it is written.
    decode : callable
        Optional hook applied to the cookie value after it is read. If either
        hook fails, the cookie is treated as absent, so a corrupted cookie
        leads to a fresh session rather than a failed request.
    disable_subdomain_persistence : bool
        If set, the cookie is only sent back to the exact host.
    secure_tls : bool
        If set, the cookie is marked ``Secure`` on HTTPS requests.
    path : str
    same_site : str

    """

    reissue_on_read = True
    reissue_on_expiration_update = True

    def __init__(self, name: str = DEFAULT_COOKIE_NAME,
                 encode: Optional[CookieHook] = None,
                 decode: Optional[CookieHook] = None,
                 disable_subdomain_persistence: bool = False,
                 secure_tls: bool = False, path: str = '/',
                 same_site: Optional[str] = 'Lax') -> None:
        self.name = name
        self.encode = encode
        self.decode = decode
        self.disable_subdomain_persistence = disable_subdomain_persistence
        self.secure_tls = secure_tls
        self.path = path
        self.same_site = same_site

    def extract(self, exchange: Exchange) -> str:
        value = exchange.get_cookie(self.name)
        if not value or self.decode is None:
            return value
        try:
            return self.decode(self.name, value)
        except Exception as e:
            logger.debug('Could not decode cookie %s: %s', self.name, e)
            return ''

    def _encode(self, value: str) -> str:
        if self.encode is None:
            return value
        try:
            return self.encode(self.name, value)
        except Exception as e:
            logger.debug('Could not encode cookie %s: %s', self.name, e)
            return ''

    def inject(self, exchange: Exchange, token: str,
               expires: timedelta = ZERO) -> None:
        """
        Write the cookie.

        ``expires`` of zero yields a cookie that lasts until the browser is
        closed; a negative value deletes the cookie.
        """
        if expires < ZERO:
            self.remove(exchange)
            return
        attributes = self._attributes(exchange)
        if expires > ZERO:
            attributes['expires'] = now() + expires
            attributes['max_age'] = int(expires.total_seconds())
        exchange.set_cookie(self.name, self._encode(token), **attributes)

    def remove(self, exchange: Exchange) -> None:
        attributes = self._attributes(exchange)
        attributes['expires'] = 0
        attributes['max_age'] = 0
        exchange.set_cookie(self.name, '', **attributes)

    def _attributes(self, exchange: Exchange) -> dict:
        return {
            'path': self.path,
            'domain': cookie_domain(exchange.host,
                                    self.disable_subdomain_persistence),
            'httponly': True,
            'secure': self.secure_tls and exchange.is_secure,
            'samesite': self.same_site
        }


def signed_cookie_hooks(secret: str) -> Tuple[CookieHook, CookieHook]:
    """
    Get encode/decode hooks that sign the cookie value.

    The cookie name is used as salt, so a value signed for one cookie is not
    accepted for another.
    """
    serializer = URLSafeSerializer(secret)

    def encode(name: str, value: str) -> str:
        return str(serializer.dumps(value, salt=name))

    def decode(name: str, value: str) -> str:
        return str(serializer.loads(value, salt=name))

    return encode, decode
