"""Configuration of the session manager."""

import uuid
from datetime import timedelta
from typing import Any, Callable, Mapping, NamedTuple, Optional

from .carriers import Carrier, CookieCarrier, HeaderCarrier, \
    DEFAULT_COOKIE_NAME, signed_cookie_hooks
from .domain import ZERO
from .exceptions import ConfigurationError
from .stores.base import Database
from .stores.memory import MemDB
from .stores.redis import RedisDB
from .tokens import TokenCodec

DEFAULTS = {
    'JWT_SESSION_SECRET': None,
    'JWT_SESSION_ALGORITHM': 'HS256',
    'JWT_SESSION_EXPIRES': '7200',
    'JWT_SESSION_ALLOW_RECLAIM': '0',
    'JWT_SESSION_CARRIER': 'header',
    'JWT_SESSION_COOKIE_NAME': DEFAULT_COOKIE_NAME,
    'JWT_SESSION_COOKIE_SIGNED': '0',
    'JWT_SESSION_COOKIE_SECURE_TLS': '1',
    'JWT_SESSION_DISABLE_SUBDOMAIN_PERSISTENCE': '0',
    'JWT_SESSION_ENABLE_AUTH_ON_OPTIONS': '0',
    'JWT_SESSION_VERIFY_EXPIRATION': '1',
    'JWT_SESSION_LEEWAY': '0',
    'JWT_SESSION_STORE': 'memory',
    'REDIS_HOST': 'localhost',
    'REDIS_PORT': '6379',
    'REDIS_DATABASE': '0',
    'REDIS_CLUSTER': '0',
}


def default_session_id() -> str:
    """Generate a random session ID."""
    return str(uuid.uuid4())


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


class Config(NamedTuple):
    """Configuration for :class:`.JWTSessions`. Call :meth:`validate` first."""

    codec: Optional[TokenCodec] = None
    """
    Signs and validates session tokens.

    Required for the header carrier. Without a codec, a cookie carries the
    session ID itself.
    """

    allow_reclaim: bool = False
    """Whether new tokens are also written to the inbound request."""

    expires: timedelta = ZERO
    """
    Lifetime of new sessions.

    Zero means the session never expires; a negative value means it lasts
    as long as the browser session (cookie carrier only).
    """

    session_id_generator: Optional[Callable[[], str]] = None
    """Generates new session IDs; random UUIDs by default."""

    carrier: Optional[Carrier] = None
    """Transports the token; a :class:`.HeaderCarrier` by default."""

    enable_auth_on_options: bool = False
    """Whether ``OPTIONS`` requests get a session too."""

    def validate(self) -> 'Config':
        """Get a copy with missing fields filled in."""
        changes: dict = {}
        if self.codec is not None:
            changes['codec'] = self.codec.validate()
        if self.session_id_generator is None:
            changes['session_id_generator'] = default_session_id
        carrier = self.carrier
        if carrier is None:
            carrier = changes['carrier'] = HeaderCarrier(self.allow_reclaim)
        if isinstance(carrier, HeaderCarrier) and self.codec is None:
            raise ConfigurationError('Bearer tokens require a token codec')
        return self._replace(**changes)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> 'Config':
        """Load the configuration from e.g. a Flask app config."""
        def get(key: str) -> Any:
            return config.get(key, DEFAULTS[key])

        secret = get('JWT_SESSION_SECRET') or config.get('JWT_SECRET')
        carrier_name = str(get('JWT_SESSION_CARRIER')).lower()
        allow_reclaim = _flag(get('JWT_SESSION_ALLOW_RECLAIM'))

        codec: Optional[TokenCodec] = None
        if secret is not None:
            codec = TokenCodec(
                secret=secret,
                signing_method=get('JWT_SESSION_ALGORITHM') or None,
                verify_expiration=_flag(get('JWT_SESSION_VERIFY_EXPIRATION')),
                leeway=int(get('JWT_SESSION_LEEWAY'))
            )

        carrier: Carrier
        if carrier_name == 'header':
            if codec is None:
                raise ConfigurationError('Missing JWT_SESSION_SECRET')
            carrier = HeaderCarrier(allow_reclaim)
        elif carrier_name == 'cookie':
            encode = decode = None
            if _flag(get('JWT_SESSION_COOKIE_SIGNED')):
                if secret is None:
                    raise ConfigurationError('Missing JWT_SESSION_SECRET')
                encode, decode = signed_cookie_hooks(secret)
            carrier = CookieCarrier(
                name=get('JWT_SESSION_COOKIE_NAME'),
                encode=encode,
                decode=decode,
                disable_subdomain_persistence=_flag(
                    get('JWT_SESSION_DISABLE_SUBDOMAIN_PERSISTENCE')
                ),
                secure_tls=_flag(get('JWT_SESSION_COOKIE_SECURE_TLS'))
            )
        else:
            raise ConfigurationError(f'Unknown carrier: {carrier_name}')

        return cls(
            codec=codec,
            allow_reclaim=allow_reclaim,
            expires=timedelta(seconds=int(get('JWT_SESSION_EXPIRES'))),
            carrier=carrier,
            enable_auth_on_options=_flag(
                get('JWT_SESSION_ENABLE_AUTH_ON_OPTIONS')
            )
        )


def init_app(app: Any) -> None:
    """Set default configuration parameters for an application instance."""
    for key, value in DEFAULTS.items():
        app.config.setdefault(key, value)


def get_database(config: Mapping[str, Any]) -> Database:
    """Get the session database described by ``config``."""
    store = str(config.get('JWT_SESSION_STORE',
                           DEFAULTS['JWT_SESSION_STORE'])).lower()
    if store == 'memory':
        return MemDB()
    if store == 'redis':
        return RedisDB(
            host=config.get('REDIS_HOST', DEFAULTS['REDIS_HOST']),
            port=int(config.get('REDIS_PORT', DEFAULTS['REDIS_PORT'])),
            db=int(config.get('REDIS_DATABASE', DEFAULTS['REDIS_DATABASE'])),
            cluster=_flag(config.get('REDIS_CLUSTER',
                                     DEFAULTS['REDIS_CLUSTER']))
        )
    raise ConfigurationError(f'Unknown session store: {store}')
