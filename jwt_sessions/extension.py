"""Provides the Flask integration of the session manager."""

from datetime import timedelta
from typing import Optional
import logging

from flask import Flask, Response, g, request
from werkzeug.exceptions import Unauthorized

from . import config as _config
from .config import Config
from .exceptions import SessionNotFound, TokenError
from .exchange import Exchange
from .manager import JWTSessions
from .session import Session

logger = logging.getLogger(__name__)

INVALID_TOKEN = 'Invalid session token'


class Sessions(object):
    """
    Attaches a JWT session to each request.

    Intended for use in a Flask application factory, for example:

    .. code-block:: python

       from flask import Flask
       from jwt_sessions import Sessions


       def create_web_app() -> Flask:
          app = Flask('someapp')
          app.config.from_pyfile('config.py')
          Sessions(app)
          return app


    The session is then available as ``flask.request.jwt_session``. A request
    that presents a token that does not validate is answered with
    ``401 Unauthorized``; a request without a token gets a new session.
    """

    def __init__(self, app: Optional[Flask] = None,
                 config: Optional[Config] = None) -> None:
        """
        Initialize ``app``.

        Parameters
        ----------
        app : :class:`Flask`
        config : :class:`.Config`
            If not given, the configuration is loaded from ``app.config``.

        """
        self._config = config
        self.manager: Optional[JWTSessions] = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """
        Attach the session manager to the Flask app.

        Parameters
        ----------
        app : :class:`Flask`

        """
        _config.init_app(app)
        self.app = app
        cfg = self._config or Config.from_mapping(app.config)
        self.manager = JWTSessions(cfg)
        if self._config is None:
            self.manager.use_database(_config.get_database(app.config))
        app.extensions['jwt_sessions'] = self
        app.before_request(self.start_session)
        app.after_request(self.bind_response)

    def _get_manager(self) -> JWTSessions:
        if self.manager is None:
            raise RuntimeError('Sessions has not been initialized')
        return self.manager

    def start_session(self) -> None:
        """Start the session for the current request."""
        manager = self._get_manager()
        request.jwt_session = None
        if request.method == 'OPTIONS' \
                and not manager.config.enable_auth_on_options:
            return None
        exchange = Exchange(request._get_current_object())
        g.jwt_session_exchange = exchange
        try:
            request.jwt_session = manager.start(exchange)
        except TokenError as e:
            logger.debug('Rejecting session token: %s', e)
            raise Unauthorized(INVALID_TOKEN) from e
        return None

    def bind_response(self, response: Response) -> Response:
        """Write pending session headers and cookies to ``response``."""
        exchange: Optional[Exchange] = g.pop('jwt_session_exchange', None)
        if exchange is not None:
            exchange.bind(response)
        return response

    def _exchange(self) -> Exchange:
        exchange: Optional[Exchange] = g.get('jwt_session_exchange')
        if exchange is None:
            raise SessionNotFound('No session on this request')
        return exchange

    @property
    def current(self) -> Optional[Session]:
        """The session of the current request."""
        return getattr(request, 'jwt_session', None)

    def destroy(self) -> None:
        """Destroy the session of the current request."""
        self._get_manager().destroy(self._exchange())
        request.jwt_session = None

    def shift_expiration(self) -> None:
        self._get_manager().shift_expiration(self._exchange())

    def update_expiration(self, expires: timedelta) -> None:
        self._get_manager().update_expiration(self._exchange(), expires)
