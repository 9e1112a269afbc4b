"""
Server-side sessions addressed by signed tokens.

The client carries a JSON web token that names its session, either as a
bearer token in the ``Authorization`` header or in a cookie; the session data
itself stays on the server, in a pluggable session database.

Quick start
-----------
For typical use-cases, you will need to do the following:

1. Install this package into your virtual environment.
2. Set ``JWT_SESSION_SECRET`` in your application config.
3. Install :class:`jwt_sessions.Sessions` onto your application. This will
   make the current :class:`.Session` available on the Flask request proxy
   object as ``flask.request.jwt_session``.

.. code-block:: python

   # yourapp/factory.py
   from flask import Flask
   from jwt_sessions import Sessions


   def create_web_app() -> Flask:
       app = Flask('foo')
       app.config['JWT_SESSION_SECRET'] = 'foosecret'
       Sessions(app)    # <- Install the extension.
       return app

Outside of Flask, use :class:`.JWTSessions` directly, with a
:class:`.Config` and an :class:`.Exchange` wrapping each werkzeug request.
Set ``JWT_SESSION_STORE=redis`` (and ``REDIS_HOST`` etc.) to keep session
data in Redis rather than in memory.
"""

from .carriers import Carrier, CookieCarrier, HeaderCarrier, \
    signed_cookie_hooks
from .config import Config
from .domain import LifeTime, SessionClaims
from .exceptions import AlgorithmMismatch, ExpiredToken, \
    ExpirationUpdateNotSupported, InvalidToken, MalformedAuthHeader, \
    MalformedToken, SessionNotFound, TokenError
from .exchange import Exchange
from .extension import Sessions
from .manager import JWTSessions
from .session import Session
from .tokens import TokenCodec
