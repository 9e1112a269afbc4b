"""Tests for :mod:`jwt_sessions.manager`."""

from datetime import timedelta
from unittest import TestCase, mock

import jwt
from werkzeug.test import EnvironBuilder
from werkzeug.wrappers import Response

from jwt_sessions.carriers import CookieCarrier
from jwt_sessions.config import Config
from jwt_sessions.domain import SessionClaims
from jwt_sessions.exceptions import InvalidToken, SessionNotFound
from jwt_sessions.exchange import Exchange
from jwt_sessions.manager import JWTSessions
from jwt_sessions.tokens import TokenCodec

SECRET = 'foosecret' * 8
EXPIRES = timedelta(hours=1)


def exchange_for(**headers: str) -> Exchange:
    builder = EnvironBuilder(path='/', base_url='http://api.example.com',
                             headers=list(headers.items()))
    return Exchange(builder.get_request())


def bearer(sid: str, secret: str = SECRET) -> str:
    token = jwt.encode({'session_id': sid}, secret, algorithm='HS256')
    return f'Bearer {token}'


class TestHeaderSessions(TestCase):
    """Sessions carried as bearer tokens."""

    def setUp(self):
        self.manager = JWTSessions(Config(
            codec=TokenCodec(secret=SECRET, signing_method='HS256'),
            expires=EXPIRES
        ))

    def test_no_header(self):
        """A request without a token gets a new session and a token."""
        exchange = exchange_for()
        session = self.manager.start(exchange)
        self.assertTrue(session.is_new)
        self.assertTrue(session.id)

        response = exchange.bind(Response())
        scheme, token = response.headers['Authorization'].split(' ')
        self.assertEqual(scheme, 'Bearer')
        claims = self.manager.config.codec.parse(token)
        self.assertEqual(claims.session_id, session.id)

    def test_valid_token(self):
        """A request with a valid token resumes its session."""
        session = self.manager.start(exchange_for())
        session.set('name', 'value')

        exchange = exchange_for(Authorization=bearer(session.id))
        resumed = self.manager.start(exchange)
        self.assertFalse(resumed.is_new)
        self.assertEqual(resumed.id, session.id)
        self.assertEqual(resumed.get('name'), 'value')
        response = exchange.bind(Response())
        self.assertNotIn('Authorization', response.headers,
                         'No new token is issued')

    def test_unknown_session_id(self):
        """A valid token naming an unknown session starts to track it."""
        session = self.manager.start(exchange_for(Authorization=bearer('x')))
        self.assertEqual(session.id, 'x')
        self.assertFalse(session.is_new)

    def test_malformed_header(self):
        """A header that is not a bearer token yields a new session."""
        exchange = exchange_for(Authorization='Basic abcdef')
        session = self.manager.start(exchange)
        self.assertTrue(session.is_new)
        response = exchange.bind(Response())
        self.assertTrue(response.headers['Authorization'].startswith('Bearer '))

    def test_not_a_token(self):
        """A bearer value that is not a JWT yields a new session."""
        session = self.manager.start(
            exchange_for(Authorization='Bearer definitelynotatoken')
        )
        self.assertTrue(session.is_new)

    def test_bad_signature(self):
        """A token with a bad signature is rejected."""
        exchange = exchange_for(Authorization=bearer('x', 'othersecret' * 8))
        with self.assertRaises(InvalidToken):
            self.manager.start(exchange)
        self.assertEqual(len(self.manager.provider), 0)

    def test_expired_session(self):
        """An expired session is replaced by a new one."""
        listener = mock.MagicMock()
        self.manager.on_destroy(listener)
        session = self.manager.start(exchange_for())
        session.lifetime.expire_now()

        fresh = self.manager.start(
            exchange_for(Authorization=bearer(session.id))
        )
        self.assertTrue(fresh.is_new)
        self.assertNotEqual(fresh.id, session.id)
        listener.assert_called_once_with(session.id)

    def test_reclaim(self):
        """With reclaim, the request carries the new token downstream."""
        manager = JWTSessions(Config(
            codec=TokenCodec(secret=SECRET, signing_method='HS256'),
            allow_reclaim=True
        ))
        exchange = exchange_for()
        session = manager.start(exchange)
        self.assertEqual(manager.session_id(exchange), session.id)

    def test_destroy(self):
        """The session is removed and the token stripped both ways."""
        listeners = [mock.MagicMock(), mock.MagicMock()]
        self.manager.on_destroy(*listeners)
        session = self.manager.start(exchange_for())
        session.set('name', 'value')

        exchange = exchange_for(Authorization=bearer(session.id))
        self.manager.destroy(exchange)
        for listener in listeners:
            listener.assert_called_once_with(session.id)
        self.assertEqual(len(self.manager.provider), 0)
        self.assertEqual(self.manager.provider.db.len(session.id), 0)
        self.assertEqual(exchange.get_header('Authorization'), '')
        response = exchange.bind(
            Response(headers={'Authorization': 'Bearer foo'})
        )
        self.assertNotIn('Authorization', response.headers)

    def test_destroy_rejected_token(self):
        """A token that does not validate is stripped anyway."""
        listener = mock.MagicMock()
        self.manager.on_destroy(listener)
        exchange = exchange_for(Authorization=bearer('x', 'othersecret' * 8))
        self.manager.destroy(exchange)
        self.assertEqual(exchange.get_header('Authorization'), '')
        response = exchange.bind(
            Response(headers={'Authorization': 'Bearer foo'})
        )
        self.assertNotIn('Authorization', response.headers)
        self.assertEqual(listener.call_count, 0)

    def test_destroy_without_session(self):
        """Destroying with no session on the request only strips headers."""
        listener = mock.MagicMock()
        self.manager.on_destroy(listener)
        self.manager.destroy(exchange_for())
        self.assertEqual(listener.call_count, 0)

    def test_update_expiration(self):
        session = self.manager.start(exchange_for())
        exchange = exchange_for(Authorization=bearer(session.id))
        self.manager.update_expiration(exchange, timedelta(minutes=1))
        self.assertLessEqual(session.lifetime.duration_until_expiration(),
                             timedelta(minutes=1))

    def test_update_expiration_without_session(self):
        with self.assertRaises(SessionNotFound):
            self.manager.update_expiration(exchange_for(), EXPIRES)

    def test_shift_expiration(self):
        session = self.manager.start(exchange_for())
        session.lifetime.shift(timedelta(minutes=1))
        self.manager.shift_expiration(
            exchange_for(Authorization=bearer(session.id))
        )
        self.assertGreater(session.lifetime.duration_until_expiration(),
                           timedelta(minutes=59))

    def test_destroy_expired(self):
        first = self.manager.start(exchange_for())
        self.manager.start(exchange_for())
        first.lifetime.expire_now()
        self.assertEqual(self.manager.destroy_expired(), 1)
        self.manager.destroy_all()
        self.assertEqual(len(self.manager.provider), 0)

    def test_custom_generator(self):
        manager = JWTSessions(Config(
            codec=TokenCodec(secret=SECRET),
            session_id_generator=lambda: 'fixed'
        ))
        self.assertEqual(manager.start(exchange_for()).id, 'fixed')

    def test_token_for(self):
        token = self.manager.token_for('foo')
        claims = self.manager.config.codec.parse(token)
        self.assertIsInstance(claims, SessionClaims)
        self.assertEqual(claims.session_id, 'foo')
        self.assertIsNotNone(claims.issued_at)


class TestCookieSessions(TestCase):
    """Sessions carried in a cookie."""

    def setUp(self):
        self.carrier = mock.MagicMock(spec=CookieCarrier)
        self.carrier.reissue_on_read = True
        self.carrier.reissue_on_expiration_update = True

    def manager(self, expires=EXPIRES, codec=None):
        return JWTSessions(Config(codec=codec, expires=expires,
                                  carrier=self.carrier))

    def test_new_session(self):
        """A new session gets a cookie that lasts as long as the session."""
        self.carrier.extract.return_value = ''
        manager = self.manager()
        exchange = exchange_for()
        session = manager.start(exchange)
        self.carrier.inject.assert_called_once_with(exchange, session.id,
                                                    EXPIRES)

    def test_browser_session(self):
        """A negative lifetime yields a cookie without expiry."""
        self.carrier.extract.return_value = ''
        manager = self.manager(expires=timedelta(seconds=-1))
        exchange = exchange_for()
        session = manager.start(exchange)
        self.carrier.inject.assert_called_once_with(exchange, session.id,
                                                    timedelta(0))
        self.assertFalse(session.has_expired())

    def test_reissue_on_read(self):
        """The cookie is refreshed with the remaining lifetime."""
        self.carrier.extract.return_value = ''
        manager = self.manager()
        session = manager.start(exchange_for())

        self.carrier.reset_mock()
        self.carrier.extract.return_value = session.id
        exchange = exchange_for()
        resumed = manager.start(exchange)
        self.assertIs(resumed, session)
        self.assertFalse(resumed.is_new)
        (_, value, expires), _ = self.carrier.inject.call_args
        self.assertEqual(value, session.id)
        self.assertLessEqual(expires, EXPIRES)
        self.assertGreater(expires, timedelta(minutes=59))

    def test_signed_token_in_cookie(self):
        """With a codec, the cookie carries a signed token."""
        self.carrier.extract.return_value = ''
        codec = TokenCodec(secret=SECRET, signing_method='HS256')
        manager = self.manager(codec=codec)
        session = manager.start(exchange_for())
        (_, token, _), _ = self.carrier.inject.call_args
        self.assertEqual(manager.config.codec.parse(token).session_id,
                         session.id)

    def test_update_expiration(self):
        """The cookie is reissued with the new expiration."""
        self.carrier.extract.return_value = ''
        manager = self.manager()
        session = manager.start(exchange_for())

        self.carrier.reset_mock()
        self.carrier.extract.return_value = session.id
        exchange = exchange_for()
        manager.update_expiration(exchange, timedelta(minutes=5))
        self.carrier.inject.assert_called_once_with(exchange, session.id,
                                                    timedelta(minutes=5))

    def test_expire_now(self):
        """A negative expiration expires the session and its cookie."""
        self.carrier.extract.return_value = ''
        manager = self.manager()
        session = manager.start(exchange_for())

        self.carrier.reset_mock()
        self.carrier.extract.return_value = session.id
        exchange = exchange_for()
        manager.update_expiration(exchange, timedelta(seconds=-1))
        self.assertTrue(session.has_expired())
        self.carrier.inject.assert_called_once_with(
            exchange, session.id, timedelta(seconds=-1)
        )

    def test_failed_update_removes_cookie(self):
        """If expiring the session fails, the cookie is still removed."""
        self.carrier.extract.return_value = 'unknown'
        manager = self.manager()
        exchange = exchange_for()
        with self.assertRaises(SessionNotFound):
            manager.update_expiration(exchange, timedelta(seconds=-1))
        self.carrier.remove.assert_called_once_with(exchange)

    def test_update_by_zero(self):
        """Updating by zero leaves the cookie alone."""
        self.carrier.extract.return_value = ''
        manager = self.manager()
        session = manager.start(exchange_for())
        self.carrier.reset_mock()
        self.carrier.extract.return_value = session.id
        manager.update_expiration(exchange_for(), timedelta(0))
        self.assertEqual(self.carrier.inject.call_count, 0)
