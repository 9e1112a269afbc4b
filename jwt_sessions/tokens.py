"""
Functions for signing and validating session tokens.

A session token is a JWT whose payload carries the ID of a server-side
session (see :class:`.domain.SessionClaims`). Validation happens in a fixed
order: structure, then the pinned signing algorithm, then signature and
claims, then expiration. Each step gates trust in the next one, so that a
token that swaps the algorithm in its header (e.g. to ``none``, or from an
asymmetric to a symmetric algorithm) is refused before its signature is even
considered.
"""

from typing import Any, Callable, Dict, NamedTuple, Optional
import logging

import jwt

from .domain import SessionClaims
from .exceptions import MalformedToken, InvalidToken, AlgorithmMismatch, \
    ExpiredToken, TokenSerializationFailed, ConfigurationError

logger = logging.getLogger(__name__)

KeyGetter = Callable[[Dict[str, Any]], Any]
"""Gets the key to sign or verify a token, given the JWT header."""

DEFAULT_ALGORITHM = 'HS256'

_PYJWT_ERRORS = (jwt.exceptions.PyJWTError, TypeError, ValueError,
                 NotImplementedError)


class TokenCodec(NamedTuple):
    """Signs and validates session tokens."""

    secret: Any = None
    """The bidirectional secret used to sign and validate tokens."""

    signing_key_getter: Optional[KeyGetter] = None
    """
    Returns the key used to sign a token.

    Either a shared secret or a private key. Defaults to :attr:`secret`.
    """

    validation_key_getter: Optional[KeyGetter] = None
    """
    Returns the key used to validate a token.

    Either a shared secret or a public key. Defaults to :attr:`secret`.
    """

    signing_method: Optional[str] = None
    """
    When set, tokens must be signed with exactly this algorithm.

    Leaving this unset is discouraged; see
    https://auth0.com/blog/critical-vulnerabilities-in-json-web-token-libraries/
    """

    verify_expiration: bool = True
    """Whether to refuse tokens with an ``exp`` claim in the past."""

    leeway: int = 0
    """Seconds of clock skew tolerated when checking ``exp``."""

    def validate(self) -> 'TokenCodec':
        """Get a copy of this codec with default key getters filled in."""
        secret = self.secret

        def _get_secret(header: Dict[str, Any]) -> Any:
            return secret

        changes: Dict[str, Any] = {}
        if self.signing_key_getter is None:
            changes['signing_key_getter'] = _get_secret
        if self.validation_key_getter is None:
            changes['validation_key_getter'] = _get_secret
        return self._replace(**changes)

    def parse(self, token: Optional[str]) -> Optional[SessionClaims]:
        """
        Validate a session token and get its claims.

        Parameters
        ----------
        token : str
            An encoded JWT. May be empty, if the client did not present one.

        Returns
        -------
        :class:`.SessionClaims` or None
            ``None`` if no token was presented.

        Raises
        ------
        :class:`.MalformedToken`
            Raised if ``token`` is not a JWT at all.
        :class:`.AlgorithmMismatch`
            Raised if ``token`` was not signed with :attr:`signing_method`.
        :class:`.InvalidToken`
            Raised if the signature or the claims are not valid.
        :class:`.ExpiredToken`
            Raised if ``token`` has expired.

        """
        if not token:
            return None
        if self.validation_key_getter is None:
            raise ConfigurationError('Token codec has not been validated')

        try:
            header = jwt.get_unverified_header(token)
            jwt.decode(token, options={'verify_signature': False})
        except jwt.exceptions.InvalidTokenError as e:
            raise MalformedToken(f'Token is malformed: {e}') from e

        algorithm = header.get('alg')
        if self.signing_method is not None:
            if algorithm != self.signing_method:
                raise AlgorithmMismatch(
                    f'Expected {self.signing_method} signing method but token'
                    f' specified {algorithm}'
                )
        elif not isinstance(algorithm, str) or algorithm.lower() == 'none':
            raise InvalidToken('Unsigned tokens are not accepted')

        try:
            key = self.validation_key_getter(header)
        except Exception as e:
            logger.debug('Validation key lookup failed: %s', e)
            raise InvalidToken('No key available to validate token') from e

        try:
            payload = jwt.decode(
                token, key,
                algorithms=[algorithm],
                options={'verify_exp': self.verify_expiration},
                leeway=self.leeway
            )
        except jwt.exceptions.ExpiredSignatureError as e:
            raise ExpiredToken('Token has expired') from e
        except _PYJWT_ERRORS as e:
            raise InvalidToken(f'Token is invalid: {e}') from e

        try:
            return SessionClaims.from_dict(payload)
        except ValueError as e:
            raise InvalidToken('Token payload malformed') from e

    def serialize(self, claims: SessionClaims) -> str:
        """
        Sign ``claims`` as a new session token.

        Raises
        ------
        :class:`.TokenSerializationFailed`
            Raised if no signing key is available, or signing fails.

        """
        if self.signing_key_getter is None:
            raise ConfigurationError('Token codec has not been validated')
        algorithm = self.signing_method or DEFAULT_ALGORITHM
        try:
            key = self.signing_key_getter({'alg': algorithm, 'typ': 'JWT'})
        except Exception as e:
            raise TokenSerializationFailed(f'Signing key lookup failed: {e}') \
                from e
        if key is None:
            raise TokenSerializationFailed('No signing key available')
        try:
            return jwt.encode(claims.to_dict(), key, algorithm=algorithm)
        except _PYJWT_ERRORS as e:
            raise TokenSerializationFailed(f'Failed to sign token: {e}') \
                from e
