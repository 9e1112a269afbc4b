"""Exceptions."""


class TokenError(RuntimeError):
    """A session token could not be accepted."""


class MalformedToken(TokenError):
    """The token is not a structurally valid JWT."""


class InvalidToken(TokenError):
    """The token signature or claims did not validate."""


class AlgorithmMismatch(InvalidToken):
    """The token was signed with an algorithm other than the pinned one."""


class ExpiredToken(InvalidToken):
    """The token carries an expiration claim in the past."""


class TokenSerializationFailed(RuntimeError):
    """Failed to sign a new session token."""


class MalformedAuthHeader(RuntimeError):
    """The Authorization header is not of the form ``Bearer <token>``."""


class SessionNotFound(RuntimeError):
    """There is no active session to operate on."""


class ExpirationUpdateNotSupported(RuntimeError):
    """The session store cannot update the expiration of a session."""


class SessionStoreUnavailable(RuntimeError):
    """The session store could not be reached."""


class ConfigurationError(RuntimeError):
    """Raised when a required configuration parameter is missing."""
