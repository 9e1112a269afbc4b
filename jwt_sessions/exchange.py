"""
Request/response pair seen by the session manager.

The manager usually runs before a response exists (e.g. in a Flask
``before_request`` hook). Writes meant for the response are therefore queued
until a response is bound with :meth:`.Exchange.bind`, and applied directly
afterwards.
"""

from typing import Any, Callable, List, Optional

from werkzeug.wrappers import Request, Response

OutboundWrite = Callable[[Response], None]


def _environ_key(name: str) -> str:
    key = name.upper().replace('-', '_')
    if key in ('CONTENT_TYPE', 'CONTENT_LENGTH'):
        return key
    return f'HTTP_{key}'


class Exchange(object):
    """Adapts a werkzeug request and its (future) response."""

    def __init__(self, request: Request,
                 response: Optional[Response] = None) -> None:
        self.request = request
        self.response = response
        self._pending: List[OutboundWrite] = []

    @property
    def method(self) -> str:
        return str(self.request.method)

    @property
    def host(self) -> str:
        return str(self.request.host)

    @property
    def is_secure(self) -> bool:
        return bool(self.request.is_secure)

    def get_header(self, name: str) -> str:
        return str(self.request.headers.get(name, ''))

    def set_request_header(self, name: str, value: str) -> None:
        """Rewrite a header on the inbound request, for downstream code."""
        self.request.environ[_environ_key(name)] = value

    def remove_request_header(self, name: str) -> None:
        self.request.environ.pop(_environ_key(name), None)

    def get_cookie(self, name: str) -> str:
        return str(self.request.cookies.get(name, ''))

    def set_response_header(self, name: str, value: str) -> None:
        self._outbound(lambda response: response.headers.set(name, value))

    def remove_response_header(self, name: str) -> None:
        self._outbound(lambda response: response.headers.remove(name))

    def set_cookie(self, name: str, value: str, **attributes: Any) -> None:
        self._outbound(
            lambda response: response.set_cookie(name, value, **attributes)
        )

    def _outbound(self, write: OutboundWrite) -> None:
        if self.response is not None:
            write(self.response)
        else:
            self._pending.append(write)

    def bind(self, response: Response) -> Response:
        """Apply queued writes to ``response``, and write directly from now."""
        self.response = response
        pending, self._pending = self._pending, []
        for write in pending:
            write(response)
        return response
