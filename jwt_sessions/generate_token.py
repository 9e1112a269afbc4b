"""
Helper script for generating a session token.

Be sure that you are using the same secret when running this script as when
you run the app. Set ``JWT_SESSION_SECRET=somesecret`` in your environment to
ensure that the same secret is always used.

.. code-block:: bash

   $ JWT_SESSION_SECRET=foosecret python -m jwt_sessions.generate_token
   Session ID [3f1c...]:
   Bearer eyJ0eXAiOiJKV1QiLCJhbGciOiJIUzI1NiJ9...

Use the token in the ``Authorization`` header of your requests. Note that the
session only exists on a server that has seen this ID before, or whose
session database still holds it.
"""

import logging
import os
from datetime import timedelta
from typing import Optional

import click

from .app_logging import setup_logger
from .config import default_session_id
from .domain import SessionClaims, now
from .tokens import TokenCodec

logger = logging.getLogger(__name__)


@click.command()
@click.option('--session_id', prompt='Session ID', default=default_session_id)
@click.option('--algorithm', default='HS256', show_default=True)
@click.option('--expires', type=int, default=None,
              help='Lifetime of the token in seconds. Never expires if unset.')
@click.option('--log-level', default='WARNING', show_default=True)
def generate_token(session_id: str, algorithm: str, expires: Optional[int],
                   log_level: str) -> None:
    """Generate a signed session token."""
    setup_logger(log_level.upper())
    secret = os.environ.get('JWT_SESSION_SECRET')
    if not secret:
        raise click.ClickException('JWT_SESSION_SECRET is not set')
    issued_at = now()
    claims = SessionClaims(
        session_id=session_id,
        issued_at=issued_at,
        expires=issued_at + timedelta(seconds=expires)
        if expires is not None else None
    )
    codec = TokenCodec(secret=secret, signing_method=algorithm).validate()
    logger.debug('Generating token for session %s', session_id)
    click.echo(f'Bearer {codec.serialize(claims)}')


if __name__ == '__main__':
    generate_token()
