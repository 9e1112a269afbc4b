"""
Redis session database.

Each session is a Redis hash of JSON-encoded values. A companion set records
which keys are immutable, and a sentinel field keeps empty sessions alive.
Unlike :class:`.MemDB`, expiration is enforced by Redis itself, so session
data survives restarts of the application for as long as it is valid.

Keys use a hash tag on the session ID, so that the hash and its companion
set always live on the same node of a cluster.
"""

import json
from datetime import timedelta
from functools import wraps
from typing import Any, Callable, Optional, TypeVar, cast
import logging

import redis
from redis.cluster import RedisCluster
from retry import retry

from .base import Database, Visitor
from ..domain import LifeTime, ZERO, now
from ..exceptions import SessionNotFound, SessionStoreUnavailable

logger = logging.getLogger(__name__)

SENTINEL = '__session__'
"""Hash field present in every acquired session; not a user value."""

DEFAULT_PREFIX = 'jwt_sessions:'

_SAVE = """
if redis.call('HEXISTS', KEYS[1], ARGV[4]) == 0 then
    return 0
end
if redis.call('SISMEMBER', KEYS[2], ARGV[1]) == 1 then
    return 0
end
redis.call('HSET', KEYS[1], ARGV[1], ARGV[2])
if ARGV[3] == '1' then
    redis.call('SADD', KEYS[2], ARGV[1])
end
return 1
"""

F = TypeVar('F', bound=Callable[..., Any])


def _unavailable(func: F) -> F:
    """Retry on connection failures, then raise `SessionStoreUnavailable`."""
    retrying = retry(redis.exceptions.ConnectionError, tries=3, delay=0.5,
                     backoff=2, logger=logger)(func)

    @wraps(func)
    def inner(*args: Any, **kwargs: Any) -> Any:
        try:
            return retrying(*args, **kwargs)
        except redis.exceptions.ConnectionError as e:
            raise SessionStoreUnavailable(f'Connection failed: {e}') from e
    return cast(F, inner)


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode('utf-8')
    return str(value)


def _seconds(expires: timedelta) -> int:
    return max(int(expires.total_seconds()), 1)


class RedisDB(Database):
    """
    Manages session data in Redis.

    The client instance is thread safe, and connections are attached at the
    time a command is executed. This class adds the key layout on top.
    """

    def __init__(self, host: str = 'localhost', port: int = 6379,
                 db: int = 0, cluster: bool = False,
                 prefix: str = DEFAULT_PREFIX,
                 client: Optional[Any] = None) -> None:
        """Open the connection to Redis, unless a ``client`` is given."""
        if client is not None:
            self.r = client
        elif cluster:
            logger.debug('New Redis cluster connection at %s, port %s',
                         host, port)
            self.r = RedisCluster(host=host, port=port)
        else:
            logger.debug('New Redis connection at %s, port %s', host, port)
            self.r = redis.StrictRedis(host=host, port=port, db=db)
        self._prefix = prefix
        self._save = self.r.register_script(_SAVE)

    def _key(self, sid: str) -> str:
        return f'{self._prefix}{{{sid}}}'

    def _immutable_key(self, sid: str) -> str:
        return f'{self._prefix}{{{sid}}}:immutable'

    def _expire(self, sid: str, expires: timedelta) -> bool:
        keys = [self._key(sid), self._immutable_key(sid)]
        pipe = self.r.pipeline()
        if expires < ZERO:
            # Expired right away; nothing may be resumed from the store.
            pipe.delete(*keys)
            return bool(pipe.execute()[0])
        for key in keys:
            if expires > ZERO:
                pipe.expire(key, _seconds(expires))
            else:
                pipe.persist(key)
        results = pipe.execute()
        return bool(results[0])

    @_unavailable
    def acquire(self, sid: str, expires: timedelta) -> LifeTime:
        """Allocate ``sid``, or get the stored lifetime if it exists."""
        key = self._key(sid)
        if self.r.exists(key):
            ttl = self.r.ttl(key)
            if ttl is not None and ttl > 0:
                return LifeTime(now() + timedelta(seconds=ttl))
            return LifeTime()
        self.r.hset(key, SENTINEL, '1')
        if expires > ZERO:
            self.r.expire(key, _seconds(expires))
        return LifeTime()

    @_unavailable
    def on_update_expiration(self, sid: str, expires: timedelta) -> None:
        if not self._expire(sid, expires):
            raise SessionNotFound(f'No such session: {sid}')

    @_unavailable
    def set(self, sid: str, lifetime: LifeTime, key: str, value: Any,
            immutable: bool) -> None:
        saved = self._save(
            keys=[self._key(sid), self._immutable_key(sid)],
            args=[key, json.dumps(value), '1' if immutable else '0',
                  SENTINEL]
        )
        if not saved:
            # Either the key is immutable, or the session is gone.
            logger.debug('Did not save key %s of session %s', key, sid)
            return
        remaining = lifetime.duration_until_expiration()
        if remaining > ZERO:
            self._expire(sid, remaining)

    @_unavailable
    def get(self, sid: str, key: str) -> Any:
        raw = self.r.hget(self._key(sid), key)
        if raw is None:
            return None
        return json.loads(raw)

    @_unavailable
    def visit(self, sid: str, visitor: Visitor) -> None:
        for field, raw in self.r.hgetall(self._key(sid)).items():
            field = _text(field)
            if field == SENTINEL:
                continue
            visitor(field, json.loads(raw))

    @_unavailable
    def len(self, sid: str) -> int:
        return max(int(self.r.hlen(self._key(sid))) - 1, 0)

    @_unavailable
    def delete(self, sid: str, key: str) -> bool:
        if key == SENTINEL:
            return False
        pipe = self.r.pipeline()
        pipe.hdel(self._key(sid), key)
        pipe.srem(self._immutable_key(sid), key)
        deleted, _ = pipe.execute()
        return bool(deleted)

    @_unavailable
    def clear(self, sid: str) -> None:
        fields = [_text(field) for field in self.r.hkeys(self._key(sid))]
        fields = [field for field in fields if field != SENTINEL]
        pipe = self.r.pipeline()
        if fields:
            pipe.hdel(self._key(sid), *fields)
        pipe.delete(self._immutable_key(sid))
        pipe.execute()

    @_unavailable
    def release(self, sid: str) -> None:
        self.r.delete(self._key(sid), self._immutable_key(sid))
