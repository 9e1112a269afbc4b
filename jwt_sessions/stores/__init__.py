"""
Session databases.

Any class implementing :class:`.base.Database` can hold session data.
:class:`.memory.MemDB` is the reference implementation; :class:`.redis.RedisDB`
keeps sessions in Redis, with server-side expiration.
"""

from .base import Database
from .memory import MemDB
