"""Redis locks that keep a periodic job to one instance at a time."""

import os
import socket
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import redis.asyncio as redis
from ulid import ULID

from railnet.config import get_settings

LOCK_PREFIX = "railnet:lock:"


class DistributedLockError(Exception):
    """Raised when another instance holds the lock."""

    def __init__(self, key: str, holder: str | None = None):
        self.key = key
        self.holder = holder
        super().__init__(f"Lock {key} is held by {holder or 'another instance'}")


def instance_id() -> str:
    """Identify this process in lock values."""
    return f"{socket.gethostname()}:{os.getpid()}"


class DistributedLock:
    """
    Expiring Redis lock for one job key.

    The stored value is ``<host>:<pid>:<ulid>`` so the current holder can be
    reported. Acquiring never waits: a job tick that finds the lock taken is
    simply skipped. Release goes through a Lua compare-and-delete, so an
    instance whose lock already expired cannot drop the next holder's.
    """

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        key: str,
        timeout_seconds: int | None = None,
    ):
        self.redis = redis_client
        self.name = key
        self.key = f"{LOCK_PREFIX}{key}"
        self.timeout_seconds = timeout_seconds or get_settings().LOCK_TIMEOUT_SECONDS
        self.token: str | None = None
        self._release_script = self.redis.register_script(self.RELEASE_SCRIPT)

    async def acquire(self) -> bool:
        """Take the lock if it is free. Returns True on success."""
        token = f"{instance_id()}:{ULID()}"
        acquired = await self.redis.set(self.key, token, nx=True, ex=self.timeout_seconds)
        if not acquired:
            return False
        self.token = token
        return True

    async def release(self) -> bool:
        """
        Release the lock.

        Returns:
            True if released, False if we no longer owned it
        """
        if self.token is None:
            return False

        result = await self._release_script(keys=[self.key], args=[self.token])
        self.token = None
        return bool(result)

    async def holder(self) -> str | None:
        """Get the value of whoever holds the lock right now."""
        return await self.redis.get(self.key)


@asynccontextmanager
async def distributed_lock(
    redis_client: redis.Redis,
    key: str,
    timeout_seconds: int | None = None,
) -> AsyncGenerator[DistributedLock, None]:
    """
    Hold a lock for the body of an ``async with`` block.

    Usage:
        async with distributed_lock(redis, "reclamation-sweep"):
            ...

    Raises:
        DistributedLockError: If another instance holds the lock
    """
    lock = DistributedLock(redis_client, key, timeout_seconds)
    if not await lock.acquire():
        raise DistributedLockError(key, await lock.holder())

    try:
        yield lock
    finally:
        await lock.release()
