"""Per-job mutual exclusion.

Two runs for the same job would race on the same temp paths and record, so a
run only proceeds while it holds the job's lease.
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod

from redis.asyncio import Redis

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class JobLock(ABC):
    @abstractmethod
    async def acquire(self, job_id: str) -> str | None:
        """Try to take the lease; returns a token, or None when already held."""

    @abstractmethod
    async def release(self, job_id: str, token: str) -> None:
        """Release a lease previously returned by `acquire`."""


class InMemoryJobLock(JobLock):
    """Process-local leases (single worker)."""

    def __init__(self) -> None:
        self._guard = asyncio.Lock()
        self._held: dict[str, str] = {}

    async def acquire(self, job_id: str) -> str | None:
        async with self._guard:
            if str(job_id) in self._held:
                return None
            token = uuid.uuid4().hex
            self._held[str(job_id)] = token
            return token

    async def release(self, job_id: str, token: str) -> None:
        async with self._guard:
            if self._held.get(str(job_id)) == token:
                del self._held[str(job_id)]

    def is_held(self, job_id: str) -> bool:
        return str(job_id) in self._held


class RedisJobLock(JobLock):
    """Cross-process leases via `SET NX EX`; the TTL bounds a crashed holder."""

    def __init__(self, redis: Redis, *, ttl_s: int = 3600, prefix: str = "clipguard:lock:") -> None:
        self._redis = redis
        self._ttl_s = max(1, int(ttl_s))
        self._prefix = prefix

    def key(self, job_id: str) -> str:
        return f"{self._prefix}{job_id}"

    async def acquire(self, job_id: str) -> str | None:
        token = uuid.uuid4().hex
        ok = await self._redis.set(self.key(job_id), token, nx=True, ex=self._ttl_s)
        return token if ok else None

    async def release(self, job_id: str, token: str) -> None:
        await self._redis.eval(_RELEASE_SCRIPT, 1, self.key(job_id), token)
