"""Best-effort progress events for connected observers.

Publishing is fire-and-forget; `ProgressEmitter` swallows every failure.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from redis.asyncio import Redis

from clipguard.models.moderation import ProgressEvent

logger = logging.getLogger(__name__)

ProgressSubscriber = Callable[[ProgressEvent], Awaitable[None] | None]

DEFAULT_CHANNEL = "clipguard:video_update"


class ProgressChannel(ABC):
    @abstractmethod
    async def publish(self, event: ProgressEvent) -> None:
        """Deliver one event to any current subscribers."""

    async def close(self) -> None:  # pragma: no cover
        return None


class NullProgressChannel(ProgressChannel):
    async def publish(self, event: ProgressEvent) -> None:  # noqa: ARG002
        return None


class LocalProgressChannel(ProgressChannel):
    """In-process fan-out to zero or more subscriber callbacks."""

    def __init__(self) -> None:
        self._subscribers: list[ProgressSubscriber] = []

    def subscribe(self, callback: ProgressSubscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    async def publish(self, event: ProgressEvent) -> None:
        for callback in list(self._subscribers):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.warning("progress subscriber failed (job_id=%s)", event.job_id, exc_info=True)


class RedisProgressChannel(ProgressChannel):
    """Publishes events as JSON on a Redis pub/sub channel."""

    def __init__(self, redis: Redis, *, channel: str = DEFAULT_CHANNEL) -> None:
        self._redis = redis
        self.channel = channel

    async def publish(self, event: ProgressEvent) -> None:
        await self._redis.publish(self.channel, json.dumps(event.to_dict(), ensure_ascii=False))


class ProgressEmitter:
    def __init__(self, channel: ProgressChannel | None = None, *, timeout_s: float = 2.0) -> None:
        self.channel = channel or NullProgressChannel()
        self._timeout_s = max(0.01, float(timeout_s))

    async def emit(self, job_id: str, status: str, details: dict[str, Any] | None = None) -> None:
        event = ProgressEvent(job_id=str(job_id), status=str(status), details=dict(details or {}))
        try:
            await asyncio.wait_for(self.channel.publish(event), timeout=self._timeout_s)
        except Exception as exc:
            logger.debug("progress emit dropped (job_id=%s, status=%s, error=%s)", job_id, status, exc)
