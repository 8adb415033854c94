"""Wiring of the orchestrator and its collaborators from Settings."""

from __future__ import annotations

from redis.asyncio import Redis

from clipguard.config import Settings
from clipguard.exceptions import ConfigurationError
from clipguard.pipeline.locks import InMemoryJobLock, JobLock, RedisJobLock
from clipguard.pipeline.orchestrator import ModerationOrchestrator
from clipguard.providers.registry import get_classifier
from clipguard.services.content_store import (
    ContentStore,
    InMemoryContentStore,
    RedisContentStore,
)
from clipguard.services.progress import (
    LocalProgressChannel,
    NullProgressChannel,
    ProgressChannel,
    ProgressEmitter,
    RedisProgressChannel,
)
from clipguard.services.settings_provider import (
    RedisSettingsProvider,
    SettingsProvider,
    StaticSettingsProvider,
    limits_from_config,
)


def _require_redis(redis: Redis | None, what: str) -> Redis:
    if redis is None:
        raise ConfigurationError(f"{what} backend 'redis' needs a Redis client")
    return redis


def _content_store(settings: Settings, redis: Redis | None) -> ContentStore:
    match settings.content_store_backend.strip().lower():
        case "redis":
            return RedisContentStore(
                _require_redis(redis, "content store"),
                ttl_seconds=settings.redis_content_ttl_days * 24 * 3600,
            )
        case "memory":
            return InMemoryContentStore()
        case other:
            raise ConfigurationError(f"Unknown content store backend: {other}")


def _settings_provider(settings: Settings, redis: Redis | None) -> SettingsProvider:
    defaults = limits_from_config(settings.limits)
    match settings.settings_backend.strip().lower():
        case "redis":
            return RedisSettingsProvider(_require_redis(redis, "settings"), defaults=defaults)
        case "env":
            return StaticSettingsProvider(defaults)
        case other:
            raise ConfigurationError(f"Unknown settings backend: {other}")


def _progress_channel(settings: Settings, redis: Redis | None) -> ProgressChannel:
    match settings.progress_backend.strip().lower():
        case "redis":
            return RedisProgressChannel(_require_redis(redis, "progress"))
        case "local":
            return LocalProgressChannel()
        case "none":
            return NullProgressChannel()
        case other:
            raise ConfigurationError(f"Unknown progress backend: {other}")


def _job_lock(settings: Settings, redis: Redis | None) -> JobLock:
    match settings.lock_backend.strip().lower():
        case "redis":
            return RedisJobLock(_require_redis(redis, "lock"), ttl_s=settings.lock_ttl_s)
        case "memory":
            return InMemoryJobLock()
        case other:
            raise ConfigurationError(f"Unknown lock backend: {other}")


def create_orchestrator(settings: Settings, *, redis: Redis | None = None) -> ModerationOrchestrator:
    return ModerationOrchestrator(
        settings,
        store=_content_store(settings, redis),
        settings_provider=_settings_provider(settings, redis),
        classifier=get_classifier(settings.classifier.model_dump()),
        progress=ProgressEmitter(_progress_channel(settings, redis)),
        lock=_job_lock(settings, redis),
    )


async def run_moderation(
    job_id: str,
    media_url: str,
    *,
    settings: Settings | None = None,
    force: bool = False,
) -> None:
    """Run one moderation job to completion with a private Redis connection."""
    settings = settings or Settings()
    redis = Redis.from_url(settings.redis_url, decode_responses=True)
    orchestrator = create_orchestrator(settings, redis=redis)
    try:
        await orchestrator.run(job_id, media_url, force=force)
    finally:
        await orchestrator.close()
        await redis.aclose()
