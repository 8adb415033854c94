"""Operator-editable moderation limits.

Limits are read fresh on every run so that changes made by an administrator
apply to the next upload without restarting workers.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod

from redis.asyncio import Redis

from clipguard.config import LimitsConfig
from clipguard.exceptions import ConfigurationError
from clipguard.models.moderation import ModerationLimits

SETTINGS_KEY = "clipguard:settings"


def limits_from_config(config: LimitsConfig) -> ModerationLimits:
    return ModerationLimits(
        max_duration_seconds=float(config.max_duration_seconds),
        max_file_size_mb=float(config.max_file_size_mb),
        supported_formats=list(config.supported_formats),
    )


def _decode(value: object) -> str:
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return str(value)


def _parse_positive(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid {name} in settings store: {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be > 0 (got {value})")
    return value


def _parse_formats(raw: str) -> list[str]:
    text = raw.strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid supported_formats in settings store: {raw!r}") from exc
        return [str(x).strip() for x in parsed if str(x).strip()]
    return [part.strip() for part in text.split(",") if part.strip()]


class SettingsProvider(ABC):
    @abstractmethod
    async def get_settings(self) -> ModerationLimits:
        """Return the limits in effect right now."""


class StaticSettingsProvider(SettingsProvider):
    def __init__(self, limits: ModerationLimits | None = None) -> None:
        self.limits = limits or ModerationLimits()

    async def get_settings(self) -> ModerationLimits:
        return self.limits


class RedisSettingsProvider(SettingsProvider):
    """Limits stored as a Redis hash; missing fields use the defaults."""

    def __init__(
        self,
        redis: Redis,
        *,
        defaults: ModerationLimits | None = None,
        key: str = SETTINGS_KEY,
    ) -> None:
        self._redis = redis
        self._defaults = defaults or ModerationLimits()
        self.key = key

    async def get_settings(self) -> ModerationLimits:
        raw = await self._redis.hgetall(self.key)
        data = {_decode(k): _decode(v) for k, v in dict(raw or {}).items()}

        max_duration = self._defaults.max_duration_seconds
        if data.get("max_duration_seconds"):
            max_duration = _parse_positive("max_duration_seconds", data["max_duration_seconds"])
        max_size = self._defaults.max_file_size_mb
        if data.get("max_file_size_mb"):
            max_size = _parse_positive("max_file_size_mb", data["max_file_size_mb"])
        formats = list(self._defaults.supported_formats)
        if data.get("supported_formats"):
            formats = _parse_formats(data["supported_formats"]) or formats

        return ModerationLimits(
            max_duration_seconds=max_duration,
            max_file_size_mb=max_size,
            supported_formats=formats,
        )

    async def set_settings(self, limits: ModerationLimits) -> None:
        await self._redis.hset(
            self.key,
            mapping={
                "max_duration_seconds": str(limits.max_duration_seconds),
                "max_file_size_mb": str(limits.max_file_size_mb),
                "supported_formats": json.dumps(list(limits.supported_formats)),
            },
        )
