"""Collaborator services (storage, settings, progress, cleanup)."""

from clipguard.services.cleaner import JobArtifacts, ResourceCleaner
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
)

__all__ = [
    "ContentStore",
    "InMemoryContentStore",
    "JobArtifacts",
    "LocalProgressChannel",
    "NullProgressChannel",
    "ProgressChannel",
    "ProgressEmitter",
    "RedisContentStore",
    "RedisProgressChannel",
    "RedisSettingsProvider",
    "ResourceCleaner",
    "SettingsProvider",
    "StaticSettingsProvider",
]
