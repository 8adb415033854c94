"""Content-record persistence used by the moderation pipeline."""

from __future__ import annotations

import copy
import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from redis.asyncio import Redis

from clipguard.models.content import ContentRecord


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def apply_patch(doc: dict[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Apply dotted-path field updates (e.g. ``moderation.status``) to a record dict."""
    for dotted, value in patch.items():
        parts = [p for p in str(dotted).split(".") if p]
        if not parts:
            continue
        node = doc
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = _to_jsonable(value)
    return doc


class ContentStore(ABC):
    @abstractmethod
    async def get(self, job_id: str) -> ContentRecord | None:
        """Load a record, or None when it does not exist."""

    @abstractmethod
    async def save(self, record: ContentRecord) -> None:
        """Persist the whole record."""

    @abstractmethod
    async def update_fields(self, job_id: str, patch: Mapping[str, Any]) -> bool:
        """Update selected (dotted) fields. Returns False when the record is missing."""

    async def delete(self, job_id: str) -> bool:  # pragma: no cover
        raise NotImplementedError


class InMemoryContentStore(ContentStore):
    def __init__(self) -> None:
        self._docs: dict[str, dict[str, Any]] = {}

    async def get(self, job_id: str) -> ContentRecord | None:
        doc = self._docs.get(str(job_id))
        if doc is None:
            return None
        return ContentRecord.from_dict(copy.deepcopy(doc))

    async def save(self, record: ContentRecord) -> None:
        record.touch()
        self._docs[str(record.id)] = record.to_dict()

    async def update_fields(self, job_id: str, patch: Mapping[str, Any]) -> bool:
        doc = self._docs.get(str(job_id))
        if doc is None:
            return False
        apply_patch(doc, patch)
        doc["updated_at"] = _utcnow().isoformat()
        return True

    async def delete(self, job_id: str) -> bool:
        return self._docs.pop(str(job_id), None) is not None


class RedisContentStore(ContentStore):
    """One JSON document per record."""

    def __init__(self, redis_client: Redis, *, ttl_seconds: int) -> None:
        self._redis = redis_client
        self._ttl_seconds = max(1, int(ttl_seconds))

    @staticmethod
    def key(job_id: str) -> str:
        return f"clipguard:content:{job_id}"

    async def _load_doc(self, job_id: str) -> dict[str, Any] | None:
        raw = await self._redis.get(self.key(job_id))
        if not raw:
            return None
        return json.loads(raw)

    async def get(self, job_id: str) -> ContentRecord | None:
        doc = await self._load_doc(job_id)
        if doc is None:
            return None
        return ContentRecord.from_dict(doc)

    async def save(self, record: ContentRecord) -> None:
        record.touch()
        await self._redis.set(
            self.key(record.id), json.dumps(record.to_dict()), ex=self._ttl_seconds
        )

    async def update_fields(self, job_id: str, patch: Mapping[str, Any]) -> bool:
        doc = await self._load_doc(job_id)
        if doc is None:
            return False
        apply_patch(doc, patch)
        doc["updated_at"] = _utcnow().isoformat()
        await self._redis.set(self.key(job_id), json.dumps(doc), ex=self._ttl_seconds)
        return True

    async def delete(self, job_id: str) -> bool:
        removed = await self._redis.delete(self.key(job_id))
        return bool(removed)
