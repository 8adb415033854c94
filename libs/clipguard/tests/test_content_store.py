from __future__ import annotations

import json

import pytest

from clipguard.models.content import (
    ContentRecord,
    ContentStatus,
    ModerationDetails,
    ModerationRecord,
    ModerationStatus,
)
from clipguard.services.content_store import InMemoryContentStore, RedisContentStore, apply_patch


def test_apply_patch_sets_nested_paths_and_serializes_enums() -> None:
    doc = {"status": "pending", "moderation": {"status": "pending", "details": {}}}

    apply_patch(
        doc,
        {
            "status": ContentStatus.FLAGGED,
            "moderation.status": ModerationStatus.PENDING,
            "moderation.details.flags": ["Violence"],
            "extra.nested.value": 1,
        },
    )

    assert doc["status"] == "flagged"
    assert doc["moderation"]["status"] == "pending"
    assert doc["moderation"]["details"]["flags"] == ["Violence"]
    assert doc["extra"] == {"nested": {"value": 1}}


@pytest.mark.asyncio
async def test_in_memory_store_round_trip_and_partial_update() -> None:
    store = InMemoryContentStore()
    await store.save(ContentRecord(id="v1", media_url="https://cdn.example/v1.mp4", title="Hello"))

    assert await store.update_fields("v1", {"status": ContentStatus.PROCESSING}) is True
    record = await store.get("v1")

    assert record is not None
    assert record.status == ContentStatus.PROCESSING
    assert record.title == "Hello"
    assert await store.update_fields("missing", {"status": "safe"}) is False
    assert await store.get("missing") is None


@pytest.mark.asyncio
async def test_in_memory_store_returns_copies() -> None:
    store = InMemoryContentStore()
    await store.save(ContentRecord(id="v1", media_url="u"))

    record = await store.get("v1")
    assert record is not None
    record.moderation.details.flags.append("mutated")

    again = await store.get("v1")
    assert again is not None
    assert again.moderation.details.flags == []


@pytest.mark.asyncio
async def test_redis_store_writes_json_document_with_ttl(fake_redis) -> None:
    store = RedisContentStore(fake_redis, ttl_seconds=3600)
    record = ContentRecord(id="v2", media_url="u", description="desc")
    await store.save(record)

    moderation = ModerationRecord(
        status=ModerationStatus.APPROVED,
        visual_score=0.05,
        details=ModerationDetails(frames_analyzed=3, decision_reason="Automated checks passed"),
    )
    ok = await store.update_fields(
        "v2", {"status": ContentStatus.SAFE, "moderation": moderation.to_dict(), "duration": 12.5}
    )

    raw = json.loads(await fake_redis.get("clipguard:content:v2"))
    assert ok is True
    assert raw["status"] == "safe"
    assert raw["moderation"]["details"]["frames_analyzed"] == 3
    assert fake_redis.ttls["clipguard:content:v2"] == 3600

    loaded = await store.get("v2")
    assert loaded is not None
    assert loaded.moderation.status == ModerationStatus.APPROVED
    assert loaded.duration == 12.5
    assert loaded.description == "desc"


@pytest.mark.asyncio
async def test_redis_store_missing_record(fake_redis) -> None:
    store = RedisContentStore(fake_redis, ttl_seconds=60)

    assert await store.get("nope") is None
    assert await store.update_fields("nope", {"status": "safe"}) is False
    assert await store.delete("nope") is False
