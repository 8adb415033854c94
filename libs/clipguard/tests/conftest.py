from __future__ import annotations

from collections import defaultdict

import pytest

from clipguard.config import Settings


class FakeRedis:
    def __init__(self) -> None:
        self._kv: dict[str, str] = {}
        self._hashes: dict[str, dict[str, str]] = defaultdict(dict)
        self.published: list[tuple[str, str]] = []
        self.ttls: dict[str, int | None] = {}

    async def get(self, key: str) -> str | None:
        return self._kv.get(str(key))

    async def set(
        self, key: str, value: str, *, ex: int | None = None, nx: bool = False
    ) -> bool | None:
        if nx and str(key) in self._kv:
            return None
        self._kv[str(key)] = str(value)
        self.ttls[str(key)] = ex
        return True

    async def delete(self, key: str) -> int:
        existed = str(key) in self._kv
        self._kv.pop(str(key), None)
        return 1 if existed else 0

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self._hashes.get(str(key), {}))

    async def hset(self, key: str, mapping: dict[str, str]) -> int:
        h = self._hashes[str(key)]
        added = sum(1 for k in mapping if k not in h)
        h.update({str(k): str(v) for k, v in mapping.items()})
        return added

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((str(channel), str(message)))
        return 1

    async def eval(self, script: str, numkeys: int, *args: str) -> int:  # noqa: ARG002
        # Only the lock's compare-and-delete script is used.
        key, token = str(args[0]), str(args[1])
        if self._kv.get(key) == token:
            del self._kv[key]
            return 1
        return 0


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        temp_dir=str(tmp_path / "temp"),
        log_dir=str(tmp_path / "logs"),
        content_store_backend="memory",
        settings_backend="env",
        progress_backend="local",
        lock_backend="memory",
    )
