"""Visual content classifier abstractions."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from clipguard.models.moderation import Label


class ContentClassifier(ABC):
    """Submits single frames to a moderation service."""

    name: str = "classifier"

    @abstractmethod
    async def classify(self, frame_path: str) -> list[Label]:
        """Classify one image.

        Args:
            frame_path: Path to a local image file.

        Returns:
            Labels reported by the service (empty when nothing was found).

        Raises:
            ClassificationServiceError: the service is unreachable or misconfigured.
        """
        ...

    async def close(self) -> None:  # pragma: no cover
        return None


async def classify_frames(
    classifier: ContentClassifier,
    frame_paths: Sequence[str | Path],
    *,
    max_concurrent: int = 5,
) -> list[list[Label]]:
    """Classify frames concurrently; results keep the input order.

    The first failure cancels the remaining requests and is re-raised, since an
    unchecked frame must never count as clean.
    """
    semaphore = asyncio.Semaphore(max(1, int(max_concurrent)))

    async def _one(path: str | Path) -> list[Label]:
        async with semaphore:
            return await classifier.classify(str(path))

    tasks = [asyncio.create_task(_one(p)) for p in frame_paths]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
