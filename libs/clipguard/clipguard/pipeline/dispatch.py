"""Fire-and-forget dispatch of moderation runs."""

from __future__ import annotations

import asyncio
import logging

from clipguard.pipeline.orchestrator import ModerationOrchestrator

logger = logging.getLogger(__name__)


class ModerationDispatcher:
    """Starts runs in the background without blocking on their outcome.

    The upload path only needs to know the run was scheduled; the outcome is
    observed through the content record and progress events. At most
    `max_concurrent` runs are held at once: `dispatch()` waits for a free slot
    before it creates the task, so a queue consumer never pulls more work
    than it can run.
    """

    def __init__(self, orchestrator: ModerationOrchestrator, *, max_concurrent: int = 2) -> None:
        self.orchestrator = orchestrator
        self.max_concurrent = max(1, int(max_concurrent))
        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def wait_for_slot(self) -> None:
        """Return once `dispatch()` can start a run without waiting."""
        async with self._semaphore:
            pass

    async def dispatch(
        self, job_id: str, media_url: str, *, force: bool = False
    ) -> asyncio.Task[None]:
        await self._semaphore.acquire()
        try:
            task = asyncio.create_task(
                self.orchestrator.run(job_id, media_url, force=force), name=f"moderation:{job_id}"
            )
        except BaseException:
            self._semaphore.release()
            raise
        # The loop keeps only weak references to tasks.
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.info("moderation dispatched (job_id=%s, active=%d)", job_id, self.active)
        return task

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        self._semaphore.release()

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
