"""ClipGuard Worker"""

import asyncio
import logging

from redis.asyncio import Redis

from clipguard.config import Settings
from clipguard.pipeline import ModerationDispatcher, create_orchestrator
from clipguard.utils.logging_setup import setup_logging
from handlers.moderation_handler import process_moderation_task


async def main():
    """Worker main entry point."""
    settings = Settings()
    setup_logging(settings)
    logger = logging.getLogger("clipguard.worker")
    redis = Redis.from_url(settings.redis_url, decode_responses=True)

    orchestrator = create_orchestrator(settings, redis=redis)
    dispatcher = ModerationDispatcher(orchestrator, max_concurrent=settings.worker_concurrency)
    logger.info(
        "Worker starting (redis=%s, queue=%s, concurrency=%d)",
        settings.redis_url,
        settings.queue_key,
        settings.worker_concurrency,
    )

    try:
        while True:
            # Only pop once a run can start, so waiting jobs stay in Redis.
            await dispatcher.wait_for_slot()
            item = await redis.brpop(settings.queue_key, timeout=5)
            if not item:
                continue
            _, raw = item
            await process_moderation_task(raw, dispatcher)
    finally:
        await dispatcher.wait_idle()
        await orchestrator.close()
        await redis.aclose()


if __name__ == "__main__":
    asyncio.run(main())
