"""Moderation task handling."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from clipguard.pipeline.dispatch import ModerationDispatcher

logger = logging.getLogger("clipguard.worker")


@dataclass(frozen=True)
class ModerationTask:
    job_id: str
    media_url: str
    force: bool = False


def parse_task(raw: str | bytes) -> ModerationTask | None:
    """Decode one queue message; malformed messages are logged and dropped."""
    try:
        payload: Any = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("dropping malformed task (raw=%r)", raw)
        return None
    if not isinstance(payload, dict):
        logger.warning("dropping malformed task (raw=%r)", raw)
        return None

    job_id = str(payload.get("job_id") or "").strip()
    media_url = str(payload.get("media_url") or "").strip()
    if not job_id or not media_url:
        logger.warning("dropping task without job_id/media_url (payload=%s)", payload)
        return None
    return ModerationTask(job_id=job_id, media_url=media_url, force=bool(payload.get("force")))


async def process_moderation_task(raw: str | bytes, dispatcher: ModerationDispatcher) -> bool:
    task = parse_task(raw)
    if task is None:
        return False
    await dispatcher.dispatch(task.job_id, task.media_url, force=task.force)
    return True
