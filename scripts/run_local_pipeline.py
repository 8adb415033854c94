from __future__ import annotations

import argparse
import asyncio
import json
import uuid

from clipguard.config import Settings
from clipguard.models.content import ContentRecord
from clipguard.models.moderation import ProgressEvent
from clipguard.pipeline import ModerationOrchestrator
from clipguard.providers import get_classifier
from clipguard.services import (
    InMemoryContentStore,
    LocalProgressChannel,
    ProgressEmitter,
    StaticSettingsProvider,
)
from clipguard.services.settings_provider import limits_from_config
from clipguard.utils.logging_setup import setup_logging


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the ClipGuard moderation pipeline on one video.")
    parser.add_argument("--media", required=True, help="Local path or http(s) URL of the video")
    parser.add_argument("--title", default="", help="Video title (checked by the metadata heuristic)")
    parser.add_argument("--description", default="", help="Video description")
    parser.add_argument("--job-id", default=None, help="Job id (defaults to random uuid)")
    parser.add_argument("--max-duration-s", type=float, default=None, help="Override the duration limit")
    return parser.parse_args()


def _print_event(event: ProgressEvent) -> None:
    print(json.dumps(event.to_dict(), ensure_ascii=False))


async def _run() -> int:
    args = _parse_args()
    settings = Settings()
    setup_logging(settings)
    if args.max_duration_s is not None:
        settings.limits.max_duration_seconds = float(args.max_duration_s)

    job_id = str(args.job_id or uuid.uuid4())
    store = InMemoryContentStore()
    await store.save(
        ContentRecord(
            id=job_id,
            media_url=str(args.media),
            title=str(args.title),
            description=str(args.description),
        )
    )

    channel = LocalProgressChannel()
    channel.subscribe(_print_event)
    orchestrator = ModerationOrchestrator(
        settings,
        store=store,
        settings_provider=StaticSettingsProvider(limits_from_config(settings.limits)),
        classifier=get_classifier(settings.classifier.model_dump()),
        progress=ProgressEmitter(channel),
    )
    try:
        await orchestrator.run(job_id, str(args.media))
    finally:
        await orchestrator.close()

    record = await store.get(job_id)
    if record is None:
        return 1
    print(
        f"job_id={record.id} status={record.status.value} "
        f"moderation={record.moderation.status.value} reason={record.moderation.details.decision_reason}"
    )
    return 0


def main() -> None:
    raise SystemExit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
