"""Download and probe stages."""

from __future__ import annotations

import logging
from typing import cast

from clipguard.media.acquirer import MediaAcquirer
from clipguard.models.moderation import ModerationLimits
from clipguard.pipeline.context import ModerationContext, PipelineState
from clipguard.stages.base import Stage

logger = logging.getLogger(__name__)


class DownloadStage(Stage):
    name = PipelineState.DOWNLOADING.value

    def __init__(self, acquirer: MediaAcquirer) -> None:
        self.acquirer = acquirer

    def validate_input(self, context: ModerationContext) -> bool:
        return bool(context.get("media_url")) and bool(context.get("video_path"))

    async def execute(self, context: ModerationContext) -> ModerationContext:
        limits = context.get("limits") or ModerationLimits()
        await self.acquirer.download(
            str(context["media_url"]),
            str(context["video_path"]),
            max_bytes=limits.max_file_size_bytes,
        )
        return context


class ProbeStage(Stage):
    name = PipelineState.PROBING.value

    def __init__(self, acquirer: MediaAcquirer) -> None:
        self.acquirer = acquirer

    def validate_input(self, context: ModerationContext) -> bool:
        return bool(context.get("video_path"))

    async def execute(self, context: ModerationContext) -> ModerationContext:
        limits = context.get("limits") or ModerationLimits()
        duration = await self.acquirer.probe_duration(str(context["video_path"]))
        logger.info(
            "probed (job_id=%s, duration=%.2fs, limit=%ss)",
            context.get("job_id"),
            duration,
            limits.max_duration_seconds,
        )
        context = cast(ModerationContext, dict(context))
        context["duration"] = float(duration)
        self.acquirer.check_duration(duration, limits)
        return context
