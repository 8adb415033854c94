"""Audio and frame extraction stages."""

from __future__ import annotations

import logging
from typing import cast

from clipguard.media.decomposer import MediaDecomposer
from clipguard.pipeline.context import ModerationContext, PipelineState
from clipguard.stages.base import Stage

logger = logging.getLogger(__name__)


class AudioExtractionStage(Stage):
    """Best effort: a video without audio still moves on to frame analysis."""

    name = PipelineState.EXTRACTING_AUDIO.value

    def __init__(self, decomposer: MediaDecomposer) -> None:
        self.decomposer = decomposer

    def validate_input(self, context: ModerationContext) -> bool:
        return bool(context.get("video_path")) and bool(context.get("audio_path"))

    async def execute(self, context: ModerationContext) -> ModerationContext:
        produced = await self.decomposer.extract_audio(
            str(context["video_path"]), str(context["audio_path"])
        )
        context = cast(ModerationContext, dict(context))
        context["audio_path"] = produced
        if produced is None:
            logger.info("continuing without audio (job_id=%s)", context.get("job_id"))
        return context


class FrameExtractionStage(Stage):
    name = PipelineState.EXTRACTING_FRAMES.value

    def __init__(self, decomposer: MediaDecomposer) -> None:
        self.decomposer = decomposer

    def validate_input(self, context: ModerationContext) -> bool:
        return bool(context.get("video_path")) and bool(context.get("frames_dir"))

    async def execute(self, context: ModerationContext) -> ModerationContext:
        frames = await self.decomposer.extract_frames(
            str(context["video_path"]),
            str(context["frames_dir"]),
            duration=context.get("duration"),
        )
        context = cast(ModerationContext, dict(context))
        context["frame_paths"] = [str(p) for p in frames]
        return context
