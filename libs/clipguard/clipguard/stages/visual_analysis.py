"""Visual classification stage."""

from __future__ import annotations

import logging
from typing import cast

from clipguard.models.moderation import Label
from clipguard.pipeline.context import ModerationContext, PipelineState
from clipguard.providers.classifier.base import ContentClassifier, classify_frames
from clipguard.stages.base import Stage

logger = logging.getLogger(__name__)


class VisualAnalysisStage(Stage):
    """Classifies a prefix of the retained frames (sampling bounds service cost)."""

    name = PipelineState.ANALYZING_VISUALS.value

    def __init__(
        self,
        classifier: ContentClassifier,
        *,
        max_frames: int = 5,
        max_concurrent: int = 5,
    ) -> None:
        self.classifier = classifier
        self.max_frames = max(1, int(max_frames))
        self.max_concurrent = max(1, int(max_concurrent))

    def validate_input(self, context: ModerationContext) -> bool:
        return bool(context.get("frame_paths"))

    async def execute(self, context: ModerationContext) -> ModerationContext:
        frames = list(context["frame_paths"])[: self.max_frames]
        per_frame = await classify_frames(
            self.classifier, frames, max_concurrent=min(self.max_concurrent, len(frames))
        )
        labels: list[Label] = [label for frame_labels in per_frame for label in frame_labels]
        logger.info(
            "visual analysis done (job_id=%s, frames=%d, labels=%d)",
            context.get("job_id"),
            len(frames),
            len(labels),
        )
        context = cast(ModerationContext, dict(context))
        context["labels"] = labels
        context["frames_analyzed"] = len(list(context["frame_paths"]))
        return context
