"""Verdict stage."""

from __future__ import annotations

from typing import cast

from clipguard.moderation.aggregator import DEFAULT_FLAG_THRESHOLD, aggregate
from clipguard.pipeline.context import ModerationContext, PipelineState
from clipguard.stages.base import Stage


class DecisionStage(Stage):
    name = PipelineState.DECIDING.value

    def __init__(self, *, flag_threshold: float = DEFAULT_FLAG_THRESHOLD) -> None:
        self.flag_threshold = float(flag_threshold)

    def validate_input(self, context: ModerationContext) -> bool:
        return "labels" in context

    async def execute(self, context: ModerationContext) -> ModerationContext:
        verdict = aggregate(
            list(context.get("labels") or []),
            context.get("title"),
            context.get("description"),
            flag_threshold=self.flag_threshold,
        )
        context = cast(ModerationContext, dict(context))
        context["verdict"] = verdict
        return context
