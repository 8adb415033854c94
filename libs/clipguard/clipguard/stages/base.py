"""Stage abstractions for pipeline execution."""

from __future__ import annotations

from abc import ABC, abstractmethod

from clipguard.pipeline.context import ModerationContext


class Stage(ABC):
    """One sequential step of a moderation run."""

    name: str

    @abstractmethod
    async def execute(self, context: ModerationContext) -> ModerationContext:
        """Run the stage and return the updated context."""

    @abstractmethod
    def validate_input(self, context: ModerationContext) -> bool:
        """Check that the context carries what the stage needs."""
