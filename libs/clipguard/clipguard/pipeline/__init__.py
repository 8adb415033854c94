"""Pipeline orchestration.

Stages import `clipguard.pipeline.context` for type hints. Keep imports lazy to
avoid circular-import issues between `clipguard.pipeline` and `clipguard.stages`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from clipguard.pipeline.dispatch import ModerationDispatcher
    from clipguard.pipeline.factory import create_orchestrator, run_moderation
    from clipguard.pipeline.orchestrator import ModerationOrchestrator

__all__ = ["ModerationDispatcher", "ModerationOrchestrator", "create_orchestrator", "run_moderation"]


def __getattr__(name: str) -> Any:
    if name == "ModerationOrchestrator":
        from clipguard.pipeline.orchestrator import ModerationOrchestrator

        return ModerationOrchestrator
    if name == "ModerationDispatcher":
        from clipguard.pipeline.dispatch import ModerationDispatcher

        return ModerationDispatcher
    if name == "create_orchestrator":
        from clipguard.pipeline.factory import create_orchestrator

        return create_orchestrator
    if name == "run_moderation":
        from clipguard.pipeline.factory import run_moderation

        return run_moderation
    raise AttributeError(name)
