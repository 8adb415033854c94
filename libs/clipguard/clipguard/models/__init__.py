"""Core data models for ClipGuard."""

from clipguard.models.content import (
    ContentRecord,
    ContentStatus,
    ModerationDetails,
    ModerationRecord,
    ModerationStatus,
    TERMINAL_STATUSES,
)
from clipguard.models.moderation import Label, ModerationLimits, ProgressEvent, Verdict

__all__ = [
    "ContentRecord",
    "ContentStatus",
    "Label",
    "ModerationDetails",
    "ModerationLimits",
    "ModerationRecord",
    "ModerationStatus",
    "ProgressEvent",
    "TERMINAL_STATUSES",
    "Verdict",
]
