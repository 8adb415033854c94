"""Value types exchanged between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from clipguard.config import DEFAULT_SUPPORTED_FORMATS


@dataclass(frozen=True)
class Label:
    """A moderation label returned by the classification service."""

    name: str
    confidence: float
    parent_name: str | None = None


@dataclass(frozen=True)
class Verdict:
    unsafe: bool
    visual_score: float
    labels: list[str]
    flags: list[str]
    reason: str
    visual_flagged: bool = False
    metadata_flagged: bool = False


@dataclass(frozen=True)
class ModerationLimits:
    """Operator-editable upload limits, re-read on every run."""

    max_duration_seconds: float = 600.0
    max_file_size_mb: float = 100.0
    supported_formats: list[str] = field(default_factory=lambda: list(DEFAULT_SUPPORTED_FORMATS))

    @property
    def max_file_size_bytes(self) -> int:
        return int(float(self.max_file_size_mb) * 1024 * 1024)


@dataclass(frozen=True)
class ProgressEvent:
    job_id: str
    status: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"job_id": self.job_id, "status": self.status, "details": dict(self.details)}
