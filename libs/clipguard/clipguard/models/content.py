"""Content record model (the unit moderated by one pipeline run)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ContentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SAFE = "safe"
    FLAGGED = "flagged"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({ContentStatus.SAFE, ContentStatus.FLAGGED, ContentStatus.FAILED})


class ModerationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    # Audit-only value written when a video is rejected for exceeding the duration limit.
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _dt_to_iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def _dt_from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


@dataclass
class ModerationDetails:
    frames_analyzed: int = 0
    labels_found: list[str] = field(default_factory=list)
    flags: list[str] = field(default_factory=list)
    decision_reason: str = ""
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "frames_analyzed": int(self.frames_analyzed),
            "labels_found": list(self.labels_found),
            "flags": list(self.flags),
            "decision_reason": self.decision_reason,
            "error_code": self.error_code,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModerationDetails":
        return cls(
            frames_analyzed=int(data.get("frames_analyzed") or 0),
            labels_found=[str(x) for x in list(data.get("labels_found") or [])],
            flags=[str(x) for x in list(data.get("flags") or [])],
            decision_reason=str(data.get("decision_reason") or ""),
            error_code=data.get("error_code"),
        )


@dataclass
class ModerationRecord:
    status: ModerationStatus = ModerationStatus.PENDING
    checked_at: datetime | None = None
    visual_score: float = 0.0
    details: ModerationDetails = field(default_factory=ModerationDetails)
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None

    @property
    def manually_reviewed(self) -> bool:
        return bool(self.reviewed_by)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "checked_at": _dt_to_iso(self.checked_at),
            "visual_score": float(self.visual_score),
            "details": self.details.to_dict(),
            "reviewed_by": self.reviewed_by,
            "reviewed_at": _dt_to_iso(self.reviewed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModerationRecord":
        details_raw = data.get("details")
        return cls(
            status=ModerationStatus(str(data.get("status") or ModerationStatus.PENDING.value)),
            checked_at=_dt_from_iso(data.get("checked_at")),
            visual_score=float(data.get("visual_score") or 0.0),
            details=ModerationDetails.from_dict(details_raw) if isinstance(details_raw, dict) else ModerationDetails(),
            reviewed_by=data.get("reviewed_by"),
            reviewed_at=_dt_from_iso(data.get("reviewed_at")),
        )


@dataclass
class ContentRecord:
    id: str
    media_url: str
    title: str = ""
    description: str = ""
    status: ContentStatus = ContentStatus.PENDING
    moderation: ModerationRecord = field(default_factory=ModerationRecord)
    duration: float = 0.0
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "media_url": self.media_url,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "moderation": self.moderation.to_dict(),
            "duration": float(self.duration),
            "created_at": _dt_to_iso(self.created_at),
            "updated_at": _dt_to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContentRecord":
        moderation_raw = data.get("moderation")
        return cls(
            id=str(data.get("id", "")),
            media_url=str(data.get("media_url", "")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            status=ContentStatus(str(data.get("status") or ContentStatus.PENDING.value)),
            moderation=(
                ModerationRecord.from_dict(moderation_raw)
                if isinstance(moderation_raw, dict)
                else ModerationRecord()
            ),
            duration=float(data.get("duration") or 0.0),
            created_at=_dt_from_iso(data.get("created_at")) or _utcnow(),
            updated_at=_dt_from_iso(data.get("updated_at")) or _utcnow(),
        )
