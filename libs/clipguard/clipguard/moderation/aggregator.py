"""Fuse per-frame labels and a metadata heuristic into a single verdict.

`visual_score` is a coarse binary proxy (0.98 flagged, 0.05 clean) rather than
a weighted aggregate of label confidences; downstream dashboards rely on those
two values.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from clipguard.models.moderation import Label, Verdict

UNSAFE_KEYWORDS: tuple[str, ...] = ("unsafe", "violence", "explicit", "drugs", "nude")
METADATA_FLAG = "inappropriate_metadata"

FLAGGED_VISUAL_SCORE = 0.98
CLEAN_VISUAL_SCORE = 0.05
DEFAULT_FLAG_THRESHOLD = 75.0


def find_blacklisted_terms(
    title: str | None,
    description: str | None,
    keywords: Sequence[str] = UNSAFE_KEYWORDS,
) -> list[str]:
    text = f"{title or ''} {description or ''}".lower()
    return [kw for kw in keywords if kw in text]


def aggregate(
    all_labels: Iterable[Label],
    title: str | None,
    description: str | None,
    *,
    flag_threshold: float = DEFAULT_FLAG_THRESHOLD,
    keywords: Sequence[str] = UNSAFE_KEYWORDS,
) -> Verdict:
    labels = list(all_labels)
    visual_flagged = any(label.confidence > flag_threshold for label in labels)
    metadata_hits = find_blacklisted_terms(title, description, keywords)
    metadata_flagged = bool(metadata_hits)

    names = list(dict.fromkeys(label.name for label in labels))

    if visual_flagged:
        flags = list(names)
        reason = f"AI detected sensitive content: {', '.join(names)}"
    elif metadata_flagged:
        flags = [METADATA_FLAG]
        reason = "Metadata contains blacklisted terms"
    else:
        flags = []
        reason = "Automated checks passed"

    return Verdict(
        unsafe=visual_flagged or metadata_flagged,
        visual_score=FLAGGED_VISUAL_SCORE if visual_flagged else CLEAN_VISUAL_SCORE,
        labels=names,
        flags=flags,
        reason=reason,
        visual_flagged=visual_flagged,
        metadata_flagged=metadata_flagged,
    )
