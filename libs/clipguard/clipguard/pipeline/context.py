"""Pipeline context typing.

Stages share one context dict per run. This module defines the known keys and
the run's state machine.
"""

from __future__ import annotations

from enum import Enum
from typing import TypedDict

from clipguard.models.moderation import Label, ModerationLimits, Verdict


class PipelineState(str, Enum):
    RECEIVED = "received"
    PROCESSING = "processing"
    DOWNLOADING = "downloading"
    PROBING = "probing"
    EXTRACTING_AUDIO = "extracting_audio"
    EXTRACTING_FRAMES = "extracting_frames"
    ANALYZING_VISUALS = "analyzing_visuals"
    DECIDING = "deciding"
    TERMINAL = "terminal"


STAGE_ORDER: list[PipelineState] = [
    PipelineState.DOWNLOADING,
    PipelineState.PROBING,
    PipelineState.EXTRACTING_AUDIO,
    PipelineState.EXTRACTING_FRAMES,
    PipelineState.ANALYZING_VISUALS,
    PipelineState.DECIDING,
]

# Progress percentages published when a stage starts.
PROGRESS_CHECKPOINTS: dict[PipelineState, int] = {
    PipelineState.DOWNLOADING: 10,
    PipelineState.EXTRACTING_AUDIO: 30,
    PipelineState.EXTRACTING_FRAMES: 50,
    PipelineState.ANALYZING_VISUALS: 70,
}


class ModerationContext(TypedDict, total=False):
    job_id: str
    media_url: str
    title: str
    description: str
    limits: ModerationLimits

    video_path: str
    audio_path: str | None
    frames_dir: str
    duration: float

    frame_paths: list[str]
    frames_analyzed: int
    labels: list[Label]

    verdict: Verdict
