"""Processing stages."""

from clipguard.stages.acquire import DownloadStage, ProbeStage
from clipguard.stages.base import Stage
from clipguard.stages.decision import DecisionStage
from clipguard.stages.decompose import AudioExtractionStage, FrameExtractionStage
from clipguard.stages.visual_analysis import VisualAnalysisStage

__all__ = [
    "AudioExtractionStage",
    "DecisionStage",
    "DownloadStage",
    "FrameExtractionStage",
    "ProbeStage",
    "Stage",
    "VisualAnalysisStage",
]
