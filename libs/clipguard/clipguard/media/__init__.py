"""Media acquisition and decomposition (httpx download, ffprobe, ffmpeg)."""

from clipguard.media.acquirer import MediaAcquirer
from clipguard.media.decomposer import MediaDecomposer

__all__ = ["MediaAcquirer", "MediaDecomposer"]
