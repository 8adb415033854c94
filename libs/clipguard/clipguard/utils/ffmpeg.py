"""Locate the ffmpeg/ffprobe executables.

Order: an explicit path, then PATH. Only `ffmpeg` has a bundled fallback
(`imageio-ffmpeg`, installed with the `ffmpeg` extra); `imageio-ffmpeg` ships
no ffprobe.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def _which(binary: str) -> str | None:
    if Path(binary).exists():
        return binary
    return shutil.which(binary)


def resolve_ffmpeg_bin(ffmpeg_bin: str = "ffmpeg") -> str:
    name = (ffmpeg_bin or "ffmpeg").strip()
    found = _which(name)
    if found:
        return found

    try:
        import imageio_ffmpeg

        return str(imageio_ffmpeg.get_ffmpeg_exe())
    except Exception as exc:
        logger.warning("ffmpeg not found (bundled lookup failed: %s); using %r as-is", exc, name)
        return name


def resolve_ffprobe_bin(ffprobe_bin: str = "ffprobe") -> str:
    name = (ffprobe_bin or "ffprobe").strip()
    found = _which(name)
    if found:
        return found
    logger.warning("ffprobe not found in PATH; using %r as-is", name)
    return name
