"""Derive an audio track and scene-change frames from a local video."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from clipguard.error_codes import ErrorCode
from clipguard.exceptions import StageError
from clipguard.utils.ffmpeg import resolve_ffmpeg_bin
from clipguard.utils.subprocess import run_subprocess

logger = logging.getLogger(__name__)

_FRAME_RE = re.compile(r"^frame-(\d+)\.png$")
FALLBACK_FRAME_NAME = "fallback.png"


def list_frames(frames_dir: str | Path) -> list[Path]:
    """Frames in detection order (numeric index, not lexical)."""
    base = Path(frames_dir)
    if not base.is_dir():
        return []
    indexed: list[tuple[int, Path]] = []
    fallback: list[Path] = []
    for p in base.iterdir():
        if not p.is_file():
            continue
        m = _FRAME_RE.match(p.name)
        if m:
            indexed.append((int(m.group(1)), p))
        elif p.name == FALLBACK_FRAME_NAME:
            fallback.append(p)
    return [p for _, p in sorted(indexed)] + fallback


class MediaDecomposer:
    def __init__(
        self,
        *,
        ffmpeg_bin: str = "ffmpeg",
        scene_threshold: float = 0.15,
        frame_width: int = 320,
        max_frames: int = 15,
    ) -> None:
        self.ffmpeg_bin = resolve_ffmpeg_bin(ffmpeg_bin)
        self.scene_threshold = float(scene_threshold)
        self.frame_width = int(frame_width)
        self.max_frames = max(1, int(max_frames))

    async def extract_audio(self, src_path: str | Path, audio_path: str | Path) -> str | None:
        """Extract an MP3 track. Returns None when the video has no usable audio."""
        out = Path(audio_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        args = [
            self.ffmpeg_bin,
            "-y",
            "-i",
            str(src_path),
            "-vn",
            "-acodec",
            "libmp3lame",
            str(out),
        ]
        try:
            result = await run_subprocess(args)
        except Exception as exc:
            logger.warning("audio extraction failed (src=%s, error=%s)", src_path, exc)
            out.unlink(missing_ok=True)
            return None
        if not result.ok or not out.exists() or out.stat().st_size == 0:
            logger.warning(
                "audio extraction failed, continuing without audio (src=%s, %s)",
                src_path,
                result.describe(limit=300),
            )
            out.unlink(missing_ok=True)
            return None
        return str(out)

    async def extract_frames(
        self,
        src_path: str | Path,
        frames_dir: str | Path,
        *,
        duration: float | None = None,
    ) -> list[Path]:
        """Sample visually distinct frames; always returns between 1 and `max_frames` paths."""
        out_dir = Path(frames_dir)
        out_dir.mkdir(parents=True, exist_ok=True)

        vf = f"select='gt(scene,{self.scene_threshold:g})',scale={self.frame_width}:-1"
        await self._run_ffmpeg(
            [
                self.ffmpeg_bin,
                "-y",
                "-i",
                str(src_path),
                "-vf",
                vf,
                "-fps_mode",
                "vfr",
                str(out_dir / "frame-%d.png"),
            ],
            what="scene detection",
        )

        frames = list_frames(out_dir)
        if not frames:
            logger.info("no scene changes detected, taking a single snapshot (src=%s)", src_path)
            frames = await self._snapshot(src_path, out_dir, duration=duration)

        if len(frames) > self.max_frames:
            for extra in frames[self.max_frames :]:
                extra.unlink(missing_ok=True)
            frames = frames[: self.max_frames]

        logger.info("frames extracted (src=%s, count=%d)", src_path, len(frames))
        return frames

    async def _snapshot(
        self, src_path: str | Path, out_dir: Path, *, duration: float | None
    ) -> list[Path]:
        offset = float(duration) / 2.0 if duration and duration > 0 else 0.0
        target = out_dir / FALLBACK_FRAME_NAME
        await self._run_ffmpeg(
            [
                self.ffmpeg_bin,
                "-y",
                "-ss",
                f"{offset:.3f}",
                "-i",
                str(src_path),
                "-frames:v",
                "1",
                "-vf",
                f"scale={self.frame_width}:-1",
                str(target),
            ],
            what="fallback snapshot",
        )
        if not target.exists():
            raise StageError(
                "extracting_frames",
                "no frames could be extracted from the video",
                error_code=ErrorCode.FRAME_EXTRACTION_FAILED,
            )
        return [target]

    async def _run_ffmpeg(self, args: list[str], *, what: str) -> None:
        try:
            result = await run_subprocess(args)
        except FileNotFoundError as exc:
            raise StageError(
                "extracting_frames",
                f"ffmpeg binary not found: {self.ffmpeg_bin}. "
                "Install ffmpeg and ensure it is in PATH (or set MEDIA_FFMPEG_BIN).",
                error_code=ErrorCode.FRAME_EXTRACTION_FAILED,
            ) from exc
        if not result.ok:
            raise StageError(
                "extracting_frames",
                f"{what} failed ({result.describe()})",
                error_code=ErrorCode.FRAME_EXTRACTION_FAILED,
            )
