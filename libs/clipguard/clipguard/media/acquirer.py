"""Fetch the uploaded asset into local temp storage and probe its duration."""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from pathlib import Path

import httpx

from clipguard.exceptions import AcquisitionError, DurationExceededError, ProbeError
from clipguard.models.moderation import ModerationLimits
from clipguard.utils.ffmpeg import resolve_ffprobe_bin
from clipguard.utils.subprocess import run_subprocess

logger = logging.getLogger(__name__)


def _remove_partial(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def _parse_duration(raw: bytes) -> float | None:
    meta = json.loads(raw.decode("utf-8", errors="ignore") or "{}")
    fmt = meta.get("format") or {}
    value = fmt.get("duration")
    if value not in (None, "", "N/A"):
        return float(value)
    # Some containers only report duration per stream.
    durations = [
        float(s["duration"])
        for s in list(meta.get("streams") or [])
        if s.get("duration") not in (None, "", "N/A")
    ]
    return max(durations) if durations else None


class MediaAcquirer:
    def __init__(
        self,
        *,
        ffprobe_bin: str = "ffprobe",
        timeout: float = 600.0,
        connect_timeout: float = 10.0,
        chunk_size: int = 1024 * 1024,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.ffprobe_bin = resolve_ffprobe_bin(ffprobe_bin)
        self.timeout = float(timeout)
        self.connect_timeout = float(connect_timeout)
        self.chunk_size = int(chunk_size)
        self._client = client

    async def acquire(self, media_url: str, dest_path: str | Path, limits: ModerationLimits) -> float:
        """Download `media_url` to `dest_path` and return its duration in seconds."""
        await self.download(media_url, dest_path, max_bytes=limits.max_file_size_bytes)
        duration = await self.probe_duration(dest_path)
        self.check_duration(duration, limits)
        return duration

    async def download(
        self, media_url: str, dest_path: str | Path, *, max_bytes: int | None = None
    ) -> int:
        dest = Path(dest_path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        url = str(media_url or "").strip()

        if url.startswith("http://") or url.startswith("https://"):
            size = await self._download_http(url, dest, max_bytes=max_bytes)
        elif url and Path(url).is_file():
            size = Path(url).stat().st_size
            if max_bytes is not None and size > max_bytes:
                raise AcquisitionError(f"File too large ({size} bytes). Limit is {max_bytes} bytes.")
            await asyncio.to_thread(shutil.copyfile, url, dest)
        else:
            raise AcquisitionError(f"Unsupported media_url: {url!r}")

        logger.info("downloaded media (url=%s, dest=%s, bytes=%d)", url, dest, size)
        return size

    async def _download_http(self, url: str, dest: Path, *, max_bytes: int | None) -> int:
        client = self._client
        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                follow_redirects=True,
            )
        size = 0
        try:
            async with client.stream("GET", url) as resp:
                resp.raise_for_status()
                with open(dest, "wb") as f:
                    async for chunk in resp.aiter_bytes(self.chunk_size):
                        size += len(chunk)
                        if max_bytes is not None and size > max_bytes:
                            raise AcquisitionError(
                                f"File too large (>{max_bytes} bytes). Download aborted."
                            )
                        f.write(chunk)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            _remove_partial(dest)
            logger.warning("download failed (url=%s, error=%s)", url, exc)
            raise AcquisitionError(f"download failed: {exc}") from exc
        except AcquisitionError:
            _remove_partial(dest)
            raise
        finally:
            if owns_client:
                await client.aclose()
        return size

    async def probe_duration(self, path: str | Path) -> float:
        args = [
            self.ffprobe_bin,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_format",
            "-show_streams",
            str(path),
        ]
        try:
            result = await run_subprocess(args)
        except FileNotFoundError as exc:
            raise ProbeError(
                f"ffprobe binary not found: {self.ffprobe_bin}. "
                "Install ffmpeg and ensure it is in PATH (or set MEDIA_FFPROBE_BIN)."
            ) from exc
        if not result.ok:
            raise ProbeError(f"ffprobe failed ({result.describe()})")
        try:
            duration = _parse_duration(result.stdout)
        except (ValueError, TypeError, KeyError) as exc:
            raise ProbeError(f"unreadable ffprobe output: {exc}") from exc
        if duration is None or duration <= 0:
            raise ProbeError("media duration could not be determined")
        return duration

    @staticmethod
    def check_duration(duration: float, limits: ModerationLimits) -> None:
        logger.info(
            "duration check (duration=%.2fs, limit=%.2fs)", duration, limits.max_duration_seconds
        )
        if float(duration) > float(limits.max_duration_seconds):
            raise DurationExceededError(duration, limits.max_duration_seconds)
