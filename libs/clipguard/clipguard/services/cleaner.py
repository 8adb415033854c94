"""Job-scoped temporary artifacts and their cleanup."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from clipguard.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _safe_job_component(job_id: str) -> str:
    raw = str(job_id or "").strip()
    if not raw or raw in {".", ".."} or "/" in raw or "\\" in raw or "\x00" in raw:
        raise ConfigurationError(f"job_id cannot be used as a path component: {job_id!r}")
    return raw


@dataclass(frozen=True)
class JobArtifacts:
    """Local files owned by one moderation run."""

    job_id: str
    video_path: Path
    audio_path: Path
    frames_dir: Path

    @classmethod
    def for_job(cls, temp_dir: str | Path, job_id: str) -> "JobArtifacts":
        name = _safe_job_component(job_id)
        base = Path(temp_dir)
        return cls(
            job_id=str(job_id),
            video_path=base / f"{name}.mp4",
            audio_path=base / f"{name}.mp3",
            frames_dir=base / f"{name}_frames",
        )

    def paths(self) -> list[Path]:
        return [self.video_path, self.audio_path, self.frames_dir]

    def exists(self) -> bool:
        return any(p.exists() for p in self.paths())


class ResourceCleaner:
    """Removes a job's temporary artifacts. Safe to call repeatedly."""

    def cleanup(self, artifacts: JobArtifacts) -> int:
        removed = 0
        for path in (artifacts.video_path, artifacts.audio_path):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.error(
                    "cleanup failed (job_id=%s, path=%s, error=%s)", artifacts.job_id, path, exc
                )

        if artifacts.frames_dir.exists():
            try:
                removed += sum(1 for p in artifacts.frames_dir.rglob("*") if p.is_file())
                shutil.rmtree(artifacts.frames_dir)
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.error(
                    "cleanup failed (job_id=%s, path=%s, error=%s)",
                    artifacts.job_id,
                    artifacts.frames_dir,
                    exc,
                )

        logger.info("cleanup completed (job_id=%s, removed=%d)", artifacts.job_id, removed)
        return removed
