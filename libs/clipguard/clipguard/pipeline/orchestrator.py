"""Moderation pipeline orchestrator (one run per uploaded video)."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from clipguard.config import Settings
from clipguard.error_codes import ErrorCode
from clipguard.exceptions import (
    ConfigurationError,
    DurationExceededError,
    StageError,
)
from clipguard.media.acquirer import MediaAcquirer
from clipguard.media.decomposer import MediaDecomposer
from clipguard.models.content import (
    ContentStatus,
    ModerationDetails,
    ModerationRecord,
    ModerationStatus,
)
from clipguard.models.moderation import Verdict
from clipguard.pipeline.context import (
    PROGRESS_CHECKPOINTS,
    ModerationContext,
    PipelineState,
)
from clipguard.pipeline.locks import InMemoryJobLock, JobLock
from clipguard.providers.classifier.base import ContentClassifier
from clipguard.services.cleaner import JobArtifacts, ResourceCleaner
from clipguard.services.content_store import ContentStore
from clipguard.services.progress import ProgressEmitter
from clipguard.services.settings_provider import SettingsProvider
from clipguard.stages import (
    AudioExtractionStage,
    DecisionStage,
    DownloadStage,
    FrameExtractionStage,
    ProbeStage,
    Stage,
    VisualAnalysisStage,
)

logger = logging.getLogger(__name__)


def build_stages(
    settings: Settings,
    *,
    classifier: ContentClassifier,
    acquirer: MediaAcquirer | None = None,
    decomposer: MediaDecomposer | None = None,
) -> list[Stage]:
    acquirer = acquirer or MediaAcquirer(
        ffprobe_bin=settings.media.ffprobe_bin,
        timeout=settings.download.timeout,
        connect_timeout=settings.download.connect_timeout,
        chunk_size=settings.download.chunk_size,
    )
    decomposer = decomposer or MediaDecomposer(
        ffmpeg_bin=settings.media.ffmpeg_bin,
        scene_threshold=settings.media.scene_threshold,
        frame_width=settings.media.frame_width,
        max_frames=settings.media.max_frames,
    )
    return [
        DownloadStage(acquirer),
        ProbeStage(acquirer),
        AudioExtractionStage(decomposer),
        FrameExtractionStage(decomposer),
        VisualAnalysisStage(
            classifier,
            max_frames=settings.classifier.max_frames,
            max_concurrent=settings.classifier.max_concurrent,
        ),
        DecisionStage(flag_threshold=settings.classifier.flag_threshold),
    ]


class ModerationOrchestrator:
    """Runs the moderation stages for one job and owns its state transitions.

    `run()` never raises: every outcome is written to the content record and
    published as a progress event, and the job's temp files are removed on
    every exit path.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: ContentStore,
        settings_provider: SettingsProvider,
        classifier: ContentClassifier,
        progress: ProgressEmitter | None = None,
        lock: JobLock | None = None,
        cleaner: ResourceCleaner | None = None,
        acquirer: MediaAcquirer | None = None,
        decomposer: MediaDecomposer | None = None,
        stages: list[Stage] | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.settings_provider = settings_provider
        self.classifier = classifier
        self.progress = progress or ProgressEmitter()
        self.lock = lock or InMemoryJobLock()
        self.cleaner = cleaner or ResourceCleaner()
        self.stages = stages or build_stages(
            settings, classifier=classifier, acquirer=acquirer, decomposer=decomposer
        )

    async def close(self) -> None:
        await self.classifier.close()

    @staticmethod
    def _infer_error_code(state: PipelineState, exc: BaseException) -> str:
        code = getattr(exc, "error_code", None)
        if isinstance(code, ErrorCode):
            return code.value
        if code:
            return str(code)
        if isinstance(exc, ConfigurationError):
            return ErrorCode.CONFIGURATION_ERROR.value

        if state in {PipelineState.DOWNLOADING, PipelineState.RECEIVED}:
            return ErrorCode.DOWNLOAD_FAILED.value
        if state == PipelineState.PROBING:
            return ErrorCode.PROBE_FAILED.value
        if state == PipelineState.EXTRACTING_FRAMES:
            return ErrorCode.FRAME_EXTRACTION_FAILED.value
        if state == PipelineState.ANALYZING_VISUALS:
            return ErrorCode.CLASSIFIER_FAILED.value
        return ErrorCode.UNKNOWN.value

    @staticmethod
    def _infer_error_message(exc: BaseException) -> str:
        if isinstance(exc, StageError):
            return str(exc.message or "") or "Processing error"
        return str(exc) or "Processing error"

    async def run(self, job_id: str, media_url: str, *, force: bool = False) -> None:
        try:
            token = await self.lock.acquire(job_id)
        except Exception:
            logger.exception("could not acquire job lock (job_id=%s)", job_id)
            return
        if token is None:
            logger.warning("moderation already running, duplicate rejected (job_id=%s)", job_id)
            return

        try:
            await self._run_locked(job_id, media_url, force=force)
        except Exception:
            # Last resort: nothing may escape to the caller of a detached run.
            logger.exception("moderation run crashed (job_id=%s)", job_id)
        finally:
            try:
                await self.lock.release(job_id, token)
            except Exception:
                logger.exception("could not release job lock (job_id=%s)", job_id)

    async def _run_locked(self, job_id: str, media_url: str, *, force: bool) -> None:
        artifacts: JobArtifacts | None = None
        state = PipelineState.RECEIVED
        ctx: ModerationContext = {"job_id": str(job_id), "media_url": str(media_url)}
        logger.info("moderation start (job_id=%s, media_url=%s)", job_id, media_url)

        try:
            artifacts = JobArtifacts.for_job(self.settings.temp_dir, job_id)
            record = await self.store.get(job_id)
            if record is None:
                raise StageError(state.value, "content record not found", job_id=job_id)
            if record.moderation.manually_reviewed and not force:
                logger.info(
                    "skip: manually reviewed (job_id=%s, reviewed_by=%s)",
                    job_id,
                    record.moderation.reviewed_by,
                )
                return

            state = PipelineState.PROCESSING
            await self.store.update_fields(job_id, {"status": ContentStatus.PROCESSING})

            limits = await self.settings_provider.get_settings()
            ctx.update(
                {
                    "title": record.title,
                    "description": record.description,
                    "limits": limits,
                    "video_path": str(artifacts.video_path),
                    "audio_path": str(artifacts.audio_path),
                    "frames_dir": str(artifacts.frames_dir),
                }
            )

            for stage in self.stages:
                state = PipelineState(stage.name)
                ctx = await self._run_stage(job_id, stage, state, ctx)

            state = PipelineState.TERMINAL
            await self._complete(job_id, ctx)
        except Exception as exc:
            await self._fail(job_id, state, exc, ctx)
        finally:
            if artifacts is not None:
                self.cleaner.cleanup(artifacts)

    async def _run_stage(
        self, job_id: str, stage: Stage, state: PipelineState, ctx: ModerationContext
    ) -> ModerationContext:
        checkpoint = PROGRESS_CHECKPOINTS.get(state)
        if checkpoint is not None:
            await self.progress.emit(
                job_id,
                ContentStatus.PROCESSING.value,
                {"stage": state.value, "progress": checkpoint},
            )

        if not stage.validate_input(ctx):
            raise StageError(stage.name, "input validation failed", job_id=job_id)

        timeout_s = self.settings.stage_timeout.for_stage(stage.name)
        logger.info("stage start (job_id=%s, stage=%s)", job_id, stage.name)
        try:
            out = await asyncio.wait_for(stage.execute(ctx), timeout=timeout_s)
        except asyncio.TimeoutError as exc:
            raise StageError(
                stage.name,
                f"timed out after {timeout_s:g}s",
                job_id=job_id,
                error_code=ErrorCode.STAGE_TIMEOUT,
            ) from exc
        logger.info("stage done (job_id=%s, stage=%s)", job_id, stage.name)
        return out

    async def _complete(self, job_id: str, ctx: ModerationContext) -> None:
        verdict: Verdict = ctx["verdict"]
        if verdict.unsafe:
            status = ContentStatus.FLAGGED
            moderation_status = ModerationStatus.PENDING
        else:
            status = ContentStatus.SAFE
            moderation_status = ModerationStatus.APPROVED

        moderation = ModerationRecord(
            status=moderation_status,
            checked_at=datetime.now(tz=timezone.utc),
            visual_score=verdict.visual_score,
            details=ModerationDetails(
                frames_analyzed=int(ctx.get("frames_analyzed") or 0),
                labels_found=list(verdict.labels),
                flags=list(verdict.flags),
                decision_reason=verdict.reason,
            ),
        )
        patch: dict[str, Any] = {"status": status, "moderation": moderation.to_dict()}
        if ctx.get("duration") is not None:
            patch["duration"] = float(ctx["duration"])
        await self.store.update_fields(job_id, patch)

        logger.info(
            "moderation done (job_id=%s, status=%s, moderation_status=%s, reason=%s)",
            job_id,
            status.value,
            moderation_status.value,
            verdict.reason,
        )
        await self.progress.emit(
            job_id,
            status.value,
            {"moderation_status": moderation_status.value, "progress": 100},
        )

    async def _fail(
        self, job_id: str, state: PipelineState, exc: BaseException, ctx: ModerationContext
    ) -> None:
        if isinstance(exc, DurationExceededError):
            status = ContentStatus.FAILED
            moderation_status = ModerationStatus.FAILED
        else:
            # Fail toward manual review, never toward auto-publish.
            status = ContentStatus.FLAGGED
            moderation_status = ModerationStatus.PENDING

        reason = self._infer_error_message(exc)
        error_code = self._infer_error_code(state, exc)
        logger.exception(
            "moderation failed (job_id=%s, stage=%s, status=%s, error_code=%s)",
            job_id,
            state.value,
            status.value,
            error_code,
        )

        await self.progress.emit(
            job_id, status.value, {"error": reason, "stage": state.value, "progress": 100}
        )

        moderation = ModerationRecord(
            status=moderation_status,
            checked_at=datetime.now(tz=timezone.utc),
            details=ModerationDetails(
                frames_analyzed=len(list(ctx.get("frame_paths") or [])),
                decision_reason=reason,
                error_code=error_code,
            ),
        )
        patch: dict[str, Any] = {"status": status, "moderation": moderation.to_dict()}
        if isinstance(exc, DurationExceededError):
            patch["duration"] = exc.duration_s
        elif ctx.get("duration") is not None:
            patch["duration"] = float(ctx["duration"])
        try:
            updated = await self.store.update_fields(job_id, patch)
        except Exception:
            logger.exception("could not persist failure status (job_id=%s)", job_id)
            return
        if not updated:
            logger.warning("failure status not persisted, record missing (job_id=%s)", job_id)
