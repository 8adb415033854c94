from __future__ import annotations

import asyncio
import stat
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

from clipguard.config import Settings, StageTimeoutConfig
from clipguard.error_codes import ErrorCode
from clipguard.exceptions import (
    AcquisitionError,
    ClassificationServiceError,
    ConfigurationError,
    ProbeError,
    StageError,
)
from clipguard.media.acquirer import MediaAcquirer
from clipguard.media.decomposer import MediaDecomposer
from clipguard.models.content import ContentRecord, ContentStatus, ModerationRecord, ModerationStatus
from clipguard.models.moderation import Label, ModerationLimits, ProgressEvent
from clipguard.pipeline.context import ModerationContext, PipelineState
from clipguard.pipeline.locks import InMemoryJobLock
from clipguard.pipeline.orchestrator import ModerationOrchestrator
from clipguard.providers.classifier.base import ContentClassifier
from clipguard.services.cleaner import JobArtifacts
from clipguard.services.content_store import InMemoryContentStore
from clipguard.services.progress import LocalProgressChannel, ProgressChannel, ProgressEmitter
from clipguard.services.settings_provider import SettingsProvider, StaticSettingsProvider
from clipguard.stages import DecisionStage, Stage


class _FakeAcquirer(MediaAcquirer):
    def __init__(
        self,
        *,
        duration: float = 30.0,
        error: Exception | None = None,
        duration_error: Exception | None = None,
    ) -> None:
        super().__init__()
        self.duration = duration
        self.error = error
        self.duration_error = duration_error
        self.downloads: list[tuple[str, str, int | None]] = []

    async def download(self, media_url, dest_path, *, max_bytes=None) -> int:  # noqa: ANN001
        self.downloads.append((str(media_url), str(dest_path), max_bytes))
        if self.error is not None:
            raise self.error
        Path(dest_path).parent.mkdir(parents=True, exist_ok=True)
        Path(dest_path).write_bytes(b"video")
        return 5

    async def probe_duration(self, path) -> float:  # noqa: ANN001, ARG002
        if self.duration_error is not None:
            raise self.duration_error
        return self.duration


class _FakeDecomposer(MediaDecomposer):
    def __init__(
        self, *, frames: int = 8, audio: bool = True, frames_error: Exception | None = None
    ) -> None:
        super().__init__()
        self.frames = frames
        self.audio = audio
        self.frames_error = frames_error
        self.calls: list[str] = []

    async def extract_audio(self, src_path, audio_path):  # noqa: ANN001, ANN201
        self.calls.append("audio")
        if not self.audio:
            return None
        Path(audio_path).write_bytes(b"mp3")
        return str(audio_path)

    async def extract_frames(self, src_path, frames_dir, *, duration=None):  # noqa: ANN001, ANN201, ARG002
        self.calls.append("frames")
        out = Path(frames_dir)
        out.mkdir(parents=True, exist_ok=True)
        if self.frames_error is not None:
            (out / "frame-1.png").write_bytes(b"png")
            raise self.frames_error
        paths = []
        for i in range(1, self.frames + 1):
            p = out / f"frame-{i}.png"
            p.write_bytes(b"png")
            paths.append(p)
        return paths


class _FakeClassifier(ContentClassifier):
    def __init__(
        self,
        labels: list[Label] | None = None,
        *,
        error: Exception | None = None,
        delay_s: float = 0.0,
    ) -> None:
        self.labels = list(labels or [])
        self.error = error
        self.delay_s = delay_s
        self.frames: list[str] = []

    async def classify(self, frame_path: str) -> list[Label]:
        self.frames.append(frame_path)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return list(self.labels)


class _BrokenChannel(ProgressChannel):
    async def publish(self, event: ProgressEvent) -> None:  # noqa: ARG002
        raise ConnectionError("pubsub down")


class _BrokenSettingsProvider(SettingsProvider):
    async def get_settings(self) -> ModerationLimits:
        raise ConfigurationError("max_duration_seconds must be > 0 (got -1.0)")


class _StatusRecordingStage(Stage):
    """Stands in for the download stage and records the persisted status."""

    name = PipelineState.DOWNLOADING.value

    def __init__(self, store: InMemoryContentStore) -> None:
        self.store = store
        self.seen: list[ContentStatus] = []

    def validate_input(self, context: ModerationContext) -> bool:
        return True

    async def execute(self, context: ModerationContext) -> ModerationContext:
        record = await self.store.get(context["job_id"])
        assert record is not None
        self.seen.append(record.status)
        context = dict(context)  # type: ignore[assignment]
        context["labels"] = []
        return context


def _slow_ffmpeg(tmp_path: Path) -> Path:
    script = tmp_path / "slow_ffmpeg.sh"
    script.write_text(
        "#!/bin/sh\nfor last; do :; done\nsleep 1\necho x > \"$last\"\n", encoding="utf-8"
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return script


class _Harness:
    def __init__(
        self,
        settings: Settings,
        *,
        acquirer: _FakeAcquirer | None = None,
        decomposer: MediaDecomposer | None = None,
        classifier: _FakeClassifier | None = None,
        limits: ModerationLimits | None = None,
        channel: ProgressChannel | None = None,
        lock: InMemoryJobLock | None = None,
        settings_provider: SettingsProvider | None = None,
    ) -> None:
        self.settings = settings
        self.store = InMemoryContentStore()
        self.acquirer = acquirer or _FakeAcquirer()
        self.decomposer = decomposer or _FakeDecomposer()
        self.classifier = classifier or _FakeClassifier()
        self.events: list[ProgressEvent] = []
        if channel is None:
            local = LocalProgressChannel()
            local.subscribe(self.events.append)
            channel = local
        self.orchestrator = ModerationOrchestrator(
            settings,
            store=self.store,
            settings_provider=settings_provider or StaticSettingsProvider(limits or ModerationLimits()),
            classifier=self.classifier,
            progress=ProgressEmitter(channel),
            lock=lock,
            acquirer=self.acquirer,
            decomposer=self.decomposer,
        )

    async def add(self, job_id: str = "v1", *, title: str = "My holiday", description: str = "") -> None:
        await self.store.save(
            ContentRecord(
                id=job_id,
                media_url=f"https://cdn.example/{job_id}.mp4",
                title=title,
                description=description,
            )
        )

    async def run(self, job_id: str = "v1", **kwargs) -> ContentRecord:  # noqa: ANN003
        await self.orchestrator.run(job_id, f"https://cdn.example/{job_id}.mp4", **kwargs)
        record = await self.store.get(job_id)
        assert record is not None
        return record

    def artifacts(self, job_id: str = "v1") -> JobArtifacts:
        return JobArtifacts.for_job(self.settings.temp_dir, job_id)


@pytest.mark.asyncio
async def test_safe_video_is_approved(settings) -> None:
    h = _Harness(settings, acquirer=_FakeAcquirer(duration=42.0))
    await h.add(title="Test Safe Video")

    record = await h.run()

    assert record.status == ContentStatus.SAFE
    assert record.moderation.status == ModerationStatus.APPROVED
    assert record.moderation.visual_score == 0.05
    assert record.moderation.details.frames_analyzed == 8
    assert record.moderation.details.decision_reason == "Automated checks passed"
    assert record.moderation.checked_at is not None
    assert record.duration == 42.0
    assert len(h.classifier.frames) == 5
    assert not h.artifacts().exists()


@pytest.mark.asyncio
async def test_progress_events_in_stage_order(settings) -> None:
    h = _Harness(settings)
    await h.add()

    await h.run()

    progress = [(e.status, e.details.get("stage"), e.details.get("progress")) for e in h.events]
    assert progress == [
        ("processing", "downloading", 10),
        ("processing", "extracting_audio", 30),
        ("processing", "extracting_frames", 50),
        ("processing", "analyzing_visuals", 70),
        ("safe", None, 100),
    ]
    assert h.events[-1].details["moderation_status"] == "approved"


@pytest.mark.asyncio
async def test_metadata_keyword_flags_for_review(settings) -> None:
    h = _Harness(settings)
    await h.add(title="Test unsafe Video")

    record = await h.run()

    assert record.status == ContentStatus.FLAGGED
    assert record.moderation.status == ModerationStatus.PENDING
    assert record.moderation.details.flags == ["inappropriate_metadata"]
    assert "Metadata" in record.moderation.details.decision_reason


@pytest.mark.asyncio
async def test_confident_label_flags_for_review(settings) -> None:
    classifier = _FakeClassifier([Label("Violence", 92.0), Label("Suggestive", 61.0)])
    h = _Harness(settings, classifier=classifier)
    await h.add()

    record = await h.run()

    assert record.status == ContentStatus.FLAGGED
    assert record.moderation.status == ModerationStatus.PENDING
    assert record.moderation.visual_score == 0.98
    assert record.moderation.details.labels_found == ["Violence", "Suggestive"]
    assert record.moderation.details.decision_reason.startswith("AI detected sensitive content")


@pytest.mark.asyncio
async def test_too_long_video_fails_without_analysis(settings) -> None:
    h = _Harness(
        settings,
        acquirer=_FakeAcquirer(duration=700.0),
        limits=ModerationLimits(max_duration_seconds=600),
    )
    await h.add()

    record = await h.run()

    assert record.status == ContentStatus.FAILED
    assert record.moderation.status == ModerationStatus.FAILED
    assert record.moderation.details.decision_reason == "Video too long (700s). Limit is 600s."
    assert record.moderation.details.error_code == "DURATION_EXCEEDED"
    assert record.duration == 700.0
    assert h.decomposer.calls == []
    assert h.classifier.frames == []
    assert h.events[-1].status == "failed"
    assert h.events[-1].details["error"] == "Video too long (700s). Limit is 600s."
    assert not h.artifacts().exists()


@pytest.mark.asyncio
async def test_limits_are_read_per_run(settings) -> None:
    h = _Harness(settings)
    await h.add()

    await h.run()

    assert h.acquirer.downloads[0][2] == ModerationLimits().max_file_size_bytes


@pytest.mark.asyncio
async def test_download_failure_flags_for_review(settings) -> None:
    h = _Harness(settings, acquirer=_FakeAcquirer(error=AcquisitionError("download failed: 503")))
    await h.add()

    record = await h.run()

    assert record.status == ContentStatus.FLAGGED
    assert record.moderation.status == ModerationStatus.PENDING
    assert record.moderation.details.error_code == "DOWNLOAD_FAILED"
    assert h.events[-1].details["stage"] == "downloading"


@pytest.mark.asyncio
async def test_classifier_error_never_approves(settings) -> None:
    classifier = _FakeClassifier(error=ClassificationServiceError("rekognition", "AWS credentials missing"))
    h = _Harness(settings, classifier=classifier)
    await h.add()

    record = await h.run()

    assert record.status == ContentStatus.FLAGGED
    assert record.moderation.status == ModerationStatus.PENDING
    assert record.moderation.details.error_code == "CLASSIFIER_FAILED"
    assert "credentials" in record.moderation.details.decision_reason
    assert not h.artifacts().exists()


@pytest.mark.asyncio
async def test_missing_audio_still_reaches_terminal_state(settings) -> None:
    h = _Harness(settings, decomposer=_FakeDecomposer(audio=False))
    await h.add()

    record = await h.run()

    assert record.status == ContentStatus.SAFE
    assert h.decomposer.calls == ["audio", "frames"]


@pytest.mark.asyncio
async def test_stage_timeout_flags_for_review(tmp_path) -> None:
    settings = Settings(
        temp_dir=str(tmp_path / "temp"),
        log_dir=str(tmp_path / "logs"),
        stage_timeout=StageTimeoutConfig(analyzing_visuals=0.05),
    )
    h = _Harness(settings, classifier=_FakeClassifier(delay_s=2.0))
    await h.add()

    record = await h.run()

    assert record.status == ContentStatus.FLAGGED
    assert record.moderation.details.error_code == "STAGE_TIMEOUT"
    assert not h.artifacts().exists()


@pytest.mark.asyncio
async def test_progress_channel_failure_does_not_change_outcome(settings) -> None:
    h = _Harness(settings, channel=_BrokenChannel())
    await h.add()

    record = await h.run()

    assert record.status == ContentStatus.SAFE


@pytest.mark.asyncio
async def test_missing_record_is_logged_not_raised(settings) -> None:
    h = _Harness(settings)

    await h.orchestrator.run("ghost", "https://cdn.example/ghost.mp4")

    assert await h.store.get("ghost") is None
    assert h.acquirer.downloads == []
    assert h.events[-1].status == "flagged"


@pytest.mark.asyncio
async def test_manual_review_is_not_overwritten(settings) -> None:
    h = _Harness(settings)
    reviewed = ContentRecord(
        id="v1",
        media_url="https://cdn.example/v1.mp4",
        status=ContentStatus.SAFE,
        moderation=ModerationRecord(
            status=ModerationStatus.APPROVED,
            reviewed_by="moderator-7",
            reviewed_at=datetime.now(tz=timezone.utc),
        ),
    )
    await h.store.save(reviewed)

    record = await h.run()

    assert record.moderation.reviewed_by == "moderator-7"
    assert h.acquirer.downloads == []

    record = await h.run(force=True)

    assert record.moderation.reviewed_by is None
    assert record.moderation.checked_at is not None
    assert len(h.acquirer.downloads) == 1


@pytest.mark.asyncio
async def test_duplicate_run_is_rejected_while_locked(settings) -> None:
    lock = InMemoryJobLock()
    h = _Harness(settings, lock=lock)
    await h.add()
    token = await lock.acquire("v1")
    assert token is not None

    record = await h.run()

    assert record.status == ContentStatus.PENDING
    assert h.acquirer.downloads == []
    assert h.events == []

    await lock.release("v1", token)
    record = await h.run()

    assert record.status == ContentStatus.SAFE
    assert not lock.is_held("v1")


@pytest.mark.asyncio
async def test_concurrent_jobs_do_not_share_temp_files(settings) -> None:
    h = _Harness(settings, classifier=_FakeClassifier(delay_s=0.01))
    await h.add("a")
    await h.add("b", title="explicit content")

    await asyncio.gather(
        h.orchestrator.run("a", "https://cdn.example/a.mp4"),
        h.orchestrator.run("b", "https://cdn.example/b.mp4"),
    )

    a = await h.store.get("a")
    b = await h.store.get("b")
    assert a is not None and b is not None
    assert a.status == ContentStatus.SAFE
    assert b.status == ContentStatus.FLAGGED
    assert not h.artifacts("a").exists()
    assert not h.artifacts("b").exists()


@pytest.mark.asyncio
async def test_unreadable_media_flags_for_review(settings) -> None:
    h = _Harness(settings, acquirer=_FakeAcquirer(duration_error=ProbeError("ffprobe returned no duration")))
    await h.add()

    record = await h.run()

    assert record.status == ContentStatus.FLAGGED
    assert record.moderation.status == ModerationStatus.PENDING
    assert record.moderation.details.error_code == "PROBE_FAILED"
    assert h.events[-1].details["stage"] == "probing"
    assert h.decomposer.calls == []
    assert not h.artifacts().exists()


@pytest.mark.asyncio
async def test_frame_extraction_failure_flags_for_review(settings) -> None:
    error = StageError("extracting_frames", "ffmpeg failed", error_code=ErrorCode.FRAME_EXTRACTION_FAILED)
    h = _Harness(settings, decomposer=_FakeDecomposer(frames_error=error))
    await h.add()

    record = await h.run()

    assert record.status == ContentStatus.FLAGGED
    assert record.moderation.status == ModerationStatus.PENDING
    assert record.moderation.details.error_code == "FRAME_EXTRACTION_FAILED"
    assert h.events[-1].details["stage"] == "extracting_frames"
    assert h.classifier.frames == []
    assert not h.artifacts().exists()


@pytest.mark.asyncio
async def test_processing_status_is_persisted_before_first_stage(settings) -> None:
    h = _Harness(settings)
    recorder = _StatusRecordingStage(h.store)
    h.orchestrator.stages = [recorder, DecisionStage()]
    await h.add()

    record = await h.run()

    assert recorder.seen == [ContentStatus.PROCESSING]
    assert record.status == ContentStatus.SAFE


@pytest.mark.asyncio
async def test_unusable_job_id_is_flagged_not_left_pending(settings) -> None:
    h = _Harness(settings)
    await h.add("a/b")

    record = await h.run("a/b")

    assert record.status == ContentStatus.FLAGGED
    assert record.moderation.status == ModerationStatus.PENDING
    assert record.moderation.details.error_code == "CONFIGURATION_ERROR"
    assert h.acquirer.downloads == []
    assert h.events[-1].status == "flagged"
    assert "path component" in h.events[-1].details["error"]


@pytest.mark.asyncio
async def test_invalid_stored_limits_report_configuration_error(settings) -> None:
    h = _Harness(settings, settings_provider=_BrokenSettingsProvider())
    await h.add()

    record = await h.run()

    assert record.status == ContentStatus.FLAGGED
    assert record.moderation.details.error_code == "CONFIGURATION_ERROR"
    assert h.acquirer.downloads == []


@pytest.mark.asyncio
@pytest.mark.skipif(sys.platform == "win32", reason="needs /bin/sh")
async def test_stage_timeout_kills_ffmpeg_before_cleanup(tmp_path) -> None:
    settings = Settings(
        temp_dir=str(tmp_path / "temp"),
        log_dir=str(tmp_path / "logs"),
        stage_timeout=StageTimeoutConfig(extracting_audio=0.2),
    )
    decomposer = MediaDecomposer(ffmpeg_bin=str(_slow_ffmpeg(tmp_path)))
    h = _Harness(settings, decomposer=decomposer)
    await h.add()

    record = await h.run()

    assert record.status == ContentStatus.FLAGGED
    assert record.moderation.details.error_code == "STAGE_TIMEOUT"
    await asyncio.sleep(1.5)
    assert not h.artifacts().audio_path.exists()
    assert not h.artifacts().exists()
