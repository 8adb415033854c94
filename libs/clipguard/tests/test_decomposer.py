from __future__ import annotations

from pathlib import Path

import pytest

import clipguard.media.decomposer as decomposer_module
from clipguard.error_codes import ErrorCode
from clipguard.exceptions import StageError
from clipguard.media.decomposer import MediaDecomposer, list_frames
from clipguard.utils.subprocess import RunResult


class _FakeFfmpeg:
    """Stands in for ffmpeg: writes the files the given command would produce."""

    def __init__(self, *, scene_frames: int = 3, audio: bool = True, fail: bool = False) -> None:
        self.scene_frames = scene_frames
        self.audio = audio
        self.fail = fail
        self.calls: list[list[str]] = []

    async def __call__(self, args, **kwargs) -> RunResult:  # noqa: ANN001, ANN003, ARG002
        args = list(args)
        self.calls.append(args)
        if self.fail:
            return RunResult(returncode=1, stdout=b"", stderr=b"Invalid data found")
        out = args[-1]
        if "-vn" in args:
            if self.audio:
                Path(out).write_bytes(b"mp3")
                return RunResult(0, b"", b"")
            return RunResult(1, b"", b"Output file does not contain any stream")
        if out.endswith("frame-%d.png"):
            for i in range(1, self.scene_frames + 1):
                Path(out.replace("%d", str(i))).write_bytes(b"png")
            return RunResult(0, b"", b"")
        Path(out).write_bytes(b"png")
        return RunResult(0, b"", b"")


def test_list_frames_orders_numerically(tmp_path) -> None:
    for i in (10, 2, 1):
        (tmp_path / f"frame-{i}.png").write_bytes(b"png")
    (tmp_path / "notes.txt").write_text("x")

    assert [p.name for p in list_frames(tmp_path)] == ["frame-1.png", "frame-2.png", "frame-10.png"]
    assert list_frames(tmp_path / "missing") == []


@pytest.mark.asyncio
async def test_extract_audio(monkeypatch, tmp_path) -> None:
    fake = _FakeFfmpeg()
    monkeypatch.setattr(decomposer_module, "run_subprocess", fake)

    out = await MediaDecomposer().extract_audio(tmp_path / "v.mp4", tmp_path / "v.mp3")

    assert out == str(tmp_path / "v.mp3")
    assert "libmp3lame" in fake.calls[0]


@pytest.mark.asyncio
async def test_extract_audio_failure_is_not_fatal(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(decomposer_module, "run_subprocess", _FakeFfmpeg(audio=False))

    assert await MediaDecomposer().extract_audio(tmp_path / "v.mp4", tmp_path / "v.mp3") is None
    assert not (tmp_path / "v.mp3").exists()


@pytest.mark.asyncio
async def test_extract_frames_uses_scene_filter(monkeypatch, tmp_path) -> None:
    fake = _FakeFfmpeg(scene_frames=4)
    monkeypatch.setattr(decomposer_module, "run_subprocess", fake)
    decomposer = MediaDecomposer(scene_threshold=0.15, frame_width=320)

    frames = await decomposer.extract_frames(tmp_path / "v.mp4", tmp_path / "frames")

    assert [p.name for p in frames] == ["frame-1.png", "frame-2.png", "frame-3.png", "frame-4.png"]
    assert "select='gt(scene,0.15)',scale=320:-1" in fake.calls[0]
    assert len(fake.calls) == 1


@pytest.mark.asyncio
async def test_extract_frames_caps_retained_frames(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(decomposer_module, "run_subprocess", _FakeFfmpeg(scene_frames=20))

    frames = await MediaDecomposer(max_frames=15).extract_frames(tmp_path / "v.mp4", tmp_path / "frames")

    assert len(frames) == 15
    assert frames[-1].name == "frame-15.png"
    assert len(list_frames(tmp_path / "frames")) == 15


@pytest.mark.asyncio
async def test_extract_frames_falls_back_to_midpoint_snapshot(monkeypatch, tmp_path) -> None:
    fake = _FakeFfmpeg(scene_frames=0)
    monkeypatch.setattr(decomposer_module, "run_subprocess", fake)

    frames = await MediaDecomposer().extract_frames(tmp_path / "v.mp4", tmp_path / "frames", duration=20.0)

    assert [p.name for p in frames] == ["fallback.png"]
    snapshot = fake.calls[1]
    assert snapshot[snapshot.index("-ss") + 1] == "10.000"


@pytest.mark.asyncio
async def test_extract_frames_ffmpeg_failure(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(decomposer_module, "run_subprocess", _FakeFfmpeg(fail=True))

    with pytest.raises(StageError) as excinfo:
        await MediaDecomposer().extract_frames(tmp_path / "v.mp4", tmp_path / "frames")

    assert excinfo.value.error_code == ErrorCode.FRAME_EXTRACTION_FAILED
