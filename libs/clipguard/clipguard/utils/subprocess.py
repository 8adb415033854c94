"""Async-friendly subprocess helpers.

External tools run through `Popen.communicate()` inside `asyncio.to_thread()`
so the event loop stays free while ffmpeg/ffprobe work. Cancelling the
awaiting task (for example from `asyncio.wait_for`) kills the child before
the cancellation propagates, so nothing keeps writing into cleaned-up paths.
"""

from __future__ import annotations

import asyncio
import subprocess
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def describe(self, limit: int = 2000) -> str:
        err = self.stderr.decode(errors="ignore").strip()
        if len(err) > limit:
            err = "..." + err[-limit:]
        return f"code={self.returncode}, stderr={err}"


def _kill(proc: subprocess.Popen) -> None:
    if proc.poll() is None:
        proc.kill()


async def run_subprocess(
    args: Sequence[str],
    *,
    capture_output: bool = True,
    check: bool = False,
    timeout_s: float | None = None,
) -> RunResult:
    argv = list(args)
    pipe = subprocess.PIPE if capture_output else None
    proc = subprocess.Popen(argv, stdout=pipe, stderr=pipe)
    try:
        stdout, stderr = await asyncio.to_thread(proc.communicate, timeout=timeout_s)
    except subprocess.TimeoutExpired:
        _kill(proc)
        await asyncio.to_thread(proc.communicate)
        raise
    except asyncio.CancelledError:
        # The worker thread keeps blocking in communicate() until the pipes
        # close, so the child has to die before we hand control back.
        _kill(proc)
        await asyncio.shield(asyncio.to_thread(proc.wait))
        raise

    returncode = int(proc.returncode)
    if check and returncode != 0:
        raise subprocess.CalledProcessError(returncode, argv, stdout, stderr)
    return RunResult(
        returncode=returncode,
        stdout=stdout or b"",
        stderr=stderr or b"",
    )
