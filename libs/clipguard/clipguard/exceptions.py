"""ClipGuard exception hierarchy."""

from __future__ import annotations

from clipguard.error_codes import ErrorCode


class ClipGuardError(Exception):
    """Base error for ClipGuard."""


class ConfigurationError(ClipGuardError):
    """Raised when configuration or inputs are invalid."""


class AcquisitionError(ClipGuardError):
    """Raised when the remote media asset cannot be fetched."""

    error_code: ErrorCode = ErrorCode.DOWNLOAD_FAILED


class DurationExceededError(AcquisitionError):
    """Raised when the probed duration is above the configured maximum."""

    error_code = ErrorCode.DURATION_EXCEEDED

    def __init__(self, duration_s: float, max_duration_s: float) -> None:
        super().__init__(
            f"Video too long ({round(duration_s)}s). Limit is {max_duration_s:g}s."
        )
        self.duration_s = float(duration_s)
        self.max_duration_s = float(max_duration_s)


class ProbeError(ClipGuardError):
    """Raised when technical metadata cannot be read from the downloaded file."""

    error_code: ErrorCode = ErrorCode.PROBE_FAILED


class ProviderError(ClipGuardError):
    """Raised when an external provider call fails."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.error_code = error_code


class ClassificationServiceError(ProviderError):
    """Raised when the classification service is unreachable or misconfigured."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(provider, message, error_code=ErrorCode.CLASSIFIER_FAILED)


class StageError(ClipGuardError):
    """Raised when a pipeline stage fails."""

    def __init__(
        self,
        stage: str,
        message: str,
        *,
        job_id: str | None = None,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        prefix = f"{stage}"
        if job_id:
            prefix = f"{prefix} (job_id={job_id})"
        super().__init__(f"{prefix}: {message}")
        self.stage = stage
        self.job_id = job_id
        self.message = message
        self.error_code = error_code
