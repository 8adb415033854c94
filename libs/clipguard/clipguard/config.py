"""Configuration management using pydantic-settings."""

from pathlib import Path
from typing import Any
from pydantic import Field, model_validator
from pydantic.aliases import AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict

from clipguard.exceptions import ConfigurationError

_ENV_FILES = (".env", "../.env", "../../.env")

_REPO_ROOT = Path(__file__).resolve().parents[3]

DEFAULT_SUPPORTED_FORMATS = [
    "video/mp4",
    "video/mpeg",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-matroska",
    "video/webm",
]


def _resolve_repo_path(value: str) -> str:
    raw = str(value or "").strip()
    if not raw:
        return raw
    p = Path(raw)
    if p.is_absolute():
        return str(p)
    return str((_REPO_ROOT / p).resolve())


class LimitsConfig(BaseSettings):
    """Default upload limits, used when no settings store is configured."""

    model_config = SettingsConfigDict(
        env_prefix="LIMITS_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_duration_seconds: float = Field(default=600.0, gt=0)
    max_file_size_mb: float = Field(default=100.0, gt=0)
    supported_formats: list[str] = Field(default_factory=lambda: list(DEFAULT_SUPPORTED_FORMATS))


class DownloadConfig(BaseSettings):
    """Media download configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DOWNLOAD_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timeout: float = Field(default=600.0, gt=0)  # whole-request timeout (seconds)
    connect_timeout: float = Field(default=10.0, gt=0)
    chunk_size: int = Field(default=1024 * 1024, ge=1024)


class MediaConfig(BaseSettings):
    """ffmpeg/ffprobe configuration for probing and decomposition."""

    model_config = SettingsConfigDict(
        env_prefix="MEDIA_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"
    scene_threshold: float = Field(default=0.15, gt=0, lt=1)
    frame_width: int = Field(default=320, ge=16)
    max_frames: int = Field(default=15, ge=1)


class ClassifierConfig(BaseSettings):
    """Visual moderation service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLASSIFIER_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: str = "rekognition"
    aws_region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices("aws_region", "CLASSIFIER_AWS_REGION", "AWS_REGION"),
    )
    aws_access_key_id: str = Field(
        default="",
        validation_alias=AliasChoices(
            "aws_access_key_id", "CLASSIFIER_AWS_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID"
        ),
    )
    aws_secret_access_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "aws_secret_access_key", "CLASSIFIER_AWS_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY"
        ),
    )
    min_confidence: float = Field(
        default=60.0, ge=0, le=100, description="Floor sent to the service with each request."
    )
    flag_threshold: float = Field(
        default=75.0, ge=0, le=100, description="Labels strictly above this confidence flag the video."
    )
    max_frames: int = Field(default=5, ge=1, description="Frames submitted per video.")
    max_concurrent: int = Field(default=5, ge=1)
    retry_attempts: int = Field(default=3, ge=1)


class StageTimeoutConfig(BaseSettings):
    """Per-stage timeouts (seconds)."""

    model_config = SettingsConfigDict(
        env_prefix="STAGE_TIMEOUT_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    downloading: float = Field(default=900.0, gt=0)
    probing: float = Field(default=60.0, gt=0)
    extracting_audio: float = Field(default=300.0, gt=0)
    extracting_frames: float = Field(default=600.0, gt=0)
    analyzing_visuals: float = Field(default=300.0, gt=0)
    deciding: float = Field(default=30.0, gt=0)

    def for_stage(self, stage: str) -> float:
        value = getattr(self, str(stage), None)
        if value is None:
            raise ConfigurationError(f"No timeout configured for stage {stage!r}")
        return float(value)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
    console: bool = True
    file: str | None = None
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=0)
    backup_count: int = Field(default=5, ge=0)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILES, env_file_encoding="utf-8", extra="ignore"
    )

    temp_dir: str = "./data/temp"
    log_dir: str = "./logs"

    # Redis
    redis_url: str = "redis://localhost:6379"
    redis_content_ttl_days: int = Field(default=30, ge=1)

    # Collaborator backends
    content_store_backend: str = "redis"  # "redis" | "memory"
    settings_backend: str = "redis"  # "redis" | "env"
    progress_backend: str = "redis"  # "redis" | "local" | "none"
    lock_backend: str = "redis"  # "redis" | "memory"
    lock_ttl_s: int = Field(default=3600, ge=1)

    # Worker
    queue_key: str = "clipguard:moderation:queue"
    worker_concurrency: int = Field(default=2, ge=1)

    limits: LimitsConfig = LimitsConfig()
    download: DownloadConfig = DownloadConfig()
    media: MediaConfig = MediaConfig()
    classifier: ClassifierConfig = ClassifierConfig()
    stage_timeout: StageTimeoutConfig = StageTimeoutConfig()

    # Logging
    logging: LoggingSettings = LoggingSettings()

    @model_validator(mode="after")
    def _validate(self) -> "Settings":
        if int(self.classifier.max_frames) > int(self.media.max_frames):
            raise ConfigurationError(
                "CLASSIFIER_MAX_FRAMES must be <= MEDIA_MAX_FRAMES"
            )
        return self

    def model_post_init(self, __context: Any) -> None:
        # Workers run from apps/worker; keep relative paths anchored at the repo root.
        self.temp_dir = _resolve_repo_path(self.temp_dir)
        self.log_dir = _resolve_repo_path(self.log_dir)
        Path(self.temp_dir).mkdir(parents=True, exist_ok=True)
        Path(self.log_dir).mkdir(parents=True, exist_ok=True)
