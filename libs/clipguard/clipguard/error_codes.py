"""Canonical error codes recorded on moderation failures."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    UNKNOWN = "UNKNOWN"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    PROBE_FAILED = "PROBE_FAILED"
    DURATION_EXCEEDED = "DURATION_EXCEEDED"
    FRAME_EXTRACTION_FAILED = "FRAME_EXTRACTION_FAILED"
    CLASSIFIER_FAILED = "CLASSIFIER_FAILED"
    STAGE_TIMEOUT = "STAGE_TIMEOUT"
