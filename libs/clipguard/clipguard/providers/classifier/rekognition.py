"""AWS Rekognition moderation-label classifier."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from clipguard.exceptions import ClassificationServiceError
from clipguard.models.moderation import Label
from clipguard.providers.classifier._retry import is_transient_error, log_retry
from clipguard.providers.classifier.base import ContentClassifier

logger = logging.getLogger(__name__)


def normalize_labels(raw: list[dict[str, Any]]) -> list[Label]:
    labels: list[Label] = []
    for item in raw:
        name = str(item.get("Name") or "").strip()
        if not name:
            continue
        confidence = float(item.get("Confidence") or 0.0)
        confidence = min(100.0, max(0.0, confidence))
        parent = str(item.get("ParentName") or "").strip() or None
        labels.append(Label(name=name, confidence=confidence, parent_name=parent))
    return labels


class RekognitionClassifier(ContentClassifier):
    """Calls `DetectModerationLabels` with raw image bytes.

    The boto3 client is created lazily so that a worker without credentials can
    still start; the first classification then fails with a clear error.
    """

    name = "rekognition"

    def __init__(
        self,
        *,
        region: str = "us-east-1",
        access_key_id: str = "",
        secret_access_key: str = "",
        min_confidence: float = 60.0,
        retry_attempts: int = 3,
        wait: wait_base | None = None,
        client: Any | None = None,
    ) -> None:
        self.region = region
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.min_confidence = float(min_confidence)
        self.retry_attempts = max(1, int(retry_attempts))
        self._wait = wait or wait_exponential(min=1, max=10)
        self._client = client

    def _ensure_client(self) -> Any:
        if self._client is not None:
            return self._client
        if not self.access_key_id or not self.secret_access_key:
            raise ClassificationServiceError(self.name, "AWS credentials missing")
        import boto3

        self._client = boto3.client(
            "rekognition",
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )
        return self._client

    async def classify(self, frame_path: str) -> list[Label]:
        client = self._ensure_client()
        image_bytes = await asyncio.to_thread(Path(frame_path).read_bytes)

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=self._wait,
                retry=retry_if_exception(is_transient_error),
                before_sleep=log_retry(logger),
                reraise=True,
            ):
                with attempt:
                    response = await asyncio.to_thread(
                        client.detect_moderation_labels,
                        Image={"Bytes": image_bytes},
                        MinConfidence=self.min_confidence,
                    )
        except (ClientError, BotoCoreError) as exc:
            logger.error("rekognition request failed (frame=%s, error=%s)", frame_path, exc)
            raise ClassificationServiceError(self.name, str(exc)) from exc

        labels = normalize_labels(list(response.get("ModerationLabels") or []))
        logger.debug("rekognition labels (frame=%s, count=%d)", frame_path, len(labels))
        return labels
