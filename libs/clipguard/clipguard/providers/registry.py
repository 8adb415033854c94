"""Provider factory and registry."""

from __future__ import annotations

from typing import Any
from collections.abc import Mapping

from clipguard.exceptions import ConfigurationError
from clipguard.providers.classifier.base import ContentClassifier


def get_classifier(config: Mapping[str, Any]) -> ContentClassifier:
    """Get the visual classifier based on configuration."""
    provider_type = str(config.get("provider", "rekognition")).strip().lower()

    match provider_type:
        case "rekognition" | "aws_rekognition":
            from clipguard.providers.classifier.rekognition import RekognitionClassifier

            return RekognitionClassifier(
                region=str(config.get("aws_region") or "us-east-1"),
                access_key_id=str(config.get("aws_access_key_id") or ""),
                secret_access_key=str(config.get("aws_secret_access_key") or ""),
                min_confidence=float(config.get("min_confidence", 60.0)),
                retry_attempts=int(config.get("retry_attempts", 3)),
            )
        case _:
            raise ConfigurationError(f"Unknown classifier provider: {provider_type}")
