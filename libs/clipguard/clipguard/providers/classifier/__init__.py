"""Visual content classifiers."""

from clipguard.providers.classifier.base import ContentClassifier, classify_frames

__all__ = ["ContentClassifier", "classify_frames"]
