"""Provider abstractions for external services."""

from clipguard.providers.registry import get_classifier

__all__ = ["get_classifier"]
