"""ClipGuard: automated moderation pipeline for uploaded videos."""

__version__ = "0.1.0"
