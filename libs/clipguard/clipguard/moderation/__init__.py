"""Moderation decision logic."""

from clipguard.moderation.aggregator import (
    METADATA_FLAG,
    UNSAFE_KEYWORDS,
    aggregate,
    find_blacklisted_terms,
)

__all__ = ["METADATA_FLAG", "UNSAFE_KEYWORDS", "aggregate", "find_blacklisted_terms"]
