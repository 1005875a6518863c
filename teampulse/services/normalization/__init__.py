"""
Normalization
Maps raw service payloads to the unified data model
"""
from teampulse.services.normalization.normalizer import (
    normalize_activity,
    normalize_meeting,
    normalize_meetings,
    normalize_message,
    normalize_messages,
)

__all__ = [
    "normalize_message",
    "normalize_meeting",
    "normalize_activity",
    "normalize_messages",
    "normalize_meetings",
]
