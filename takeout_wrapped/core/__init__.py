"""Core modules for Takeout Wrapped."""

from takeout_wrapped.core.config import Settings, get_settings
from takeout_wrapped.core.models import (
    DurationEstimate,
    ParseResult,
    PlayEvent,
    RawActivityRecord,
    ResolutionStats,
    SongMetadata,
    Statistics,
)

__all__ = [
    "Settings",
    "get_settings",
    "RawActivityRecord",
    "PlayEvent",
    "ParseResult",
    "SongMetadata",
    "DurationEstimate",
    "ResolutionStats",
    "Statistics",
]
