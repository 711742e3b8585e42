"""Utility modules for Takeout Wrapped."""

from takeout_wrapped.utils.text import (
    clean_artist_name,
    clean_song_title,
    clean_title,
    create_song_key,
    extract_video_id,
    is_generic_artist,
)

__all__ = [
    "clean_title",
    "clean_song_title",
    "clean_artist_name",
    "create_song_key",
    "extract_video_id",
    "is_generic_artist",
]
