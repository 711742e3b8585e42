"""Shared test fixtures for Takeout Wrapped."""

from datetime import UTC, datetime
from typing import Any

import pytest

from takeout_wrapped.core.models import PlayEvent, SongMetadata


def _make_record(
    title: str,
    time: str = "2024-01-15T09:00:00.000Z",
    artist: str | None = None,
    video_id: str | None = "dQw4w9WgXcQ",
    header: str = "YouTube Music",
) -> dict[str, Any]:
    """Build a raw watch-history record as Google Takeout writes it."""
    record: dict[str, Any] = {
        "header": header,
        "title": title,
        "time": time,
        "products": ["YouTube"],
        "activityControls": ["YouTube watch history"],
    }
    if video_id:
        record["titleUrl"] = f"https://music.youtube.com/watch?v={video_id}"
    if artist:
        record["subtitles"] = [{"name": artist, "url": "https://www.youtube.com/channel/UC123"}]
    return record


def _make_event(
    title: str = "Song Name",
    artist: str = "Real Artist",
    played_at: datetime | None = None,
    external_id: str | None = "vid00000001",
    original_title: str | None = None,
) -> PlayEvent:
    """Build a PlayEvent for aggregation tests."""
    return PlayEvent(
        title=title,
        artist=artist,
        original_title=original_title or f"Watched {title}",
        external_id=external_id,
        played_at=played_at or datetime(2024, 1, 15, 9, 0, tzinfo=UTC),
        parse_confidence=0.95,
    )


def _make_song(
    external_id: str = "vid00000001",
    title: str = "Song Name",
    artist: str = "Real Artist",
    duration: int = 200,
    **kwargs: Any,
) -> SongMetadata:
    """Build SongMetadata as the resolver would return it."""
    return SongMetadata(
        key=f"{artist.lower()} - {title.lower()}",
        external_id=external_id,
        title=title,
        artist=artist,
        duration=duration,
        **kwargs,
    )


@pytest.fixture
def sample_records() -> list[dict[str, Any]]:
    """A small export mixing music plays with other activity."""
    return [
        _make_record("Watched Song Name", artist="Real Artist - Topic", time="2024-01-15T09:00:00.000Z"),
        _make_record("Watched Another Song", artist="Other Band VEVO", time="2024-01-15T09:05:00.000Z", video_id="abcdefghijk"),
        _make_record("Watched Queen - Bohemian Rhapsody (Official Video)", time="2024-01-16T20:00:00Z", video_id="fJ9rUzIMcZQ"),
        _make_record("Watched a video that has been removed", time="2024-01-16T21:00:00Z", video_id=None),
        _make_record("Watched Some Vlog", header="YouTube", time="2024-01-16T22:00:00Z"),
        {"header": "YouTube Music", "title": "Searched for lo-fi beats", "time": "2024-01-17T08:00:00Z"},
    ]


@pytest.fixture
def make_record() -> Any:
    """Factory for raw watch-history records."""
    return _make_record


@pytest.fixture
def make_event() -> Any:
    """Factory for PlayEvents."""
    return _make_event


@pytest.fixture
def make_song() -> Any:
    """Factory for SongMetadata."""
    return _make_song
