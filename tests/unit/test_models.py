"""Tests for core data models."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from takeout_wrapped.core.models import (
    PlayEvent,
    RawActivityRecord,
    SongMetadata,
    Statistics,
)


class TestRawActivityRecord:
    """Tests for RawActivityRecord model."""

    def test_reads_takeout_field_names(self) -> None:
        record = RawActivityRecord.model_validate(
            {
                "header": "YouTube Music",
                "title": "Watched Song",
                "titleUrl": "https://music.youtube.com/watch?v=dQw4w9WgXcQ",
                "subtitles": [{"name": "Artist - Topic", "url": "https://www.youtube.com/channel/UC1"}],
                "time": "2024-01-15T09:00:00.000Z",
                "products": ["YouTube"],
                "activityControls": ["YouTube watch history"],
            }
        )
        assert record.title_url == "https://music.youtube.com/watch?v=dQw4w9WgXcQ"
        assert record.subtitles[0].name == "Artist - Topic"

    def test_all_fields_optional(self) -> None:
        record = RawActivityRecord.model_validate({})
        assert record.title is None
        assert record.subtitles == []

    def test_rejects_wrong_types(self) -> None:
        with pytest.raises(ValidationError):
            RawActivityRecord.model_validate({"title": ["not", "a", "string"]})


class TestPlayEvent:
    """Tests for PlayEvent model."""

    def test_confidence_bounds(self) -> None:
        with pytest.raises(ValidationError):
            PlayEvent(
                title="Song",
                artist="Artist",
                original_title="Watched Song",
                played_at=datetime(2024, 1, 15, tzinfo=UTC),
                parse_confidence=1.5,
            )

    def test_is_frozen(self) -> None:
        event = PlayEvent(
            title="Song",
            artist="Artist",
            original_title="Watched Song",
            played_at=datetime(2024, 1, 15, tzinfo=UTC),
            parse_confidence=0.95,
        )
        with pytest.raises(ValidationError):
            event.title = "Other"  # type: ignore[misc]


class TestSongMetadata:
    """Tests for SongMetadata model."""

    def test_defaults(self) -> None:
        song = SongMetadata(key="artist - song", external_id="abc", title="Song", artist="Artist", duration=200)
        assert song.estimation_method == "external-api"
        assert song.confidence == 1.0
        assert isinstance(song.updated_at, datetime)

    def test_duration_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            SongMetadata(key="artist - song", external_id="abc", title="Song", artist="Artist", duration=0)


class TestStatistics:
    """Tests for Statistics model."""

    def test_empty_statistics(self) -> None:
        stats = Statistics()
        assert stats.total_listens == 0
        assert stats.top_songs == []
        assert stats.music_era is None

    def test_json_round_trip(self) -> None:
        stats = Statistics(total_listens=3, total_playtime=600, top_song="Queen - Bohemian Rhapsody")
        assert Statistics.model_validate_json(stats.model_dump_json()) == stats
