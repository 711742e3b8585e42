"""Core data models for Takeout Wrapped."""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

EstimationMethod = Literal["external-api", "title-pattern", "genre-default", "global-average"]


class Subtitle(BaseModel):
    """Secondary label attached to an activity record (usually the channel)."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    url: str | None = None


class RawActivityRecord(BaseModel):
    """One entry of a Google Takeout watch-history.json export.

    Untrusted input; fields Takeout adds that we do not use are ignored.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    header: str | None = None
    title: str | None = None
    title_url: str | None = Field(default=None, alias="titleUrl")
    subtitles: list[Subtitle] = Field(default_factory=list)
    time: str | None = None
    products: list[str] = Field(default_factory=list)


class PlayEvent(BaseModel):
    """A single play of a song extracted from the activity log."""

    model_config = ConfigDict(frozen=True)

    title: str
    artist: str
    original_title: str
    external_id: str | None = None
    played_at: datetime
    parse_confidence: float = Field(ge=0.0, le=1.0)


class ParseResult(BaseModel):
    """Outcome of parsing a whole export."""

    events: list[PlayEvent] = Field(default_factory=list)
    total_entries: int = 0
    music_entries: int = 0
    errors: list[str] = Field(default_factory=list)
    aborted: bool = False


class SongMetadata(BaseModel):
    """Enriched metadata for one external video id."""

    key: str
    external_id: str
    title: str
    artist: str
    duration: int = Field(gt=0)  # seconds
    thumbnail_url: str | None = None
    artist_image_url: str | None = None
    release_date: datetime | None = None
    channel_title: str | None = None
    channel_id: str | None = None
    estimation_method: EstimationMethod = "external-api"
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class DurationEstimate(BaseModel):
    """Best-effort duration for a song without authoritative metadata."""

    model_config = ConfigDict(frozen=True)

    duration: int
    method: EstimationMethod
    confidence: float = Field(ge=0.0, le=1.0)


class ResolutionStats(BaseModel):
    """Accounting for one metadata resolution run.

    requested == cached + fetched + not_found
    """

    requested: int = 0
    cached: int = 0
    fetched: int = 0
    not_found: int = 0


class TopSong(BaseModel):
    """A song in the top songs ranking."""

    key: str
    title: str
    artist: str
    external_id: str | None = None
    duration: int
    play_count: int
    total_duration: int
    thumbnail_url: str | None = None
    artist_image_url: str | None = None
    first_played: datetime
    last_played: datetime


class TopArtist(BaseModel):
    """An artist in the top artists ranking."""

    name: str
    play_count: int
    total_duration: int
    unique_songs: int
    artist_image_url: str | None = None
    first_played: datetime
    last_played: datetime


class DecadeShare(BaseModel):
    """Share of plays falling into one release decade."""

    decade: str  # e.g. "1990s"
    count: int
    percentage: int


class SongYear(BaseModel):
    """A song with a resolved release year."""

    title: str
    artist: str
    year: int


class Statistics(BaseModel):
    """Listening statistics summary produced by the aggregator."""

    model_config = ConfigDict(frozen=True)

    total_songs: int = 0
    total_artists: int = 0
    total_listens: int = 0
    total_playtime: int = 0  # seconds
    average_song_length: float = 0.0

    top_song: str | None = None  # "artist - title"
    top_artist: str | None = None
    top_songs: list[TopSong] = Field(default_factory=list)
    top_artists: list[TopArtist] = Field(default_factory=list)

    first_play_date: datetime | None = None
    last_play_date: datetime | None = None
    daily_average_listens: float = 0.0
    daily_average_playtime: float = 0.0
    monthly_average_listens: float = 0.0
    monthly_average_playtime: float = 0.0
    monthly_playtime: int = 0
    longest_listen_day: str | None = None  # YYYY-MM-DD in the reference timezone
    longest_listen_day_duration: int = 0
    longest_session: int = 0
    session_count: int = 0

    new_artists_this_month: int = 0
    total_new_artists: int = 0

    listening_age: int | None = None
    average_release_year: int | None = None
    music_era: str | None = None
    decade_distribution: list[DecadeShare] = Field(default_factory=list)
    oldest_song: SongYear | None = None
    newest_song: SongYear | None = None
    songs_with_year_count: int = 0

    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
