"""Listening statistics aggregation.

Consumes PlayEvents in chronological order together with resolved song
metadata and produces a single Statistics summary.
"""

import asyncio
import logging
import math
from collections import Counter
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from takeout_wrapped.core.config import Settings
from takeout_wrapped.core.models import (
    DecadeShare,
    PlayEvent,
    SongMetadata,
    SongYear,
    Statistics,
    TopArtist,
    TopSong,
)
from takeout_wrapped.services.duration_estimator import GLOBAL_AVERAGE_DURATION, estimate_duration
from takeout_wrapped.utils.extraction import derive_artist_from_title
from takeout_wrapped.utils.text import (
    create_artist_key,
    create_song_key,
    extract_release_year,
    is_generic_artist,
    is_valid_release_year,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], Awaitable[None]]


@dataclass
class SongAggregate:
    """Running totals for one song key."""

    key: str
    title: str
    artist: str
    duration: int
    first_played: datetime
    last_played: datetime
    external_id: str | None = None
    thumbnail_url: str | None = None
    artist_image_url: str | None = None
    play_count: int = 0
    total_duration: int = 0


@dataclass
class ArtistAggregate:
    """Running totals for one artist key."""

    name: str
    first_played: datetime
    last_played: datetime
    artist_image_url: str | None = None
    play_count: int = 0
    total_duration: int = 0
    song_keys: set[str] = field(default_factory=set)


@dataclass
class DailyAggregate:
    """Running totals for one calendar day."""

    date: str
    listens: int = 0
    total_duration: int = 0


@dataclass
class SongYearAggregate:
    """Release year of a song and how often it was played."""

    title: str
    artist: str
    year: int
    play_count: int = 0


@dataclass
class _SessionTracker:
    """Gap-based listening sessions over chronologically ordered plays."""

    gap_seconds: int
    count: int = 0
    longest: int = 0
    current: int = 0
    last_played: datetime | None = None

    def add(self, played_at: datetime, duration: int) -> None:
        if self.last_played is None or (played_at - self.last_played).total_seconds() > self.gap_seconds:
            self.close()
            self.count += 1
            self.current = 0
        self.current += duration
        self.last_played = played_at

    def close(self) -> None:
        self.longest = max(self.longest, self.current)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def music_era(average_year: int) -> str:
    """Label a year by its position within its decade, e.g. "late 1990s"."""
    decade = average_year // 10 * 10
    position = average_year % 10
    if position <= 3:
        label = "early"
    elif position <= 6:
        label = "mid"
    else:
        label = "late"
    return f"{label} {decade}s"


def decade_percentages(counts: Sequence[int]) -> list[int]:
    """Integer percentages for counts that always sum to 100 (largest remainder)."""
    total = sum(counts)
    if total == 0:
        return [0 for _ in counts]
    exact = [count * 100 / total for count in counts]
    percentages = [math.floor(value) for value in exact]
    shortfall = 100 - sum(percentages)
    by_remainder = sorted(range(len(counts)), key=lambda i: exact[i] - percentages[i], reverse=True)
    for i in by_remainder[:shortfall]:
        percentages[i] += 1
    return percentages


class StatsAggregator:
    """Aggregate play events into listening statistics."""

    TOP_N = 10
    DAYS_PER_MONTH = 30.44
    SECONDS_PER_DAY = 86400

    # Channel names that should never be ranked as an artist
    EXCLUDED_TOP_ARTISTS = frozenset({"release"})

    def __init__(
        self,
        chunk_size: int = 2000,
        session_gap_seconds: int = 3600,
        timezone: str = "UTC",
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the aggregator.

        Args:
            chunk_size: Events processed between event loop yields.
            session_gap_seconds: Largest gap between plays within one session.
            timezone: Reference timezone for calendar days and months.
            clock: Returns the current time; defaults to datetime.now(UTC).
        """
        self.chunk_size = max(1, chunk_size)
        self.session_gap_seconds = session_gap_seconds
        self.tz = ZoneInfo(timezone)
        self.clock = clock or (lambda: datetime.now(UTC))

    @classmethod
    def from_settings(cls, settings: Settings) -> "StatsAggregator":
        """Build an aggregator from settings."""
        return cls(
            chunk_size=settings.chunk_size,
            session_gap_seconds=settings.session_gap_seconds,
            timezone=settings.stats_timezone,
        )

    @classmethod
    def metadata_key(cls, event: PlayEvent) -> str:
        """Key a play's metadata is stored under: its video id, else its song key."""
        return event.external_id or create_song_key(cls.resolve_artist(event, None), event.title)

    @staticmethod
    def resolve_artist(event: PlayEvent, song: SongMetadata | None) -> str:
        """Pick the artist a play is credited to.

        Metadata artist first, then the parsed artist, skipping generic names,
        then an artist re-derived from the original title.
        """
        if song is not None and not is_generic_artist(song.artist):
            return song.artist
        if not is_generic_artist(event.artist):
            return event.artist
        return derive_artist_from_title(event.original_title) or event.artist

    @staticmethod
    def resolve_duration(event: PlayEvent, song: SongMetadata | None, artist: str) -> int:
        """Duration of a play: metadata when known, otherwise an estimate."""
        if song is not None and song.duration > 0:
            return song.duration
        return estimate_duration(event.title, artist).duration

    @staticmethod
    def resolve_release_year(event: PlayEvent, song: SongMetadata | None, max_year: int) -> int | None:
        """Release year from metadata, falling back to a year in the title."""
        if song is not None and song.release_date is not None:
            year = song.release_date.year
            if is_valid_release_year(year, max_year):
                return year
        return extract_release_year(event.original_title, max_year)

    async def aggregate(
        self,
        events: Sequence[PlayEvent],
        metadata: Mapping[str, SongMetadata],
        progress_callback: ProgressCallback | None = None,
    ) -> Statistics:
        """Aggregate events into Statistics.

        Args:
            events: Play events in any order; they are sorted by play time.
            metadata: Song metadata keyed by external id, or by song key for
                plays without one.
            progress_callback: Optional async callback(processed, total).

        Returns:
            Statistics summary.
        """
        now = self.clock()
        local_now = now.astimezone(self.tz)
        current_year = local_now.year
        max_year = current_year + 1
        month_start = local_now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        if not events:
            return Statistics(average_song_length=GLOBAL_AVERAGE_DURATION, generated_at=now)

        ordered = sorted(events, key=lambda event: event.played_at)
        total = len(ordered)

        songs: dict[str, SongAggregate] = {}
        artists: dict[str, ArtistAggregate] = {}
        days: dict[str, DailyAggregate] = {}
        song_years: dict[str, SongYearAggregate] = {}
        decade_counts: Counter[int] = Counter()
        sessions = _SessionTracker(self.session_gap_seconds)
        total_playtime = 0
        monthly_playtime = 0

        for start in range(0, total, self.chunk_size):
            for event in ordered[start : start + self.chunk_size]:
                song = metadata.get(self.metadata_key(event))
                artist = self.resolve_artist(event, song)
                duration = self.resolve_duration(event, song, artist)
                played_at = event.played_at

                song_key = create_song_key(artist, event.title)
                song_aggregate = songs.get(song_key)
                if song_aggregate is None:
                    song_aggregate = songs[song_key] = SongAggregate(
                        key=song_key,
                        title=event.title,
                        artist=artist,
                        duration=duration,
                        first_played=played_at,
                        last_played=played_at,
                        external_id=event.external_id,
                    )
                song_aggregate.play_count += 1
                song_aggregate.total_duration += duration
                song_aggregate.last_played = played_at
                if song is not None:
                    song_aggregate.thumbnail_url = song_aggregate.thumbnail_url or song.thumbnail_url
                    song_aggregate.artist_image_url = song_aggregate.artist_image_url or song.artist_image_url

                artist_key = create_artist_key(artist)
                artist_aggregate = artists.get(artist_key)
                if artist_aggregate is None:
                    artist_aggregate = artists[artist_key] = ArtistAggregate(
                        name=artist,
                        first_played=played_at,
                        last_played=played_at,
                    )
                artist_aggregate.play_count += 1
                artist_aggregate.total_duration += duration
                artist_aggregate.song_keys.add(song_key)
                artist_aggregate.last_played = played_at
                if song is not None and artist_aggregate.artist_image_url is None:
                    artist_aggregate.artist_image_url = song.artist_image_url

                local_played_at = played_at.astimezone(self.tz)
                date_key = local_played_at.date().isoformat()
                day = days.get(date_key)
                if day is None:
                    day = days[date_key] = DailyAggregate(date=date_key)
                day.listens += 1
                day.total_duration += duration

                total_playtime += duration
                if local_played_at >= month_start:
                    monthly_playtime += duration

                sessions.add(played_at, duration)

                year = self.resolve_release_year(event, song, max_year)
                if year is not None:
                    song_year = song_years.get(song_key)
                    if song_year is None:
                        song_year = song_years[song_key] = SongYearAggregate(title=event.title, artist=artist, year=year)
                    song_year.play_count += 1
                    decade_counts[year // 10 * 10] += 1

            if progress_callback:
                await progress_callback(min(start + self.chunk_size, total), total)
            await asyncio.sleep(0)

        sessions.close()

        first_play = ordered[0].played_at
        last_play = ordered[-1].played_at
        total_days = max(1, math.ceil((last_play - first_play).total_seconds() / self.SECONDS_PER_DAY))
        total_months = max(1.0, total_days / self.DAYS_PER_MONTH)

        top_songs = sorted(songs.values(), key=lambda s: s.play_count, reverse=True)[: self.TOP_N]
        ranked_artists = [
            a for a in artists.values() if a.name.lower().strip() not in self.EXCLUDED_TOP_ARTISTS
        ]
        top_artists = sorted(ranked_artists, key=lambda a: a.play_count, reverse=True)[: self.TOP_N]

        longest_day: DailyAggregate | None = None
        for day in days.values():
            if longest_day is None or day.total_duration > longest_day.total_duration:
                longest_day = day

        era_fields = self._era_fields(song_years, decade_counts, current_year)

        statistics = Statistics(
            total_songs=len(songs),
            total_artists=len(artists),
            total_listens=total,
            total_playtime=total_playtime,
            average_song_length=total_playtime / total,
            top_song=f"{top_songs[0].artist} - {top_songs[0].title}" if top_songs else None,
            top_artist=top_artists[0].name if top_artists else None,
            top_songs=[
                TopSong(
                    key=s.key,
                    title=s.title,
                    artist=s.artist,
                    external_id=s.external_id,
                    duration=s.duration,
                    play_count=s.play_count,
                    total_duration=s.total_duration,
                    thumbnail_url=s.thumbnail_url,
                    artist_image_url=s.artist_image_url,
                    first_played=s.first_played,
                    last_played=s.last_played,
                )
                for s in top_songs
            ],
            top_artists=[
                TopArtist(
                    name=a.name,
                    play_count=a.play_count,
                    total_duration=a.total_duration,
                    unique_songs=len(a.song_keys),
                    artist_image_url=a.artist_image_url,
                    first_played=a.first_played,
                    last_played=a.last_played,
                )
                for a in top_artists
            ],
            first_play_date=first_play,
            last_play_date=last_play,
            daily_average_listens=total / total_days,
            daily_average_playtime=total_playtime / total_days,
            monthly_average_listens=total / total_months,
            monthly_average_playtime=total_playtime / total_months,
            monthly_playtime=monthly_playtime,
            longest_listen_day=longest_day.date if longest_day else None,
            longest_listen_day_duration=longest_day.total_duration if longest_day else 0,
            longest_session=sessions.longest,
            session_count=sessions.count,
            new_artists_this_month=sum(
                1 for a in artists.values() if a.first_played.astimezone(self.tz) >= month_start
            ),
            total_new_artists=len(artists),
            songs_with_year_count=len(song_years),
            generated_at=now,
            **era_fields,
        )
        logger.info(
            f"Aggregated {total} plays into {statistics.total_songs} songs by {statistics.total_artists} artists"
        )
        return statistics

    @staticmethod
    def _era_fields(
        song_years: dict[str, SongYearAggregate],
        decade_counts: Counter[int],
        current_year: int,
    ) -> dict[str, object]:
        """Compute listening age, music era and decade distribution fields."""
        if not song_years:
            return {}

        weighted_total = sum(s.year * s.play_count for s in song_years.values())
        plays_with_year = sum(s.play_count for s in song_years.values())
        average_year = _round_half_up(weighted_total / plays_with_year)

        oldest: SongYearAggregate | None = None
        newest: SongYearAggregate | None = None
        for song_year in song_years.values():
            if oldest is None or song_year.year < oldest.year:
                oldest = song_year
            if newest is None or song_year.year > newest.year:
                newest = song_year
        assert oldest is not None and newest is not None

        ranked_decades = sorted(decade_counts.items(), key=lambda item: item[1], reverse=True)
        percentages = decade_percentages([count for _, count in ranked_decades])

        return {
            "average_release_year": average_year,
            "listening_age": current_year - average_year,
            "music_era": music_era(average_year),
            "decade_distribution": [
                DecadeShare(decade=f"{decade}s", count=count, percentage=percentage)
                for (decade, count), percentage in zip(ranked_decades, percentages, strict=True)
            ],
            "oldest_song": SongYear(title=oldest.title, artist=oldest.artist, year=oldest.year),
            "newest_song": SongYear(title=newest.title, artist=newest.artist, year=newest.year),
        }
