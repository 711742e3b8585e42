"""Metadata resolution for external video ids.

Resolves video ids to SongMetadata: cache first, then the YouTube Data API in
batches. Freshly fetched songs are written back to the cache.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from takeout_wrapped.core.config import Settings
from takeout_wrapped.core.exceptions import RateLimitError
from takeout_wrapped.core.models import ResolutionStats, SongMetadata
from takeout_wrapped.services.duration_estimator import GLOBAL_AVERAGE_CONFIDENCE, GLOBAL_AVERAGE_DURATION
from takeout_wrapped.services.song_cache import SongCache
from takeout_wrapped.services.youtube import YouTubeClient
from takeout_wrapped.utils.extraction import UNKNOWN_ARTIST, derive_artist_from_title
from takeout_wrapped.utils.text import clean_artist_name, create_song_key, is_generic_artist

logger = logging.getLogger(__name__)

ISO_DURATION_PATTERN = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")

THUMBNAIL_PRIORITY = ("maxres", "high", "medium", "default")


@dataclass
class ResolutionResult:
    """Resolved metadata keyed by external id, plus accounting."""

    songs: dict[str, SongMetadata] = field(default_factory=dict)
    stats: ResolutionStats = field(default_factory=ResolutionStats)


def parse_iso8601_duration(value: str | None) -> int | None:
    """Parse a YouTube ISO-8601 duration like "PT1H2M3S" into seconds.

    Returns None for missing, unparsable or zero durations.
    """
    if not value:
        return None
    match = ISO_DURATION_PATTERN.match(value)
    if not match:
        return None
    hours, minutes, seconds = (int(group or 0) for group in match.groups())
    total = hours * 3600 + minutes * 60 + seconds
    return total if total > 0 else None


def select_thumbnail(thumbnails: dict[str, Any] | None) -> str | None:
    """Pick the best available thumbnail URL (maxres > high > medium > default)."""
    if not thumbnails:
        return None
    for size in THUMBNAIL_PRIORITY:
        url = (thumbnails.get(size) or {}).get("url")
        if url:
            return str(url)
    return None


def _parse_published_at(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def correct_generic_artist(song: SongMetadata) -> SongMetadata:
    """Re-derive the artist of a cached song whose artist is a generic channel name."""
    if not is_generic_artist(song.artist):
        return song
    derived = derive_artist_from_title(song.title)
    if derived is None:
        return song
    return song.model_copy(update={"artist": derived, "key": create_song_key(derived, song.title)})


class MetadataResolver:
    """Resolve external video ids to song metadata.

    Callers are responsible for authorization; the resolver spends API quota
    on whatever it is given.
    """

    def __init__(
        self,
        cache: SongCache,
        client: YouTubeClient | None,
        batch_size: int = 50,
        batch_delay_seconds: float = 0.2,
        max_concurrency: int = 1,
    ):
        """Initialize the resolver.

        Args:
            cache: Song metadata cache.
            client: YouTube client, or None to resolve from the cache only.
            batch_size: Ids per API call (at most 50).
            batch_delay_seconds: Pause between successive rounds of API calls.
            max_concurrency: Number of API calls in flight per round.
        """
        self.cache = cache
        self.client = client
        self.batch_size = min(batch_size, YouTubeClient.MAX_IDS_PER_REQUEST)
        self.batch_delay_seconds = batch_delay_seconds
        self.max_concurrency = max(1, max_concurrency)

    @classmethod
    def from_settings(cls, settings: Settings, cache: SongCache) -> "MetadataResolver":
        """Build a resolver from settings. No API key means cache-only resolution."""
        client = None
        if settings.youtube_api_key:
            client = YouTubeClient(settings.youtube_api_key, timeout=settings.youtube_timeout_seconds)
        else:
            logger.warning("YOUTUBE_API_KEY not configured, resolving from cache only")
        return cls(
            cache=cache,
            client=client,
            batch_size=settings.youtube_batch_size,
            batch_delay_seconds=settings.youtube_batch_delay_seconds,
            max_concurrency=settings.youtube_max_concurrency,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self.client:
            await self.client.close()

    async def resolve(self, external_ids: Iterable[str]) -> ResolutionResult:
        """Resolve external ids to metadata.

        Args:
            external_ids: Video ids. Duplicates and empty values are ignored.

        Returns:
            ResolutionResult with songs for every id that could be resolved.
        """
        requested = list(dict.fromkeys(external_id for external_id in external_ids if external_id))
        if not requested:
            return ResolutionResult()

        cached = await self._read_cache(requested)

        # Cached rows without artwork are refreshed, but still served if the refresh fails
        to_fetch = [
            external_id
            for external_id in requested
            if external_id not in cached or not cached[external_id].thumbnail_url
        ]

        fetched: dict[str, SongMetadata] = {}
        if to_fetch:
            fetched = await self._fetch_songs(to_fetch)
            await self._write_cache(fetched.values())

        songs: dict[str, SongMetadata] = {}
        for external_id in requested:
            if external_id in fetched:
                songs[external_id] = fetched[external_id]
            elif external_id in cached:
                songs[external_id] = cached[external_id]

        cached_count = len(songs) - len(fetched)
        stats = ResolutionStats(
            requested=len(requested),
            cached=cached_count,
            fetched=len(fetched),
            not_found=len(requested) - cached_count - len(fetched),
        )
        logger.info(
            f"Resolved {len(songs)}/{stats.requested} songs "
            f"(cached={stats.cached}, fetched={stats.fetched}, not_found={stats.not_found})"
        )
        return ResolutionResult(songs=songs, stats=stats)

    async def _read_cache(self, external_ids: list[str]) -> dict[str, SongMetadata]:
        try:
            cached = await self.cache.get_many(external_ids)
        except Exception as e:
            logger.warning(f"Song cache read failed, treating all ids as uncached: {e}")
            return {}
        return {external_id: correct_generic_artist(song) for external_id, song in cached.items()}

    async def _write_cache(self, songs: Iterable[SongMetadata]) -> None:
        for song in songs:
            try:
                await self.cache.upsert(song)
            except Exception as e:
                logger.warning(f"Failed to cache song {song.external_id}: {e}")

    async def _run_batches(
        self,
        ids: list[str],
        fetch: Callable[[list[str]], Awaitable[list[dict[str, Any]]]],
        label: str,
    ) -> tuple[list[dict[str, Any]], bool]:
        """Call fetch over ids in batches with bounded concurrency.

        Returns:
            (items, quota_exhausted). Once quota is exhausted no further
            batches are issued.
        """
        batches = [ids[i : i + self.batch_size] for i in range(0, len(ids), self.batch_size)]
        items: list[dict[str, Any]] = []

        for start in range(0, len(batches), self.max_concurrency):
            if start > 0:
                await asyncio.sleep(self.batch_delay_seconds)

            group = batches[start : start + self.max_concurrency]
            results = await asyncio.gather(*(fetch(batch) for batch in group), return_exceptions=True)

            quota_exhausted = False
            for batch, result in zip(group, results, strict=True):
                if isinstance(result, RateLimitError):
                    quota_exhausted = True
                    logger.warning(f"YouTube quota exhausted during {label} lookup: {result}")
                elif isinstance(result, Exception):
                    logger.warning(f"Skipping {label} batch of {len(batch)} ids: {result}")
                elif isinstance(result, BaseException):
                    raise result
                else:
                    items.extend(result)

            if quota_exhausted:
                remaining = len(batches) - start - len(group)
                if remaining:
                    logger.warning(f"Skipping {remaining} remaining {label} batches")
                return items, True

        return items, False

    async def _fetch_songs(self, video_ids: list[str]) -> dict[str, SongMetadata]:
        """Fetch video and channel metadata for the given ids."""
        if self.client is None:
            return {}

        videos, quota_exhausted = await self._run_batches(video_ids, self.client.get_videos, "video")

        channel_images: dict[str, str] = {}
        if not quota_exhausted:
            channel_ids = list(
                dict.fromkeys(
                    video.get("snippet", {}).get("channelId") for video in videos if video.get("snippet", {}).get("channelId")
                )
            )
            channels, _ = await self._run_batches(channel_ids, self.client.get_channels, "channel")
            for channel in channels:
                image = select_thumbnail(channel.get("snippet", {}).get("thumbnails"))
                if image:
                    channel_images[channel["id"]] = image

        wanted = set(video_ids)
        songs: dict[str, SongMetadata] = {}
        for video in videos:
            video_id = video.get("id")
            if video_id in wanted:
                songs[video_id] = self._build_song(video, channel_images)
        return songs

    @staticmethod
    def _build_song(video: dict[str, Any], channel_images: dict[str, str]) -> SongMetadata:
        """Convert a video resource into SongMetadata."""
        snippet = video.get("snippet", {})
        title = snippet.get("title", "")
        channel_title = snippet.get("channelTitle", "")
        channel_id = snippet.get("channelId")

        artist = clean_artist_name(channel_title)
        if is_generic_artist(artist):
            artist = derive_artist_from_title(title) or UNKNOWN_ARTIST

        duration = parse_iso8601_duration(video.get("contentDetails", {}).get("duration"))
        estimation: dict[str, Any] = {}
        if duration is None:
            duration = GLOBAL_AVERAGE_DURATION
            estimation = {"estimation_method": "global-average", "confidence": GLOBAL_AVERAGE_CONFIDENCE}

        return SongMetadata(
            key=create_song_key(artist, title),
            external_id=video["id"],
            title=title,
            artist=artist,
            duration=duration,
            thumbnail_url=select_thumbnail(snippet.get("thumbnails")),
            artist_image_url=channel_images.get(channel_id) if channel_id else None,
            release_date=_parse_published_at(snippet.get("publishedAt")),
            channel_title=channel_title or None,
            channel_id=channel_id,
            **estimation,
        )
