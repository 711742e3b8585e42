"""Song metadata cache interface and a local implementation.

The backend stores metadata in Firestore (see backend/services/song_cache_service.py);
the CLI uses the in-memory cache, optionally persisted to a JSON file.
"""

import logging
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter

from takeout_wrapped.core.models import SongMetadata

logger = logging.getLogger(__name__)

_songs_adapter = TypeAdapter(list[SongMetadata])


class SongCache(Protocol):
    """Key-value store of song metadata keyed by external id."""

    async def get_many(self, external_ids: list[str]) -> dict[str, SongMetadata]:
        """Return cached metadata for the ids that are present."""
        ...

    async def upsert(self, song: SongMetadata) -> None:
        """Insert or replace metadata for song.external_id."""
        ...

    async def get_by_key(self, key: str) -> SongMetadata | None:
        """Return a cached song with the normalized "artist - title" key, if any."""
        ...


class InMemorySongCache:
    """Dictionary-backed SongCache."""

    def __init__(self, songs: list[SongMetadata] | None = None):
        self._songs: dict[str, SongMetadata] = {song.external_id: song for song in songs or []}

    def __len__(self) -> int:
        return len(self._songs)

    async def get_many(self, external_ids: list[str]) -> dict[str, SongMetadata]:
        return {external_id: self._songs[external_id] for external_id in external_ids if external_id in self._songs}

    async def upsert(self, song: SongMetadata) -> None:
        self._songs[song.external_id] = song

    async def get_by_key(self, key: str) -> SongMetadata | None:
        return next((song for song in self._songs.values() if song.key == key), None)

    @classmethod
    def load(cls, path: Path) -> "InMemorySongCache":
        """Load a cache previously written with save(). Missing files give an empty cache."""
        if not path.exists():
            return cls()
        songs = _songs_adapter.validate_json(path.read_bytes())
        logger.info(f"Loaded {len(songs)} cached songs from {path}")
        return cls(songs)

    def save(self, path: Path) -> None:
        """Write the cache to a JSON file."""
        path.write_bytes(_songs_adapter.dump_json(list(self._songs.values()), indent=2))
        logger.info(f"Saved {len(self._songs)} cached songs to {path}")
