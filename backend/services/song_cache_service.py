"""Firestore-backed song metadata cache.

Songs are stored in the `songs` collection keyed by YouTube video id and
shared across all users. Entries are upserted, never deleted.
"""

import logging
from typing import Any, get_args

from pydantic import ValidationError

from backend.services.firestore_service import FirestoreService
from takeout_wrapped.core.models import EstimationMethod, SongMetadata

logger = logging.getLogger(__name__)


class SongCacheService:
    """SongCache implementation over Firestore."""

    COLLECTION = "songs"

    def __init__(self, firestore: FirestoreService):
        self.firestore = firestore

    async def get_many(self, external_ids: list[str]) -> dict[str, SongMetadata]:
        """Fetch cached songs with batched reads.

        Documents that no longer match the SongMetadata schema are ignored so
        they get re-fetched and overwritten.
        """
        documents = await self.firestore.get_documents(self.COLLECTION, external_ids)

        songs: dict[str, SongMetadata] = {}
        for doc_id, data in documents.items():
            try:
                songs[doc_id] = SongMetadata.model_validate(_strip_id(data))
            except ValidationError as e:
                logger.warning(f"Ignoring malformed cached song {doc_id}: {e.error_count()} invalid field(s)")
        return songs

    async def upsert(self, song: SongMetadata) -> None:
        """Insert or replace a song. Repeating the call is harmless."""
        await self.firestore.set_document(
            self.COLLECTION,
            song.external_id,
            song.model_dump(mode="json"),
        )

    async def get_by_key(self, key: str) -> SongMetadata | None:
        """Find a song by its normalized "artist - title" key."""
        documents = await self.firestore.query_documents(
            self.COLLECTION,
            filters=[("key", "==", key)],
            limit=1,
        )
        if not documents:
            return None
        try:
            return SongMetadata.model_validate(_strip_id(documents[0]))
        except ValidationError:
            logger.warning(f"Ignoring malformed cached song {documents[0]['id']}")
            return None

    async def get_estimation_breakdown(self) -> dict[str, int]:
        """Count cached songs per duration estimation method.

        Returns:
            Mapping of estimation method to count, plus a "total" entry.
        """
        breakdown: dict[str, int] = {}
        for method in get_args(EstimationMethod):
            breakdown[method] = await self.firestore.count_documents(
                self.COLLECTION,
                filters=[("estimation_method", "==", method)],
            )
        breakdown["total"] = sum(breakdown.values())
        return breakdown


def _strip_id(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if key != "id"}
