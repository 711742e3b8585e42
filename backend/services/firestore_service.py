"""Firestore access for the processing pipeline.

Collections in use:
- processing_jobs: one document per uploaded export
- user_latest_jobs: pointer from a user to their newest job
- user_stats: statistics of a user's latest completed job
- songs: song metadata shared by all users, keyed by video id
"""

from typing import Any

from google.cloud import firestore

from backend.config import BackendSettings

Filters = list[tuple[str, str, Any]]


class FirestoreService:
    """Document reads, writes and queries over the async Firestore client."""

    # Largest number of document references get_all accepts per call
    MAX_BATCH_SIZE = 500

    def __init__(self, settings: BackendSettings):
        self.settings = settings
        self._client: firestore.AsyncClient | None = None

    @property
    def client(self) -> firestore.AsyncClient:
        """Get or create Firestore client."""
        if self._client is None:
            self._client = firestore.AsyncClient(
                project=self.settings.google_cloud_project,
                database=self.settings.firestore_database,
            )
        return self._client

    def _document(self, collection: str, doc_id: str) -> firestore.AsyncDocumentReference:
        return self.client.collection(collection).document(doc_id)

    def _query(self, collection: str, filters: Filters | None) -> firestore.AsyncQuery:
        query = self.client.collection(collection)
        for field, op, value in filters or []:
            query = query.where(filter=firestore.FieldFilter(field, op, value))
        return query

    async def get_document(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Get a document by ID, with the ID under "id"."""
        doc = await self._document(collection, doc_id).get()
        if doc.exists:
            return {"id": doc.id, **doc.to_dict()}
        return None

    async def get_documents(self, collection: str, doc_ids: list[str]) -> dict[str, dict[str, Any]]:
        """Get many documents by ID in batched reads.

        Args:
            collection: Collection name
            doc_ids: Document IDs to fetch. Duplicates are read once.

        Returns:
            Mapping of document ID to document dict, for documents that exist
        """
        documents: dict[str, dict[str, Any]] = {}
        unique_ids = list(dict.fromkeys(doc_ids))

        for start in range(0, len(unique_ids), self.MAX_BATCH_SIZE):
            refs = [self._document(collection, doc_id) for doc_id in unique_ids[start : start + self.MAX_BATCH_SIZE]]
            async for doc in self.client.get_all(refs):
                if doc.exists:
                    documents[doc.id] = {"id": doc.id, **doc.to_dict()}

        return documents

    async def set_document(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or replace a document."""
        await self._document(collection, doc_id).set(data)

    async def update_document(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Update fields of an existing document."""
        await self._document(collection, doc_id).update(data)

    async def delete_document(self, collection: str, doc_id: str) -> None:
        """Delete a document. Deleting a missing document is not an error."""
        await self._document(collection, doc_id).delete()

    async def query_documents(
        self,
        collection: str,
        filters: Filters | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Query documents matching every filter.

        Args:
            collection: Collection name
            filters: List of (field, operator, value) tuples
            limit: Max documents to return

        Returns:
            List of document dictionaries with IDs
        """
        query = self._query(collection, filters)
        if limit:
            query = query.limit(limit)
        return [{"id": doc.id, **doc.to_dict()} async for doc in query.stream()]

    async def count_documents(self, collection: str, filters: Filters | None = None) -> int:
        """Count documents matching every filter with an aggregation query."""
        result = await self._query(collection, filters).count().get()
        return result[0][0].value
