"""
Listing store: owns listing records and their embeddings.

Responsibility: upsert records (fresh id + embedding of the search document) and
answer similarity searches with search-document texts. No HTTP, no agents here.
"""

import logging
import threading
import uuid
from typing import Any

from listing_agents.core.config import SEARCH_TOP_K
from listing_agents.schemas.listing import ListingRecord
from listing_agents.services.vector_store import Embedder, MilvusIndex, create_index, embed_texts

logger = logging.getLogger(__name__)

# Returned by the search tool when nothing matched. Terminal outcome, not an error.
NO_PROPERTIES_FOUND = "NO_PROPERTIES_FOUND"


class ListingStore:
    """Records by id plus a vector index over their search documents."""

    def __init__(self, index: MilvusIndex | None = None,
                 embedder: Embedder = embed_texts) -> None:
        self.index = index if index is not None else create_index()
        self._embed = embedder
        self._records: dict[str, ListingRecord] = {}
        self._lock = threading.Lock()

    def upsert(self, record: ListingRecord) -> ListingRecord:
        """Store one record under a new id. Same content twice gives two records."""
        return self.upsert_many([record])[0]

    def upsert_many(self, records: list[ListingRecord]) -> list[ListingRecord]:
        """Assign ids, embed all search documents in one batch, store. Returns the stored records."""
        if not records:
            return []
        stored = [r.model_copy(update={"id": uuid.uuid4().hex}) for r in records]
        documents = [r.search_document for r in stored]
        vectors = self._embed(documents)
        if len(vectors) != len(stored):
            raise RuntimeError(f"Embedding returned {len(vectors)} vectors for {len(stored)} listings")
        with self._lock:
            for record, doc, vec in zip(stored, documents, vectors):
                self.index.upsert(record.id, doc, vec)
                self._records[record.id] = record
        logger.info("[listing_store:upsert_many] stored=%d total=%d", len(stored), len(self._records))
        return stored

    def search(self, query: str, k: int = SEARCH_TOP_K) -> list[str]:
        """Return up to k search documents ranked by similarity to query. Empty list when nothing matches."""
        logger.info("[listing_store:search] IN  query=%r k=%d", query, k)
        query = (query or "").strip()
        if not query or k <= 0 or self.count() == 0:
            logger.info("[listing_store:search] OUT empty (query or store empty)")
            return []
        query_vec = self._embed([query])
        if not query_vec:
            logger.warning("[listing_store:search] embedder returned no vector")
            return []
        hits = self.index.search(query_vec[0], k)
        logger.info("[listing_store:search] OUT hits=%d first_scores=%s",
                    len(hits), [round(h.get("score", 0.0), 4) for h in hits[:5]])
        docs = []
        for h in hits:
            record = self._records.get(str(h["id"]))
            docs.append(record.search_document if record else h.get("text", ""))
        return docs

    def get(self, record_id: str) -> ListingRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def count(self) -> int:
        """Rows in the index."""
        return self.index.count()

    def stats(self) -> dict[str, Any]:
        return {
            "collection_name": self.index.collection_name,
            "total_listings": self.count(),
            "backend": self.index.backend,
        }
