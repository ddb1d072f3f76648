"""Candidate recall: vector search resolved back to full records."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from hpmn.llm.parsers import IntentCategory

if TYPE_CHECKING:
    from hpmn.store.interfaces import EmbeddingService, RelationalStore, VectorIndex
    from hpmn.store.models import CandidateRecord, VectorHit

logger = logging.getLogger(__name__)


class Collection(StrEnum):
    MEMORIES = "memories"
    NOTES = "notes"
    RESOURCES = "resources"
    ACTIONS = "actions"


# Collections whose points resolve to Memory records.
MEMORY_COLLECTIONS = (Collection.MEMORIES, Collection.NOTES, Collection.RESOURCES)

_CATEGORY_COLLECTIONS: dict[IntentCategory, tuple[Collection, ...]] = {
    IntentCategory.MEMORY: (Collection.MEMORIES,),
    IntentCategory.NOTE: (Collection.NOTES,),
    IntentCategory.RESOURCE: (Collection.RESOURCES,),
    IntentCategory.ALL: MEMORY_COLLECTIONS,
}

Candidate = tuple["CandidateRecord", float]


def collections_for(category: IntentCategory) -> tuple[Collection, ...]:
    """Which memory-shaped collections a query category searches."""
    return _CATEGORY_COLLECTIONS[category]


class Recall:
    """Searches the vector index and looks hits up in the relational store."""

    def __init__(
        self,
        vectors: VectorIndex,
        store: RelationalStore,
        embeddings: EmbeddingService,
    ) -> None:
        self._vectors = vectors
        self._store = store
        self._embeddings = embeddings

    async def search(
        self, collection: Collection, vector: list[float], limit: int
    ) -> list[VectorHit]:
        """Nearest neighbours by descending score; ties keep the index's order."""
        hits = await self._vectors.search(collection.value, vector, limit, with_payload=True)
        return sorted(hits, key=lambda hit: hit.score, reverse=True)

    async def recall(
        self, collection: Collection, vector: list[float], limit: int
    ) -> list[Candidate]:
        """Search one collection and resolve hits to ``(record, score)`` pairs.

        Hits whose id no longer resolves are stale index entries and are
        dropped without error.
        """
        hits = await self.search(collection, vector, limit)
        candidates: list[Candidate] = []
        for hit in hits:
            record = await self._resolve(collection, hit.id)
            if record is None:
                logger.debug("Dropping stale %s hit %s", collection.value, hit.id)
                continue
            if not record.active:
                logger.debug("Dropping inactive %s record %s", collection.value, hit.id)
                continue
            candidates.append((record, hit.score))

        logger.info(
            "Recalled %d/%d %s for the query", len(candidates), len(hits), collection.value
        )
        return candidates

    async def recall_many(
        self,
        collections: tuple[Collection, ...],
        vector: list[float],
        limit: int,
    ) -> list[Candidate]:
        """Recall across several collections, merged by score and cut to *limit*."""
        merged: list[Candidate] = []
        for collection in collections:
            merged.extend(await self.recall(collection, vector, limit))
        merged.sort(key=lambda candidate: candidate[1], reverse=True)
        return merged[:limit]

    async def index(
        self,
        collection: Collection,
        point_id: str,
        text: str,
        title: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Embed *text* and upsert it with ``{content, title, **metadata}``."""
        vector = await self._embeddings.embed(text)
        await self._vectors.upsert(
            collection.value,
            point_id,
            vector,
            {"content": text, "title": title, **(metadata or {})},
        )

    async def _resolve(self, collection: Collection, record_id: str) -> CandidateRecord | None:
        try:
            if collection is Collection.ACTIONS:
                return await self._store.get_action(record_id)
            return await self._store.get_memory(record_id)
        except Exception:
            logger.warning(
                "Record %s could not be retrieved from the %s table",
                record_id,
                collection.value,
                exc_info=True,
            )
            return None
