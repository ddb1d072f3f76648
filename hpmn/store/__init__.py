"""Storage collaborators: contracts, records and bundled adapters."""

from hpmn.store.interfaces import EmbeddingService, RelationalStore, VectorIndex
from hpmn.store.models import Action, ActionSchema, CandidateRecord, Memory, Turn, VectorHit

__all__ = [
    "Action",
    "ActionSchema",
    "CandidateRecord",
    "EmbeddingService",
    "Memory",
    "RelationalStore",
    "Turn",
    "VectorHit",
    "VectorIndex",
]
