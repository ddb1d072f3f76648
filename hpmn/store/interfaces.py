"""Collaborator contracts consumed by the pipeline.

Implement these with your preferred database, vector index and embedding
providers. ``hpmn.store`` ships one adapter for each.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hpmn.store.models import Action, Memory, Turn, VectorHit


@runtime_checkable
class RelationalStore(Protocol):
    """CRUD for conversation turns, actions and memories."""

    async def get_turns(self, conversation_id: str, limit: int = 10) -> list[Turn]: ...

    async def get_first_turn(self, conversation_id: str) -> Turn | None: ...

    async def create_turn(self, turn: Turn) -> Turn: ...

    async def delete_inactive_conversations(self, days: int) -> int: ...

    async def get_actions(self) -> list[Action]: ...

    async def get_action(self, action_id: str) -> Action | None: ...

    async def create_action(self, action: Action) -> Action: ...

    async def get_memories(self) -> list[Memory]: ...

    async def get_memory(self, memory_id: str) -> Memory | None: ...

    async def create_memory(self, memory: Memory) -> Memory: ...


@runtime_checkable
class VectorIndex(Protocol):
    """Nearest-neighbour search over named collections."""

    async def create_collection(self, name: str, dim: int) -> None: ...

    async def delete_collection(self, name: str) -> None: ...

    async def upsert(
        self,
        collection: str,
        point_id: str,
        vector: list[float],
        payload: dict[str, Any] | None = None,
    ) -> None: ...

    async def search(
        self,
        collection: str,
        vector: list[float],
        limit: int,
        with_payload: bool = True,
    ) -> list[VectorHit]: ...

    async def delete(self, collection: str, point_id: str) -> None: ...


@runtime_checkable
class EmbeddingService(Protocol):
    """Turns text into a vector."""

    async def embed(self, text: str) -> list[float]: ...
