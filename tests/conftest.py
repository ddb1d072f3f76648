"""Shared test fixtures and in-memory collaborators."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from hpmn.config import Settings
from hpmn.llm.gateway import ChatResponse
from hpmn.store.models import Action, Memory, Turn, VectorHit


class FakeStore:
    """RelationalStore kept in dicts."""

    def __init__(self) -> None:
        self.turns: list[Turn] = []
        self.actions: dict[str, Action] = {}
        self.memories: dict[str, Memory] = {}

    async def get_turns(self, conversation_id: str, limit: int = 10) -> list[Turn]:
        turns = [t for t in self.turns if t.conversation_id == conversation_id]
        return turns[-limit:]

    async def get_first_turn(self, conversation_id: str) -> Turn | None:
        turns = [t for t in self.turns if t.conversation_id == conversation_id]
        return turns[0] if turns else None

    async def create_turn(self, turn: Turn) -> Turn:
        self.turns.append(turn)
        return turn

    async def delete_inactive_conversations(self, days: int) -> int:
        return 0

    async def get_actions(self) -> list[Action]:
        return list(self.actions.values())

    async def get_action(self, action_id: str) -> Action | None:
        return self.actions.get(action_id)

    async def create_action(self, action: Action) -> Action:
        self.actions[action.id] = action
        return action

    async def get_memories(self) -> list[Memory]:
        return list(self.memories.values())

    async def get_memory(self, memory_id: str) -> Memory | None:
        return self.memories.get(memory_id)

    async def create_memory(self, memory: Memory) -> Memory:
        self.memories[memory.id] = memory
        return memory


class FakeVectorIndex:
    """VectorIndex scoring points by dot product."""

    def __init__(self) -> None:
        self.points: dict[str, dict[str, tuple[list[float], dict[str, Any]]]] = {}

    async def create_collection(self, name: str, dim: int) -> None:
        self.points.setdefault(name, {})

    async def delete_collection(self, name: str) -> None:
        self.points.pop(name, None)

    async def upsert(
        self,
        collection: str,
        point_id: str,
        vector: list[float],
        payload: dict[str, Any] | None = None,
    ) -> None:
        self.points.setdefault(collection, {})[point_id] = (vector, payload or {})

    async def search(
        self,
        collection: str,
        vector: list[float],
        limit: int,
        with_payload: bool = True,
    ) -> list[VectorHit]:
        hits = [
            VectorHit(
                id=point_id,
                score=sum(a * b for a, b in zip(stored, vector, strict=False)),
                payload=payload if with_payload else None,
            )
            for point_id, (stored, payload) in self.points.get(collection, {}).items()
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:limit]

    async def delete(self, collection: str, point_id: str) -> None:
        self.points.get(collection, {}).pop(point_id, None)


class FakeEmbeddings:
    """EmbeddingService returning fixed vectors per text."""

    def __init__(self, vectors: dict[str, list[float]] | None = None) -> None:
        self.vectors = vectors or {}
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return self.vectors.get(text, [1.0, 0.0, 0.0])


@pytest.fixture
def gateway() -> MagicMock:
    """A ModelGateway stand-in; ``complete`` answers "OK" unless reconfigured."""
    gateway = MagicMock()
    gateway.complete = AsyncMock(return_value=ChatResponse(content="OK"))
    gateway.parse = AsyncMock()
    gateway.recorder = None
    return gateway


@pytest.fixture
def settings() -> Settings:
    return Settings(anthropic_api_key="test-key", openai_api_key="test-openai-key")


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def vectors() -> FakeVectorIndex:
    return FakeVectorIndex()


@pytest.fixture
def embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()
