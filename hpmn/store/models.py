"""Data models for conversation turns, memories and actions."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


def _now() -> str:
    return datetime.now(UTC).isoformat()


class Turn(BaseModel):
    """One question/answer exchange within a conversation."""

    conversation_id: str
    question: str
    answer: str
    title: str = ""
    created_at: str = Field(default_factory=_now)


class Memory(BaseModel):
    """A stored memory (also used for notes and resources)."""

    id: str
    title: str
    content: str
    tags: list[str] = Field(default_factory=list)
    active: bool = True
    context: str = ""
    created_at: str = Field(default_factory=_now)


class ActionSchema(BaseModel):
    """Typed description of an action's purpose and parameters.

    Validated when an action is registered, so readers never have to
    cope with a malformed schema string.
    """

    name: str = Field(min_length=1)
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class Action(BaseModel):
    """A named remote capability invoked through a webhook URL."""

    id: str
    name: str
    definition: ActionSchema
    url: str
    tags: list[str] = Field(default_factory=list)
    active: bool = True
    category: str = "default"

    @property
    def title(self) -> str:
        return self.name

    @property
    def content(self) -> str:
        return self.definition.description

    def describe(self) -> str:
        """One ``- name: description`` line for the selection prompt."""
        description = self.definition.description.strip() or "No description available"
        return f"- {self.name}: {description}"


class VectorHit(BaseModel):
    """One nearest-neighbour result from the vector index."""

    id: str
    score: float
    payload: dict[str, Any] | None = None


# A record the relevance filter can judge: both expose title, content and tags.
CandidateRecord = Memory | Action
