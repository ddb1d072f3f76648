"""Role-tagged chat messages shared by history, prompts and the gateway."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum


class Role(StrEnum):
    SYSTEM = "system"
    HUMAN = "human"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatMessage:
    """A single message sent to or received from the model."""

    role: Role
    content: str

    @classmethod
    def system(cls, content: str) -> ChatMessage:
        return cls(Role.SYSTEM, content)

    @classmethod
    def human(cls, content: str) -> ChatMessage:
        return cls(Role.HUMAN, content)

    @classmethod
    def assistant(cls, content: str) -> ChatMessage:
        return cls(Role.ASSISTANT, content)


def transcript(messages: Iterable[ChatMessage]) -> str:
    """Render messages as ``ROLE: content`` lines for prompt injection."""
    return "\n".join(f"{m.role.value.upper()}: {m.content}" for m in messages)


def last_human(messages: Iterable[ChatMessage]) -> str:
    """Content of the most recent human message, or empty string."""
    text = ""
    for message in messages:
        if message.role is Role.HUMAN:
            text = message.content
    return text
