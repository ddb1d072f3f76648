"""Conversation memory: rebuild prior turns and persist new ones.

Saving never fails the user-visible reply: every persistence error is
logged and swallowed here.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from hpmn.llm.gateway import InteractionContext, ModelConfig
from hpmn.llm.messages import ChatMessage
from hpmn.llm.templates import load_template
from hpmn.store.models import Turn

if TYPE_CHECKING:
    from hpmn.config import Settings
    from hpmn.llm.gateway import ModelGateway
    from hpmn.store.interfaces import RelationalStore

logger = logging.getLogger(__name__)

Exchange = tuple[ChatMessage, ChatMessage]

MAX_TITLE_LENGTH = 80


def as_messages(history: list[Exchange]) -> list[ChatMessage]:
    """Flatten (human, assistant) pairs into an alternating message list."""
    return [message for pair in history for message in pair]


class ConversationMemory:
    """Reads and writes conversation turns through the relational store."""

    def __init__(self, store: RelationalStore, gateway: ModelGateway, settings: Settings) -> None:
        self._store = store
        self._gateway = gateway
        self._settings = settings

    # -- Read ----------------------------------------------------------------

    async def history(self, conversation_id: str, limit: int | None = None) -> list[Exchange]:
        """Return up to *limit* most recent exchanges, oldest first.

        An unknown conversation, or a store failure, yields an empty list.
        """
        limit = self._settings.history_limit if limit is None else limit
        if limit <= 0:
            return []

        try:
            turns = await self._store.get_turns(conversation_id, limit)
        except Exception:
            logger.exception("Error retrieving history for conversation %s", conversation_id)
            return []

        if not turns:
            logger.info("No conversation history for %s", conversation_id)
            return []

        exchanges: list[Exchange] = []
        for turn in turns[-limit:]:
            if not turn.question or not turn.answer:
                logger.warning("Incomplete turn found in conversation %s", conversation_id)
                continue
            exchanges.append((ChatMessage.human(turn.question), ChatMessage.assistant(turn.answer)))
        return exchanges

    # -- Write ---------------------------------------------------------------

    async def persist(self, conversation_id: str, question: str, answer: str) -> Turn | None:
        """Save one exchange, titling the conversation on its first turn.

        Returns the stored turn, or None if saving failed.
        """
        try:
            first = await self._store.get_first_turn(conversation_id)
            if first is None:
                logger.info("Generating title for conversation %s", conversation_id)
                title = await self._generate_title(conversation_id, question, answer)
            else:
                title = first.title

            turn = await self._store.create_turn(
                Turn(
                    conversation_id=conversation_id,
                    question=question,
                    answer=answer,
                    title=title,
                )
            )
            logger.info("Saved turn under conversation %s", conversation_id)
            return turn
        except Exception:
            logger.exception("Failed to save turn for conversation %s", conversation_id)
            return None

    async def record(self, conversation_id: str, question: str, answer: str) -> None:
        """Turn-recorder hook called by the gateway when a streamed reply ends."""
        await self.persist(conversation_id, question, answer)

    async def purge_inactive(self, days: int | None = None) -> int:
        """Delete conversations idle for more than *days*. Returns turns deleted."""
        days = self._settings.inactive_days if days is None else days
        logger.debug("Looking for conversations inactive for more than %d days", days)
        try:
            deleted = await self._store.delete_inactive_conversations(days)
        except Exception:
            logger.exception("Error while deleting inactive conversations")
            return 0
        logger.info("Processed inactive conversations: %d turns deleted", deleted)
        return deleted

    # -- Helpers -------------------------------------------------------------

    async def _generate_title(self, conversation_id: str, question: str, answer: str) -> str:
        prompt = load_template("conversation_title").format()
        messages = [
            ChatMessage.system(prompt),
            ChatMessage.human(f"User: {question}\n\nAssistant: {answer}"),
        ]
        response = await self._gateway.complete(
            messages,
            ModelConfig(temperature=self._settings.reply_temperature, max_tokens=32),
            InteractionContext(conversation_id=conversation_id),
        )
        title = response.content.strip().strip("\"'").strip()
        logger.debug("Title generated: %s", title)
        return title[:MAX_TITLE_LENGTH]
