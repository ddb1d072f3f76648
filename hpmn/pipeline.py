"""Request pipeline: one user message in, one assistant reply out.

    history -> classify -> embed -> (action | recall -> rerank) -> compose -> reply

Collaborator failures before the final reply are logged and turned into a
generic error ``Reply``; no internal error text reaches the user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from hpmn.conversation import as_messages
from hpmn.llm.gateway import InteractionContext, ModelConfig
from hpmn.llm.parsers import IntentKind
from hpmn.recall import collections_for
from hpmn.respond import ActionContext, MemoryContext, compose

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from hpmn.config import Settings
    from hpmn.conversation import ConversationMemory
    from hpmn.intent import IntentClassifier
    from hpmn.llm.gateway import ModelGateway
    from hpmn.llm.messages import ChatMessage
    from hpmn.llm.parsers import IntentResult
    from hpmn.recall import Recall
    from hpmn.rerank import Reranker
    from hpmn.skills.action import ActionOutcome, ActionRunner
    from hpmn.store.interfaces import EmbeddingService

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Sorry, something went wrong while handling that request. Please try again."


@dataclass
class Reply:
    status: Literal["ok", "error"]
    text: str
    intent: IntentResult | None = None
    action: ActionOutcome | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class Pipeline:
    """Routes a message to an action or to memory recall and answers it."""

    def __init__(
        self,
        *,
        memory: ConversationMemory,
        classifier: IntentClassifier,
        embeddings: EmbeddingService,
        recall: Recall,
        reranker: Reranker,
        actions: ActionRunner,
        gateway: ModelGateway,
        settings: Settings,
    ) -> None:
        self._memory = memory
        self._classifier = classifier
        self._embeddings = embeddings
        self._recall = recall
        self._reranker = reranker
        self._actions = actions
        self._gateway = gateway
        self._settings = settings

    async def handle(
        self,
        query: str,
        conversation_id: str,
        on_token: Callable[[str], Awaitable[None]] | None = None,
    ) -> Reply:
        """Answer *query* within *conversation_id*.

        When *on_token* is given, reply chunks are streamed to it as they
        arrive. The finished turn is saved under *conversation_id*.
        """
        history = as_messages(await self._memory.history(conversation_id))

        try:
            intent = await self._classifier.classify(query, history)
        except Exception:
            logger.exception("Intent classification failed")
            return Reply(status="error", text=GENERIC_ERROR)
        logger.info(
            "Intent: kind=%s category=%s summary=%r",
            intent.kind.name,
            intent.category.name,
            intent.summary,
        )

        try:
            embedding = await self._embeddings.embed(query)
        except Exception:
            logger.exception("Embedding the query failed")
            return Reply(status="error", text=GENERIC_ERROR, intent=intent)

        outcome: ActionOutcome | None = None
        context: ActionContext | MemoryContext | None
        if intent.kind is IntentKind.ACTION:
            outcome = await self._actions.perform(query, embedding, conversation_id)
            context = ActionContext(
                name=outcome.action, status=outcome.status, response=outcome.data
            )
        else:
            context = await self._memory_context(query, intent, embedding)

        try:
            text = await self._reply(query, history, context, conversation_id, on_token)
        except Exception:
            logger.exception("Reply generation failed")
            return Reply(status="error", text=GENERIC_ERROR, intent=intent, action=outcome)

        return Reply(status="ok", text=text, intent=intent, action=outcome)

    # -- Steps ---------------------------------------------------------------

    async def _memory_context(
        self,
        query: str,
        intent: IntentResult,
        embedding: list[float],
    ) -> MemoryContext | None:
        try:
            candidates = await self._recall.recall_many(
                collections_for(intent.category),
                embedding,
                self._settings.memory_recall_limit,
            )
        except Exception:
            logger.exception("Memory recall failed; answering without context")
            return None

        relevant = await self._reranker.rerank(query, candidates)
        if not relevant:
            return None
        return MemoryContext(memories=[record for record, _ in relevant])

    async def _reply(
        self,
        query: str,
        history: list[ChatMessage],
        context: ActionContext | MemoryContext | None,
        conversation_id: str,
        on_token: Callable[[str], Awaitable[None]] | None,
    ) -> str:
        messages = compose(query, history, context, timezone=self._settings.timezone)
        response = await self._gateway.complete(
            messages,
            ModelConfig(temperature=self._settings.reply_temperature, streaming=True),
            InteractionContext(conversation_id=conversation_id, on_token=on_token),
        )
        return response.content
