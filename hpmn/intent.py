"""Intent classification: query or action, and which knowledge it needs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from hpmn.llm.gateway import ModelConfig
from hpmn.llm.messages import transcript
from hpmn.llm.parsers import IntentResult, StructuredOutput

if TYPE_CHECKING:
    from collections.abc import Sequence

    from hpmn.config import Settings
    from hpmn.llm.gateway import ModelGateway
    from hpmn.llm.messages import ChatMessage

logger = logging.getLogger(__name__)


class IntentClassifier:
    def __init__(self, gateway: ModelGateway, settings: Settings) -> None:
        self._gateway = gateway
        self._settings = settings

    async def classify(self, query: str, history: Sequence[ChatMessage] = ()) -> IntentResult:
        """Label the query. Errors propagate: there is no default intent."""
        result = await self._gateway.parse(
            StructuredOutput(
                model=IntentResult,
                template="intent_recognition",
                variables={"query": query, "conversation": transcript(history)},
            ),
            ModelConfig(temperature=self._settings.classifier_temperature),
        )
        logger.info(
            "Intent recognised: type=%s, category=%s, summary=%r",
            result.kind.name,
            result.category.name,
            result.summary,
        )
        return result
