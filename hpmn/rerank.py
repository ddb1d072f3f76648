"""Relevance filter: the model confirms or rejects each recalled candidate.

Accurate but expensive: one model call per candidate. Callers bound the
candidate count through the recall limit.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from hpmn.llm.gateway import ModelConfig
from hpmn.llm.messages import ChatMessage
from hpmn.llm.templates import load_template

if TYPE_CHECKING:
    from hpmn.config import Settings
    from hpmn.llm.gateway import ModelGateway
    from hpmn.recall import Candidate
    from hpmn.store.models import CandidateRecord

logger = logging.getLogger(__name__)

UNTITLED = "Unnamed Document"


class Verdict(Enum):
    KEEP = "1"
    REJECT = "0"


def decode_verdict(text: str) -> Verdict | None:
    """Map trimmed model output to a verdict; None when it is neither token."""
    stripped = text.strip()
    for verdict in Verdict:
        if stripped == verdict.value:
            return verdict
    return None


@dataclass(frozen=True)
class RelevanceVerdict:
    candidate_id: str
    keep: bool
    vector_score: float


def render_document(record: CandidateRecord) -> str:
    """Title, content and tags of a candidate as injected into the prompt."""
    title = record.title or UNTITLED
    tags = ", ".join(record.tags)
    return f'Title: "{title}"\n\nContent:\n"{record.content}"\n\nTags:\n"{tags}"'


class Reranker:
    """Runs one relevance check per candidate, concurrently."""

    def __init__(self, gateway: ModelGateway, settings: Settings) -> None:
        self._gateway = gateway
        self._settings = settings

    async def rerank(self, query: str, candidates: list[Candidate]) -> list[Candidate]:
        """Keep the candidates the model judges relevant, in their original order."""
        if not candidates:
            return []

        logger.info("Starting semantic reranking of %d candidates", len(candidates))
        verdicts = await self.evaluate(query, candidates)
        kept = [
            candidate
            for candidate, verdict in zip(candidates, verdicts, strict=True)
            if verdict.keep
        ]

        titles = ", ".join(f'"{record.title}"' for record, _ in kept)
        logger.info("Semantic relevance check passed for: %s", titles or "(none)")
        return kept

    async def evaluate(self, query: str, candidates: list[Candidate]) -> list[RelevanceVerdict]:
        """One verdict per candidate, aligned with the input order."""
        return list(
            await asyncio.gather(
                *(self._check(query, record, score) for record, score in candidates)
            )
        )

    async def _check(self, query: str, record: CandidateRecord, score: float) -> RelevanceVerdict:
        """Judge one candidate. Any failure or unrecognised answer rejects it."""
        title = record.title or UNTITLED
        logger.debug("Vector search scored %s (%s) at %.4f", title, record.id, score)

        try:
            prompt = load_template("semantic_relevance").format(
                query=query, document=render_document(record)
            )
            response = await self._gateway.complete(
                [ChatMessage.system(prompt)],
                ModelConfig(temperature=self._settings.rerank_temperature, max_tokens=5),
            )
        except Exception:
            logger.warning(
                "Relevance check failed for %s (%s); rejecting", title, record.id, exc_info=True
            )
            return RelevanceVerdict(candidate_id=record.id, keep=False, vector_score=score)

        verdict = decode_verdict(response.content)
        if verdict is None:
            logger.warning(
                "Invalid relevance response for %s: %r, defaulting to reject",
                title,
                response.content[:50],
            )
            verdict = Verdict.REJECT

        logger.info("Candidate %s (%s) relevance: %s", title, record.id, verdict.value)
        return RelevanceVerdict(
            candidate_id=record.id, keep=verdict is Verdict.KEEP, vector_score=score
        )
