"""Wiring: explicit collaborators in, a ready pipeline out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from hpmn.config import Settings
from hpmn.conversation import ConversationMemory
from hpmn.errors import ConfigurationError
from hpmn.integrations.workflow import WorkflowClient
from hpmn.intent import IntentClassifier
from hpmn.llm.gateway import ModelGateway
from hpmn.pipeline import Pipeline
from hpmn.recall import Recall
from hpmn.rerank import Reranker
from hpmn.skills.action import ActionRunner
from hpmn.store.embeddings import HttpEmbeddingService, OpenAIEmbeddingService
from hpmn.store.interfaces import EmbeddingService, RelationalStore, VectorIndex
from hpmn.store.qdrant import QdrantIndex
from hpmn.store.sqlite import SQLiteStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """The external collaborators one process talks to."""

    settings: Settings
    store: RelationalStore
    vectors: VectorIndex
    embeddings: EmbeddingService
    workflow: WorkflowClient | None = field(default=None)

    def __post_init__(self) -> None:
        checks = {
            "store": (self.store, RelationalStore),
            "vectors": (self.vectors, VectorIndex),
            "embeddings": (self.embeddings, EmbeddingService),
        }
        for name, (value, protocol) in checks.items():
            if value is None:
                msg = f"AppContext is missing its {name} collaborator"
                raise ConfigurationError(msg)
            if not isinstance(value, protocol):
                msg = f"AppContext.{name} does not implement {protocol.__name__}"
                raise ConfigurationError(msg)

        if self.workflow is None:
            self.workflow = WorkflowClient(
                base_url=self.settings.workflow_url,
                api_token=self.settings.workflow_api_token,
                timeout=self.settings.workflow_timeout,
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> AppContext:
        """Build the bundled adapters: SQLite, Qdrant and an embedding service."""
        embeddings: EmbeddingService
        if settings.embedding_url:
            embeddings = HttpEmbeddingService(settings.embedding_url, settings.embedding_token)
        elif settings.openai_api_key:
            embeddings = OpenAIEmbeddingService(settings.openai_api_key, settings.embedding_model)
        else:
            msg = "Set EMBEDDING_URL or OPENAI_API_KEY to enable embeddings"
            raise ConfigurationError(msg)

        return cls(
            settings=settings,
            store=SQLiteStore(settings.database_path),
            vectors=QdrantIndex(settings.vector_db_url, settings.vector_db_api_key),
            embeddings=embeddings,
        )


def build_pipeline(ctx: AppContext) -> Pipeline:
    """Wire every pipeline stage from *ctx*."""
    settings = ctx.settings
    gateway = ModelGateway(settings)
    memory = ConversationMemory(ctx.store, gateway, settings)
    # Streamed replies are saved through conversation memory.
    gateway.recorder = memory

    recall = Recall(ctx.vectors, ctx.store, ctx.embeddings)
    actions = ActionRunner(ctx.store, recall, gateway, ctx.workflow, settings)

    logger.info("Pipeline ready: provider=%s", settings.llm_provider)
    return Pipeline(
        memory=memory,
        classifier=IntentClassifier(gateway, settings),
        embeddings=ctx.embeddings,
        recall=recall,
        reranker=Reranker(gateway, settings),
        actions=actions,
        gateway=gateway,
        settings=settings,
    )
