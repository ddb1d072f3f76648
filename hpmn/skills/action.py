"""Action selection and execution.

One request moves through bootstrap -> retrieve -> describe -> select ->
execute and stops at the first step that cannot continue. Every failure is
reported in the returned ``ActionOutcome``; nothing raises past
``ActionRunner.perform``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from hpmn.errors import NotFoundError
from hpmn.llm.gateway import ModelConfig
from hpmn.llm.parsers import ActionSelection, StructuredOutput
from hpmn.recall import Collection
from hpmn.respond import current_date
from hpmn.skills.defaults import DEFAULT_ACTIONS
from hpmn.store.models import Action, ActionSchema

if TYPE_CHECKING:
    from hpmn.config import Settings
    from hpmn.integrations.workflow import WorkflowClient
    from hpmn.llm.gateway import ModelGateway
    from hpmn.recall import Candidate, Recall
    from hpmn.store.interfaces import RelationalStore

logger = logging.getLogger(__name__)

UNKNOWN_ACTION = "Unknown"
ACTION_NOT_FOUND = "Action not found."
NO_ACTION_SELECTED = "Could not determine an action to take."
REMOTE_ACTION_FAILED = "Remote action failed."
NO_CONTEXT = "No relevant context memories found."


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one action attempt.

    ``status`` is ``200`` on success and ``"error"`` otherwise.
    """

    action: str
    data: Any
    status: int | str

    @property
    def ok(self) -> bool:
        return self.status == 200

    @classmethod
    def error(cls, data: str, action: str = UNKNOWN_ACTION) -> ActionOutcome:
        return cls(action=action, data=data, status="error")


def find_action(candidates: list[Action], name: str) -> Action:
    """Return the candidate called *name*; NotFoundError when none matches."""
    for action in candidates:
        if action.name == name:
            return action
    msg = f"Action {name!r} is not among the candidates"
    raise NotFoundError(msg)


class ActionRunner:
    """Picks at most one action for a request and calls its webhook once."""

    def __init__(
        self,
        store: RelationalStore,
        recall: Recall,
        gateway: ModelGateway,
        workflow: WorkflowClient,
        settings: Settings,
    ) -> None:
        self._store = store
        self._recall = recall
        self._gateway = gateway
        self._workflow = workflow
        self._settings = settings
        self._bootstrap_lock = asyncio.Lock()
        self._bootstrapped = False

    # -- Pipeline ------------------------------------------------------------

    async def perform(
        self,
        query: str,
        embedding: list[float],
        conversation_id: str,
        context: list[Candidate] | None = None,
    ) -> ActionOutcome:
        await self.ensure_defaults()

        try:
            recalled = await self._recall.recall(
                Collection.ACTIONS, embedding, self._settings.action_recall_limit
            )
        except Exception:
            logger.exception("Action recall failed")
            return ActionOutcome.error(ACTION_NOT_FOUND)

        candidates = [record for record, _ in recalled if isinstance(record, Action)]
        if not candidates:
            logger.error("No actions found in vector store")
            return ActionOutcome.error(ACTION_NOT_FOUND)

        logger.info("Selecting action from: %s", ", ".join(a.name for a in candidates))
        selection = await self._select(query, candidates, context)

        if selection is None or not selection.action_name:
            logger.error("Model did not select an action")
            return ActionOutcome.error(NO_ACTION_SELECTED)

        try:
            action = find_action(candidates, selection.action_name)
        except NotFoundError:
            logger.error("Model chose action %r but it is not a candidate", selection.action_name)
            return ActionOutcome.error(ACTION_NOT_FOUND)

        logger.info(
            "Selected action %r with confidence %.2f. Reasoning: %s",
            action.name,
            selection.confidence,
            selection.reasoning,
        )
        return await self._execute(action, selection, query, conversation_id)

    # -- Bootstrap -----------------------------------------------------------

    async def ensure_defaults(self) -> None:
        """Register every default action that is not stored yet.

        Concurrent callers in this process wait on one lock and re-check;
        default ids are fixed and stores upsert by id, so separate processes
        racing here still end with one copy of each action. A partial run is
        finished on the next call.
        """
        if self._bootstrapped:
            return
        async with self._bootstrap_lock:
            if self._bootstrapped:
                return
            try:
                stored = {action.id for action in await self._store.get_actions()}
                missing = [d for d in DEFAULT_ACTIONS if d.id not in stored]
                if missing:
                    logger.info(
                        "Initialising %d of %d default actions...",
                        len(missing),
                        len(DEFAULT_ACTIONS),
                    )
                    for default in missing:
                        await self.add_action(
                            default.schema,
                            default.webhook,
                            tags=default.tags,
                            action_id=default.id,
                        )
                    logger.info("Default actions initialised")
                self._bootstrapped = True
            except Exception:
                logger.exception("Failed to initialise default actions")

    async def add_action(
        self,
        schema: ActionSchema,
        url: str,
        *,
        tags: list[str] | None = None,
        action_id: str | None = None,
        category: str = "default",
        synced: bool = False,
    ) -> Action:
        """Index an action for recall (unless *synced*) and then store it.

        The vector is written first, so every stored row is recallable.
        """
        action = Action(
            id=action_id or str(uuid.uuid4()),
            name=schema.name,
            definition=schema,
            url=url,
            tags=list(tags or []),
            category=category,
        )
        if not synced:
            await self._recall.index(
                Collection.ACTIONS,
                action.id,
                f"{action.name}: {schema.description}",
                action.name,
                {"tags": action.tags, "url": action.url},
            )
        return await self._store.create_action(action)

    # -- Steps ---------------------------------------------------------------

    async def _select(
        self,
        query: str,
        candidates: list[Action],
        context: list[Candidate] | None,
    ) -> ActionSelection | None:
        available = "\n".join(action.describe() for action in candidates)
        context_text = (
            "\n\n".join(record.content for record, _ in context) if context else NO_CONTEXT
        )
        logger.debug("Available actions:\n%s", available)

        try:
            return await self._gateway.parse(
                StructuredOutput(
                    model=ActionSelection,
                    template="action_selection",
                    variables={
                        "available_actions": available,
                        "context": context_text,
                        "current_time": current_date(self._settings.timezone),
                        "query": query,
                    },
                ),
                ModelConfig(temperature=self._settings.classifier_temperature),
            )
        except Exception:
            logger.exception("Action selection failed")
            return None

    async def _execute(
        self,
        action: Action,
        selection: ActionSelection,
        query: str,
        conversation_id: str,
    ) -> ActionOutcome:
        params = {
            "query": query,
            "conversationId": conversation_id,
            **selection.extracted_parameters,
        }
        try:
            response = await self._workflow.call(action.url, method="GET", params=params)
        except Exception:
            logger.exception("Action %r failed", action.name)
            return ActionOutcome.error(REMOTE_ACTION_FAILED, action=action.name)

        logger.info("Action %r executed successfully", action.name)
        return ActionOutcome(action=action.name, data=response, status=200)
