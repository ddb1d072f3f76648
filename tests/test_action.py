"""Tests for ActionRunner: bootstrap, selection and webhook execution."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from hpmn.errors import NotFoundError, RemoteCallError
from hpmn.llm.parsers import ActionSelection, StructuredOutput
from hpmn.recall import Recall
from hpmn.skills.action import (
    ACTION_NOT_FOUND,
    NO_ACTION_SELECTED,
    NO_CONTEXT,
    REMOTE_ACTION_FAILED,
    ActionOutcome,
    ActionRunner,
    find_action,
)
from hpmn.skills.defaults import DEFAULT_ACTIONS, MANAGE_INVENTORY_SHOPPING
from hpmn.store.models import Action, ActionSchema, Memory

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def workflow() -> MagicMock:
    client = MagicMock()
    client.call = AsyncMock(return_value={"ok": True, "items": ["milk"]})
    return client


@pytest.fixture
def recall(vectors, store, embeddings) -> Recall:
    return Recall(vectors, store, embeddings)


@pytest.fixture
def runner(store, recall, gateway, workflow, settings) -> ActionRunner:
    return ActionRunner(store, recall, gateway, workflow, settings)


def _select(action: str | None, **params) -> ActionSelection:
    return ActionSelection(
        action_name=action, confidence=0.9, reasoning="fits", extracted_parameters=params
    )


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------


async def test_defaults_registered_once_under_concurrency(runner, store, vectors) -> None:
    store.get_actions = AsyncMock(wraps=store.get_actions)

    await asyncio.gather(*(runner.ensure_defaults() for _ in range(5)))

    assert store.get_actions.await_count == 1
    assert sorted(store.actions) == sorted(d.id for d in DEFAULT_ACTIONS)
    assert sorted(vectors.points["actions"]) == sorted(d.id for d in DEFAULT_ACTIONS)


async def test_custom_actions_do_not_block_defaults(runner, store) -> None:
    custom = await runner.add_action(
        ActionSchema(name="custom"), "https://hooks.test/c", synced=True
    )

    await runner.ensure_defaults()

    assert sorted(store.actions) == sorted([custom.id, *(d.id for d in DEFAULT_ACTIONS)])


async def test_bootstrap_skipped_when_defaults_stored(runner, store, vectors) -> None:
    for default in DEFAULT_ACTIONS:
        await runner.add_action(default.schema, default.webhook, action_id=default.id, synced=True)

    await runner.ensure_defaults()

    assert "actions" not in vectors.points


async def test_partial_bootstrap_completed_on_next_call(runner, store, vectors) -> None:
    upsert = vectors.upsert
    calls = 0

    async def flaky_upsert(*args, **kwargs):
        nonlocal calls
        calls += 1
        if calls == 2:
            msg = "index unavailable"
            raise RuntimeError(msg)
        await upsert(*args, **kwargs)

    vectors.upsert = flaky_upsert

    await runner.ensure_defaults()
    assert list(store.actions) == [DEFAULT_ACTIONS[0].id]
    assert list(vectors.points["actions"]) == [DEFAULT_ACTIONS[0].id]

    await runner.ensure_defaults()
    default_ids = sorted(d.id for d in DEFAULT_ACTIONS)
    assert sorted(store.actions) == default_ids
    assert sorted(vectors.points["actions"]) == default_ids


async def test_bootstrap_failure_swallowed_and_retried(runner, store) -> None:
    store.get_actions = AsyncMock(side_effect=[RuntimeError("db down"), []])

    await runner.ensure_defaults()
    assert store.actions == {}

    await runner.ensure_defaults()
    assert len(store.actions) == len(DEFAULT_ACTIONS)


async def test_add_action_indexes_name_and_description(runner, store, vectors) -> None:
    schema = ActionSchema(name="water_plants", description="Turn on the garden sprinkler")

    action = await runner.add_action(schema, "/webhook/water", tags=["garden"])

    assert store.actions[action.id].definition == schema
    _, payload = vectors.points["actions"][action.id]
    assert payload == {
        "content": "water_plants: Turn on the garden sprinkler",
        "title": "water_plants",
        "tags": ["garden"],
        "url": "/webhook/water",
    }


async def test_add_action_synced_not_indexed(runner, vectors) -> None:
    await runner.add_action(ActionSchema(name="x"), "/x", synced=True)
    assert "actions" not in vectors.points


# ---------------------------------------------------------------------------
# perform
# ---------------------------------------------------------------------------


async def test_no_candidates_skips_selection(runner, store, gateway, workflow) -> None:
    runner._bootstrapped = True

    outcome = await runner.perform("add milk", [1.0, 0.0, 0.0], "c1")

    assert outcome == ActionOutcome(action="Unknown", data=ACTION_NOT_FOUND, status="error")
    gateway.parse.assert_not_called()
    workflow.call.assert_not_called()


async def test_selects_and_calls_webhook(runner, gateway, workflow) -> None:
    gateway.parse.return_value = _select("manage_inventory_shopping", chatInput="add milk")

    outcome = await runner.perform("Add milk to my shopping list", [1.0, 0.0, 0.0], "c1")

    assert outcome.ok
    assert outcome.status == 200
    assert outcome.action == "manage_inventory_shopping"
    assert outcome.data == {"ok": True, "items": ["milk"]}
    workflow.call.assert_awaited_once_with(
        MANAGE_INVENTORY_SHOPPING.webhook,
        method="GET",
        params={
            "query": "Add milk to my shopping list",
            "conversationId": "c1",
            "chatInput": "add milk",
        },
    )


async def test_selection_prompt_lists_candidates(runner, gateway, settings) -> None:
    gateway.parse.return_value = _select(None)

    await runner.perform("hello", [1.0, 0.0, 0.0], "c1")

    structured, config = gateway.parse.call_args.args
    assert isinstance(structured, StructuredOutput)
    assert structured.template == "action_selection"
    for default in DEFAULT_ACTIONS:
        assert f"- {default.schema.name}: " in structured.variables["available_actions"]
    assert structured.variables["context"] == NO_CONTEXT
    assert structured.variables["query"] == "hello"
    assert config.temperature == settings.classifier_temperature


async def test_context_memories_passed_to_selection(runner, gateway) -> None:
    gateway.parse.return_value = _select(None)
    context = [(Memory(id="m1", title="Shop", content="User shops at Lidl"), 0.8)]

    await runner.perform("buy eggs", [1.0, 0.0, 0.0], "c1", context=context)

    structured, _ = gateway.parse.call_args.args
    assert structured.variables["context"] == "User shops at Lidl"


async def test_no_selection(runner, gateway, workflow) -> None:
    gateway.parse.return_value = _select(None)

    outcome = await runner.perform("hello", [1.0, 0.0, 0.0], "c1")

    assert outcome.status == "error"
    assert outcome.data == NO_ACTION_SELECTED
    workflow.call.assert_not_called()


async def test_unknown_name_not_executed(runner, gateway, workflow) -> None:
    gateway.parse.return_value = _select("launch_rocket")

    outcome = await runner.perform("launch", [1.0, 0.0, 0.0], "c1")

    assert outcome == ActionOutcome(action="Unknown", data=ACTION_NOT_FOUND, status="error")
    workflow.call.assert_not_called()


async def test_selection_failure(runner, gateway, workflow) -> None:
    gateway.parse.side_effect = RuntimeError("model down")

    outcome = await runner.perform("add milk", [1.0, 0.0, 0.0], "c1")

    assert outcome.data == NO_ACTION_SELECTED
    workflow.call.assert_not_called()


async def test_webhook_failure(runner, gateway, workflow) -> None:
    gateway.parse.return_value = _select("memorise", name="Bike code", content="1234")
    workflow.call.side_effect = RemoteCallError("Workflow call failed with status: 500")

    outcome = await runner.perform("remember my bike code is 1234", [1.0, 0.0, 0.0], "c1")

    assert outcome == ActionOutcome(action="memorise", data=REMOTE_ACTION_FAILED, status="error")
    assert not outcome.ok


async def test_recall_failure(runner, vectors, gateway) -> None:
    runner._bootstrapped = True
    vectors.search = AsyncMock(side_effect=RuntimeError("index down"))

    outcome = await runner.perform("add milk", [1.0], "c1")

    assert outcome.data == ACTION_NOT_FOUND
    gateway.parse.assert_not_called()


async def test_inactive_action_not_offered(runner, store, gateway) -> None:
    await runner.ensure_defaults()
    for action in store.actions.values():
        action.active = False

    outcome = await runner.perform("add milk", [1.0, 0.0, 0.0], "c1")

    assert outcome.data == ACTION_NOT_FOUND
    gateway.parse.assert_not_called()


async def test_shopping_list_scenario(runner, gateway, workflow) -> None:
    await runner.add_action(
        ActionSchema(name="shopping_list_add", description="Add an item to the shopping list"),
        "https://flows.test/webhook/shopping",
        tags=["shopping"],
    )
    gateway.parse.return_value = _select("shopping_list_add", item="milk")

    outcome = await runner.perform("remind me to buy milk", [1.0, 0.0, 0.0], "c1")

    assert outcome.status == 200
    assert outcome.action == "shopping_list_add"
    workflow.call.assert_awaited_once()
    assert workflow.call.call_args.kwargs["params"]["item"] == "milk"


def test_find_action_by_name() -> None:
    schema = ActionSchema(name="shopping_list_add")
    shopping = Action(id="a1", name=schema.name, definition=schema, url="/s")
    assert find_action([shopping], "shopping_list_add") is shopping
    with pytest.raises(NotFoundError, match="order_pizza"):
        find_action([shopping], "order_pizza")
