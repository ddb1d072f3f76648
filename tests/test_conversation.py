"""Tests for ConversationMemory: history rebuild and turn persistence."""

from unittest.mock import AsyncMock

from hpmn.conversation import ConversationMemory, as_messages
from hpmn.llm.gateway import ChatResponse
from hpmn.llm.messages import ChatMessage, Role
from hpmn.store.models import Turn


def _turn(question: str, answer: str, conversation_id: str = "c1", title: str = "Dinner") -> Turn:
    return Turn(conversation_id=conversation_id, question=question, answer=answer, title=title)


# -- history -------------------------------------------------------------------


async def test_history_oldest_first(store, gateway, settings) -> None:
    store.turns = [_turn("q1", "a1"), _turn("q2", "a2"), _turn("other", "x", "c2")]
    memory = ConversationMemory(store, gateway, settings)

    history = await memory.history("c1")

    assert [(h.content, a.content) for h, a in history] == [("q1", "a1"), ("q2", "a2")]
    assert history[0][0].role is Role.HUMAN
    assert history[0][1].role is Role.ASSISTANT


async def test_history_respects_limit(store, gateway, settings) -> None:
    store.turns = [_turn(f"q{i}", f"a{i}") for i in range(5)]
    memory = ConversationMemory(store, gateway, settings)

    history = await memory.history("c1", limit=2)

    assert [h.content for h, _ in history] == ["q3", "q4"]


async def test_history_unknown_conversation(store, gateway, settings) -> None:
    memory = ConversationMemory(store, gateway, settings)
    assert await memory.history("missing") == []


async def test_history_skips_incomplete_turns(store, gateway, settings) -> None:
    store.turns = [_turn("q1", ""), _turn("q2", "a2")]
    memory = ConversationMemory(store, gateway, settings)

    history = await memory.history("c1")

    assert len(history) == 1
    assert history[0][0].content == "q2"


async def test_history_store_failure_is_empty(store, gateway, settings) -> None:
    store.get_turns = AsyncMock(side_effect=RuntimeError("db down"))
    memory = ConversationMemory(store, gateway, settings)
    assert await memory.history("c1") == []


def test_as_messages_flattens_pairs() -> None:
    pairs = [(ChatMessage.human("q1"), ChatMessage.assistant("a1"))]
    assert [m.content for m in as_messages(pairs)] == ["q1", "a1"]


# -- persist -------------------------------------------------------------------


async def test_first_turn_generates_title(store, gateway, settings) -> None:
    gateway.complete.return_value = ChatResponse(content='"Weekend dinner plans"')
    memory = ConversationMemory(store, gateway, settings)

    turn = await memory.persist("c1", "What's for dinner?", "Pasta.")

    assert turn is not None
    assert turn.title == "Weekend dinner plans"
    gateway.complete.assert_awaited_once()
    messages = gateway.complete.call_args.args[0]
    assert messages[0].role is Role.SYSTEM
    assert "User: What's for dinner?" in messages[1].content
    assert store.turns == [turn]


async def test_later_turns_reuse_title(store, gateway, settings) -> None:
    store.turns = [_turn("q1", "a1", title="Dinner")]
    memory = ConversationMemory(store, gateway, settings)

    turn = await memory.persist("c1", "And tomorrow?", "Soup.")

    assert turn.title == "Dinner"
    gateway.complete.assert_not_called()
    assert len(store.turns) == 2


async def test_title_generation_failure_swallowed(store, gateway, settings) -> None:
    gateway.complete.side_effect = RuntimeError("model down")
    memory = ConversationMemory(store, gateway, settings)

    assert await memory.persist("c1", "q", "a") is None
    assert store.turns == []


async def test_record_persists(store, gateway, settings) -> None:
    memory = ConversationMemory(store, gateway, settings)
    await memory.record("c1", "q", "a")
    assert len(store.turns) == 1


# -- purge_inactive ------------------------------------------------------------


async def test_purge_uses_default_days(store, gateway, settings) -> None:
    store.delete_inactive_conversations = AsyncMock(return_value=3)
    memory = ConversationMemory(store, gateway, settings)

    assert await memory.purge_inactive() == 3
    store.delete_inactive_conversations.assert_awaited_once_with(15)


async def test_purge_failure_returns_zero(store, gateway, settings) -> None:
    store.delete_inactive_conversations = AsyncMock(side_effect=RuntimeError("locked"))
    memory = ConversationMemory(store, gateway, settings)
    assert await memory.purge_inactive(1) == 0
