"""Final-answer prompt assembly."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from hpmn.config import settings
from hpmn.llm.messages import ChatMessage
from hpmn.llm.templates import load_template

if TYPE_CHECKING:
    from collections.abc import Sequence

    from hpmn.store.models import CandidateRecord

logger = logging.getLogger(__name__)

FINAL_ANSWER_TEMPLATE = "assistant_final_answer"


def current_date(timezone: str | None = None, now: datetime | None = None) -> str:
    """Format *now* as ``Weekday, MM/DD/YYYY HH:MM`` in the configured timezone."""
    tz = ZoneInfo(timezone or settings.timezone)
    moment = now.astimezone(tz) if now else datetime.now(tz)
    return moment.strftime("%A, %m/%d/%Y %H:%M")


# -- Context blocks ----------------------------------------------------------


@dataclass(frozen=True)
class ActionContext:
    """What an action did, shown to the model verbatim."""

    name: str
    status: int | str
    response: Any

    def render(self) -> str:
        response = self.response
        if not isinstance(response, str):
            response = json.dumps(response, ensure_ascii=False, default=str)
        return (
            f"Action Name: {self.name}\n"
            f"Action Status: {self.status}\n"
            f"Action Response: {response}"
        )


@dataclass(frozen=True)
class MemoryContext:
    memories: list[CandidateRecord] = field(default_factory=list)

    def render(self) -> str:
        return "\n\n".join(_render_memory(record) for record in self.memories)


def _render_memory(record: CandidateRecord) -> str:
    lines = [f"MEMORY TITLE: {record.title}"]
    extra = getattr(record, "context", "")
    if extra:
        lines.append(f"CONTEXT: {extra}")
    if record.tags:
        lines.append(f"TAGS: {', '.join(record.tags)}")
    lines.append(f'CONTENTS:\n"""\n{record.content}\n"""')
    return "\n".join(lines)


# -- Prompt ------------------------------------------------------------------


def build_system_prompt(
    query: str,
    context: ActionContext | MemoryContext | None = None,
    now: datetime | None = None,
    timezone: str | None = None,
) -> str:
    """Render the final-answer system prompt around one optional context block."""
    template = load_template(FINAL_ANSWER_TEMPLATE)
    return template.format(
        time=current_date(timezone, now=now),
        context=context.render() if context else "",
        question=query,
    )


def compose(
    query: str,
    history: Sequence[ChatMessage],
    context: ActionContext | MemoryContext | None = None,
    timezone: str | None = None,
) -> list[ChatMessage]:
    """System prompt, then prior turns oldest first, then the user's query."""
    return [
        ChatMessage.system(build_system_prompt(query, context, timezone=timezone)),
        *history,
        ChatMessage.human(query),
    ]
