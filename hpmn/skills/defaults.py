"""Actions registered on first use when the action table is empty.

Parameter shapes are pydantic models; their JSON schema becomes the
action's ``parameters``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from hpmn.store.models import ActionSchema


class ActionParams(BaseModel):
    """Base class for action parameter models."""


class MemoriseParams(ActionParams):
    name: str = Field(
        description="Ultra-concise name / title for the memory. 1-4 words, its essence."
    )
    type: str = Field(default="memory", description="Always set as 'memory'.")
    content: str = Field(
        description=(
            "Carefully written content of the memory based on the user's query. Rewrite "
            "first person ('I', 'my') as the user ('User wants this') and 'you' addressed "
            "to the assistant as 'I'. When useful, end with a date in YYYY-MM-DD HH:mm format."
        )
    )
    tags: list[str] = Field(
        default_factory=list,
        description=(
            "Semantic tags and synonyms that enrich search. Add 'user' when the memory is "
            "about the user and 'assistant' when it is about the assistant."
        ),
    )
    source: str = Field(
        default="",
        description="Source the user mentioned (website url, book, article, video), if any.",
    )


class InventoryParams(ActionParams):
    sessionId: str = Field(  # noqa: N815
        description="Conversation session ID that keeps context across workflow calls"
    )
    chatInput: str = Field(  # noqa: N815
        description="The user's message about the items, inventory updates or questions"
    )


@dataclass(frozen=True)
class DefaultAction:
    id: str
    schema: ActionSchema
    webhook: str
    tags: list[str] = field(default_factory=list)


def _schema(name: str, description: str, params: type[ActionParams]) -> ActionSchema:
    return ActionSchema(name=name, description=description, parameters=params.model_json_schema())


MEMORISE = DefaultAction(
    id="7b0c6a52-0f3e-4d7e-9c1a-6d2f4e8b1a01",
    schema=_schema(
        "memorise",
        "Store information in long-term memory when the user explicitly asks the "
        "assistant to remember something.",
        MemoriseParams,
    ),
    webhook="/api/memorise",
    tags=["memorise", "memory", "remember", "skill"],
)

MANAGE_INVENTORY_MEDICAL = DefaultAction(
    id="7b0c6a52-0f3e-4d7e-9c1a-6d2f4e8b1a02",
    schema=_schema(
        "manage_inventory_medical",
        "Search, retrieve, update and create records for items whose primary purpose is "
        "health: prescription and over-the-counter medicines, vitamins and dietary "
        "supplements, and medical supplies such as bandages, test strips or contact lens "
        "solution. The item's purpose decides, not its form: 'Do I need more vitamin D?' "
        "and 'I only have two supplement tablets left' belong here.",
        InventoryParams,
    ),
    webhook="/webhook/inventory-medical",
    tags=["inventory", "medicine", "supplements", "health", "pharmacy"],
)

MANAGE_INVENTORY_SHOPPING = DefaultAction(
    id="7b0c6a52-0f3e-4d7e-9c1a-6d2f4e8b1a03",
    schema=_schema(
        "manage_inventory_shopping",
        "Search, retrieve, update and create records for groceries, household goods and "
        "other non-medical products, including the shopping list. Always use this action "
        "for price comparisons ('Where is milk cheapest?'). Examples: 'Add strawberries to "
        "my shopping list', 'Do I have any eggs left?', dish soap, cooking oil, light bulbs.",
        InventoryParams,
    ),
    webhook="/webhook/inventory-shopping",
    tags=["inventory", "shopping", "groceries", "household", "prices"],
)

DEFAULT_ACTIONS: tuple[DefaultAction, ...] = (
    MEMORISE,
    MANAGE_INVENTORY_MEDICAL,
    MANAGE_INVENTORY_SHOPPING,
)
