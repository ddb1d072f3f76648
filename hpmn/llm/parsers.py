"""Structured-output shapes and JSON parsing for model responses."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hpmn.errors import OutputParseError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


# -- Shapes ------------------------------------------------------------------


class IntentKind(IntEnum):
    QUERY = 0
    ACTION = 1


class IntentCategory(IntEnum):
    MEMORY = 1
    NOTE = 2
    RESOURCE = 3
    ALL = 4


class IntentResult(BaseModel):
    """Whether the user asks for information or an action, and on what topic."""

    model_config = ConfigDict(populate_by_name=True)

    kind: IntentKind = Field(alias="type", description="0 = query, 1 = action")
    category: IntentCategory = Field(
        description="1 = memory, 2 = note, 3 = resource, 4 = all"
    )
    summary: str = Field(default="", description="One-sentence summary of the request")


class ActionSelection(BaseModel):
    """The model's choice of action and the parameters it extracted."""

    action_name: str | None = Field(
        default=None, description="Exact name of the chosen action, or null if none fits"
    )
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Confidence from 0 to 1")
    reasoning: str = Field(default="", description="Short justification of the choice")
    extracted_parameters: dict[str, Any] = Field(
        default_factory=dict, description="Parameters extracted from the query for the action"
    )


@dataclass
class StructuredOutput(Generic[T]):
    """Request for a schema-constrained response rendered from a template."""

    model: type[T]
    template: str
    variables: dict[str, Any] = field(default_factory=dict)


# -- Format instructions -----------------------------------------------------


def format_instructions(model: type[BaseModel]) -> str:
    """Describe the exact JSON shape the model must return."""
    schema = model.model_json_schema(by_alias=True)
    schema.pop("title", None)
    return (
        "The output must be a single JSON object that conforms to the JSON schema below.\n\n"
        'For example, for the schema {"properties": {"foo": {"type": "array", '
        '"items": {"type": "string"}}}, "required": ["foo"]} the object '
        '{"foo": ["bar", "baz"]} is well-formed, while {"properties": {"foo": '
        '["bar", "baz"]}} is not.\n\n'
        "Here is the output schema:\n"
        f"```\n{json.dumps(schema, indent=2)}\n```\n\n"
        "Return only the JSON object, with no commentary before or after it."
    )


# -- Parsing -----------------------------------------------------------------


def _extract_json(text: str) -> str:
    """Strip a markdown fence or surrounding prose around a JSON object."""
    stripped = text.strip()
    start = stripped.find("{")
    end = stripped.rfind("}") + 1
    if start >= 0 and end > start:
        return stripped[start:end]
    return stripped


def parse_structured(text: str, model: type[T]) -> T:
    """Parse model text into *model*, raising OutputParseError on any mismatch."""
    try:
        data = json.loads(_extract_json(text))
    except json.JSONDecodeError as exc:
        msg = f"Response is not valid JSON for {model.__name__}"
        raise OutputParseError(msg, raw=text) from exc

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        msg = f"Response does not match the {model.__name__} shape"
        raise OutputParseError(msg, raw=text) from exc
