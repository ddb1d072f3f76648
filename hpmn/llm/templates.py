"""Markdown prompt templates with ``{{variable}}`` placeholders."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from hpmn.errors import ConfigurationError

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


@dataclass(frozen=True)
class PromptTemplate:
    """A loaded template. Variable names are matched case-insensitively."""

    name: str
    text: str

    @property
    def variables(self) -> set[str]:
        return {match.lower() for match in _PLACEHOLDER.findall(self.text)}

    def format(self, **values: Any) -> str:
        """Substitute every placeholder in a single pass.

        Raises ConfigurationError when a placeholder has no value.
        """
        lookup = {key.lower(): "" if value is None else str(value) for key, value in values.items()}
        missing = self.variables - lookup.keys()
        if missing:
            msg = f"Template '{self.name}' is missing variables: {', '.join(sorted(missing))}"
            raise ConfigurationError(msg)
        return _PLACEHOLDER.sub(lambda m: lookup[m.group(1).lower()], self.text)


def load_template(name: str, prompts_dir: Path | None = None) -> PromptTemplate:
    """Read ``<name>.md`` from the prompts directory."""
    path = (prompts_dir or PROMPTS_DIR) / f"{name}.md"
    logger.debug("Loading prompt template from %s", path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Could not load prompt template: {name}.md"
        raise ConfigurationError(msg) from exc
    return PromptTemplate(name=name, text=text)
