"""Tests for markdown prompt templates."""

from pathlib import Path

import pytest

from hpmn.errors import ConfigurationError
from hpmn.llm.templates import PROMPTS_DIR, PromptTemplate, load_template


def test_variables_are_case_insensitive() -> None:
    t = PromptTemplate(name="t", text="Hi {{Name}}, {{ FORMAT_INSTRUCTIONS }}")
    assert t.variables == {"name", "format_instructions"}


def test_format_substitutes_all_placeholders() -> None:
    t = PromptTemplate(name="t", text="Q: {{query}} / {{QUERY}} / {{ctx}}")
    assert t.format(Query="tea", ctx=None) == "Q: tea / tea / "


def test_format_single_pass() -> None:
    """A value containing placeholder syntax is not expanded again."""
    t = PromptTemplate(name="t", text="{{a}} {{b}}")
    assert t.format(a="{{b}}", b="x") == "{{b}} x"


def test_format_missing_variable_raises() -> None:
    t = PromptTemplate(name="t", text="{{query}} {{context}}")
    with pytest.raises(ConfigurationError, match="context"):
        t.format(query="hi")


def test_load_missing_template(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="nope.md"):
        load_template("nope", prompts_dir=tmp_path)


def test_load_from_custom_dir(tmp_path: Path) -> None:
    (tmp_path / "greet.md").write_text("Hello {{who}}", encoding="utf-8")
    assert load_template("greet", prompts_dir=tmp_path).format(who="you") == "Hello you"


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("intent_recognition", {"conversation", "query", "format_instructions"}),
        (
            "action_selection",
            {"available_actions", "context", "current_time", "query", "format_instructions"},
        ),
        ("semantic_relevance", {"query", "document"}),
        ("assistant_final_answer", {"time", "context", "question"}),
        ("conversation_title", set()),
    ],
)
def test_bundled_templates(name: str, expected: set[str]) -> None:
    assert (PROMPTS_DIR / f"{name}.md").exists()
    assert load_template(name).variables == expected
