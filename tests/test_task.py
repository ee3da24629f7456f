"""Tests for chainagent.agent.task (prompt compilation, answer parsing, task files)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import BaseModel, ValidationError

from chainagent.agent.task import (
    Example,
    Task,
    encode_value,
    json_schema_of,
    render_tool_catalog,
)
from chainagent.llm.message import ChatMessage
from chainagent.protocol import Action, Observation, Thought
from chainagent.tool.base import FunctionTool


class Question(BaseModel):
    text: str


class Verdict(BaseModel):
    correct: bool
    reason: str


def _tool(name: str, description: str = "does things") -> FunctionTool:
    return FunctionTool(name, description, '{"q": "the query"}', lambda args: "")


def _texts(messages: list[ChatMessage]) -> list[str]:
    return [m.text for m in messages]


# ---------------------------------------------------------------------------
# compile
# ---------------------------------------------------------------------------


class TestCompile:
    def test_layout_without_tools_or_examples(self) -> None:
        task: Task[str, str] = Task(description="Say hello.")
        history = task.compile("Bob").history

        assert [m.role for m in history] == ["system", "system", "user"]
        intro = history[0].text
        assert "Task description: Say hello." in intro
        assert '{"type": "string"}' in intro
        assert "THT" in intro and "ANS" in intro and "<END>" in intro
        assert history[-1] == ChatMessage.user("Bob")

    def test_is_deterministic(self) -> None:
        task: Task[Question, Verdict] = Task(
            description="Judge the question.",
            output_type=Verdict,
            examples=[
                Example(
                    input=Question(text="2+2=4?"),
                    steps=[Thought("easy")],
                    answer=Verdict(correct=True, reason="arithmetic"),
                )
            ],
        )
        tools = [_tool("calc"), _tool("search")]
        first = task.compile(Question(text="1+1=3?"), tools)
        second = task.compile(Question(text="1+1=3?"), tools)
        assert first == second

    def test_schemas_are_embedded(self) -> None:
        task: Task[Question, Verdict] = Task(description="Judge.", output_type=Verdict)
        intro = task.compile(Question(text="q")).history[0].text
        assert json_schema_of(Question) in intro
        assert json_schema_of(Verdict) in intro

    def test_explicit_schemas_win(self) -> None:
        task: Task[str, str] = Task(
            description="d", input_schema="INPUT-SCHEMA", output_schema="OUTPUT-SCHEMA"
        )
        intro = task.compile("x").history[0].text
        assert "INPUT-SCHEMA" in intro
        assert "OUTPUT-SCHEMA" in intro

    def test_structured_input_is_json(self) -> None:
        task: Task[Question, str] = Task(description="d")
        assert task.compile(Question(text="hi")).history[-1].text == '{"text":"hi"}'

    def test_tool_catalog_in_registration_order(self) -> None:
        task: Task[str, str] = Task(description="d")
        history = task.compile("x", [_tool("zeta", "last letter"), _tool("alpha")]).history
        catalog = history[1].text
        assert 'zeta({"q": "the query"}) # last letter' in catalog
        assert catalog.index("zeta(") < catalog.index("alpha(")

    def test_examples_rendered_in_order(self) -> None:
        task: Task[str, str] = Task(
            description="Count letters.",
            examples=[
                Example(
                    input="abc",
                    steps=[
                        Thought("count them"),
                        Action("count", '{"s": "abc"}'),
                        Observation("3"),
                    ],
                    answer="3",
                ),
                Example(input="", answer="0"),
            ],
        )
        texts = _texts(task.compile("hello").history)
        start = texts.index("Here are some examples of how you might solve this task:")
        assert texts[start + 1 : start + 8] == [
            "abc",
            "THT: count them<END>",
            'ACT: count({"s": "abc"})<END>',
            "OBS: 3<END>",
            "ANS: 3<END>",
            "",
            "ANS: 0<END>",
        ]

    def test_raw_message_steps(self) -> None:
        task: Task[str, str] = Task(
            description="d",
            examples=[Example(input="in", steps=[ChatMessage.user("hint")], answer="out")],
        )
        assert "hint" in _texts(task.compile("x").history)

    def test_no_example_header_without_examples(self) -> None:
        texts = _texts(Task(description="d").compile("x").history)
        assert not any("Here are some examples" in t for t in texts)


def test_render_tool_catalog_mentions_protocol() -> None:
    catalog = render_tool_catalog([_tool("calc")])
    assert "ACT: tool_name(args)<END>" in catalog
    assert "OBS: " in catalog and "ERR: " in catalog


def test_encode_value() -> None:
    assert encode_value("plain") == "plain"
    assert json.loads(encode_value({"a": [1, 2]})) == {"a": [1, 2]}


# ---------------------------------------------------------------------------
# parse_answer
# ---------------------------------------------------------------------------


class TestParseAnswer:
    def test_defaults_to_raw_text(self) -> None:
        assert Task(description="d").parse_answer("  42 ") == "  42 "

    def test_output_type_validates_json(self) -> None:
        task: Task[str, Verdict] = Task(description="d", output_type=Verdict)
        assert task.parse_answer('{"correct": false, "reason": "no"}') == Verdict(
            correct=False, reason="no"
        )
        with pytest.raises(ValidationError):
            task.parse_answer("not json")

    def test_custom_parser(self) -> None:
        task: Task[str, int] = Task(description="d", answer_parser=int)
        assert task.parse_answer("7") == 7


# ---------------------------------------------------------------------------
# from_markdown
# ---------------------------------------------------------------------------


class TestFromMarkdown:
    def test_frontmatter_examples(self, tmp_path: Path) -> None:
        path = tmp_path / "task.md"
        path.write_text(
            "---\n"
            "examples:\n"
            '  - input: "What is 2 + 2?"\n'
            "    steps:\n"
            '      - "THT: Simple arithmetic.<END>"\n'
            '    answer: "4"\n'
            "---\n"
            "\n"
            "Answer arithmetic questions.\n"
        )
        task = Task.from_markdown(str(path))
        assert task.description == "Answer arithmetic questions."
        assert task.examples == [
            Example(input="What is 2 + 2?", steps=[Thought("Simple arithmetic.")], answer="4")
        ]

    def test_plain_markdown(self, tmp_path: Path) -> None:
        path = tmp_path / "task.md"
        path.write_text("Just do it.\n")
        task = Task.from_markdown(str(path))
        assert task.description == "Just do it."
        assert task.examples == []

    def test_frontmatter_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "task.md"
        path.write_text("---\n- a\n- b\n---\nbody\n")
        with pytest.raises(ValueError, match="mapping"):
            Task.from_markdown(str(path))
