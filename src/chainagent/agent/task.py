"""Task definition and prompt compilation.

A ``Task`` is the declarative half of an agent: what to do, how the answer
looks, and a few worked examples. ``Task.compile`` turns it plus a concrete
input into the initial conversation. Compilation is deterministic: the same
task, input and tools always yield the same prompt.

Tasks can also be loaded from markdown files with YAML frontmatter:

    ---
    examples:
      - input: "What is 2 + 2?"
        steps:
          - "THT: Simple arithmetic, no tools needed.<END>"
        answer: "4"
    ---

    Answer arithmetic questions.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar, Union

from pydantic import TypeAdapter

from chainagent.llm.message import ChatMessage, ChatPrompt
from chainagent.protocol import (
    ACTION_CODE,
    ANSWER_CODE,
    END_MARKER,
    ERROR_CODE,
    OBSERVATION_CODE,
    THOUGHT_CODE,
    Answer,
    Operation,
    ProtocolCodec,
    TextProtocolCodec,
)
from chainagent.tool.base import Tool

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")

AnswerParser = Callable[[str], OutputT]
Step = Union[Operation, ChatMessage]


@dataclass
class Example(Generic[InputT, OutputT]):
    """A worked example: input, the protocol messages leading up, the answer."""

    input: InputT
    answer: OutputT
    steps: list[Step] = field(default_factory=list)


@dataclass
class Task(Generic[InputT, OutputT]):
    """What the agent must accomplish.

    Attributes:
        description: Natural-language task description.
        answer_parser: Turns the raw ``ANS`` content into an output, raising
            on malformed answers. Defaults to validating JSON against
            ``output_type``, or returning the raw text.
        examples: Worked examples shown to the model.
        output_type: Type of the answer, used for the answer schema and the
            default parser.
        input_schema: Explicit input schema text; inferred from the input's
            type when not given.
        output_schema: Explicit answer schema text; inferred from
            ``output_type`` when not given.
    """

    description: str
    answer_parser: AnswerParser[OutputT] | None = None
    examples: list[Example[InputT, OutputT]] = field(default_factory=list)
    output_type: Any = None
    input_schema: str | None = None
    output_schema: str | None = None

    def parse_answer(self, text: str) -> OutputT:
        if self.answer_parser is not None:
            return self.answer_parser(text)
        if self.output_type is not None and self.output_type is not str:
            return TypeAdapter(self.output_type).validate_json(text)
        return text  # type: ignore[return-value]

    def compile(
        self,
        input_value: InputT,
        tools: Sequence[Tool] = (),
        codec: ProtocolCodec | None = None,
    ) -> ChatPrompt:
        """Build the initial conversation for ``input_value``.

        Args:
            input_value: The concrete input.
            tools: Tools to list in the textual catalog, in order. Tools
                offered as native functions should be left out.
            codec: Encodes the example steps and answers.
        """
        codec = codec or TextProtocolCodec()
        input_schema = self.input_schema or json_schema_of(type(input_value))

        intro = (
            "You are a smart, autonomous agent given the task below. "
            "You will be given input from the user in the following format "
            f"(provided as a JSON schema): {input_schema}. "
            "Complete the task step-by-step, reasoning about your solution steps "
            f"by sending a message beginning with `{THOUGHT_CODE}: `. "
            f"End every operation with `{END_MARKER}`; one message may contain "
            f"several operations. When you have the final answer, send it in a "
            f"message beginning with `{ANSWER_CODE}: `"
        )
        output_schema = self.output_schema
        if output_schema is None and self.output_type is not None:
            output_schema = json_schema_of(self.output_type)
        if output_schema:
            intro += f", in the following format (JSON schema): {output_schema}"
        intro += f".\n\nTask description: {self.description}"

        history = [ChatMessage.system(intro)]
        if tools:
            history.append(ChatMessage.system(render_tool_catalog(tools)))
        history.extend(self._render_examples(codec))
        history.append(
            ChatMessage.system(
                "Now, you will be given the input. It's very important that every "
                f"operation you send begins with either `{THOUGHT_CODE}: `, "
                f"`{ACTION_CODE}: `, or `{ANSWER_CODE}: ` and ends with "
                f"`{END_MARKER}`, as was explained to you."
            )
        )
        history.append(ChatMessage.user(encode_value(input_value)))
        return ChatPrompt(history=history)

    def _render_examples(self, codec: ProtocolCodec) -> list[ChatMessage]:
        if not self.examples:
            return []
        messages = [
            ChatMessage.system("Here are some examples of how you might solve this task:")
        ]
        for example in self.examples:
            messages.append(ChatMessage.user(encode_value(example.input)))
            for step in example.steps:
                if isinstance(step, ChatMessage):
                    messages.append(step)
                else:
                    messages.append(codec.encode(step))
            messages.append(codec.encode(Answer(encode_value(example.answer))))
        return messages

    @classmethod
    def from_markdown(
        cls,
        path: str,
        answer_parser: AnswerParser[Any] | None = None,
        codec: ProtocolCodec | None = None,
    ) -> Task[str, Any]:
        """Load a string-input task from a markdown file with YAML frontmatter."""
        with open(path, "r") as f:
            content = f.read()

        config, body = _parse_frontmatter(content)
        codec = codec or TextProtocolCodec()
        examples = []
        for raw in config.get("examples") or []:
            steps: list[Step] = []
            for text in raw.get("steps") or []:
                steps.extend(codec.decode(text))
            examples.append(
                Example(input=raw.get("input", ""), answer=raw.get("answer", ""), steps=steps)
            )
        return cls(
            description=config.get("description") or body.strip(),
            answer_parser=answer_parser,
            examples=examples,
        )


def render_tool_catalog(tools: Sequence[Tool]) -> str:
    entries = "\n".join(
        f"{tool.name}({tool.args_schema()}) # {tool.description}" for tool in tools
    )
    return (
        "Here are some tools you can use. To use a tool, send a message in the "
        f"form of `{ACTION_CODE}: tool_name(args){END_MARKER}`, where `args` is a "
        "valid JSON representation of the arguments to the tool, as specified "
        "for it. You will get the output in a message beginning with "
        f"`{OBSERVATION_CODE}: `, or an error message beginning with "
        f"`{ERROR_CODE}: `.\n\nTools:\n{entries}"
    )


def json_schema_of(tp: Any) -> str:
    """JSON schema of a type, as compact deterministic text."""
    schema = TypeAdapter(tp).json_schema()
    return json.dumps(schema, sort_keys=True)


def encode_value(value: Any) -> str:
    """How a value is shown to the model: strings as-is, anything else as JSON."""
    if isinstance(value, str):
        return value
    return TypeAdapter(type(value)).dump_json(value).decode("utf-8")


def _parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Parse YAML frontmatter from markdown content.

    Returns (config_dict, body_text).
    """
    import yaml  # only needed when loading task files

    pattern = re.compile(r"^---\s*\n(.*?)\n---\s*\n(.*)", re.DOTALL)
    match = pattern.match(content)

    if not match:
        return {}, content

    config = yaml.safe_load(match.group(1)) or {}
    if not isinstance(config, dict):
        raise ValueError("task frontmatter must be a YAML mapping")
    return config, match.group(2)
