"""Wire protocol between the agent and the model.

The model talks in operations, each starting a line or following the
previous end marker::

    THT: I should look the file up first.<END>
    ACT: read_file({"path": "setup.py"})<END>

and gets results back as ``OBS: ...<END>`` or ``ERR: ...<END>``. It finishes
with ``ANS: ...<END>``. Several operations may share one reply; they are
decoded left to right.

Models often forget the end marker, so decoding falls back to a looser
pattern that takes everything after the code as content. A reply with no
operation at all is handled by ``UnstructuredReplyPolicy``.

Operations that carry a ``call_id`` belong to a native function call and are
encoded as structured messages instead of text. Only that form names the
source tool; ``OBS`` and ``ERR`` text lines carry the content alone, so
``source_tool`` does not survive a textual round trip.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import Protocol, Union, runtime_checkable

from chainagent.llm.message import ChatMessage, FunctionCall

logger = logging.getLogger(__name__)

THOUGHT_CODE = "THT"
ACTION_CODE = "ACT"
ANSWER_CODE = "ANS"
ERROR_CODE = "ERR"
OBSERVATION_CODE = "OBS"
END_MARKER = "<END>"

# Codes only count at the start of a line or right after a previous marker
_CODE_START = r"(?:^|(?<=" + re.escape(END_MARKER) + r"))[ \t]*(?P<code>[A-Z]{3}): "
_OPERATION_RE = re.compile(
    _CODE_START + r"(?P<content>[\s\S]*?)" + re.escape(END_MARKER), re.MULTILINE
)
_OPERATION_NO_END_RE = re.compile(_CODE_START + r"(?P<content>[\s\S]*)", re.MULTILINE)
_ACTION_RE = re.compile(r"^\s*(?P<tool>[^\s(]+)\s*\((?P<args>[\s\S]*)\)\s*$")


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Thought:
    content: str


@dataclass(frozen=True)
class Action:
    tool_name: str
    raw_args: str
    call_id: str = ""


@dataclass(frozen=True)
class Answer:
    raw_content: str


@dataclass(frozen=True)
class Observation:
    content: str
    source_tool: str = ""
    call_id: str = ""


@dataclass(frozen=True)
class Error:
    content: str
    source_tool: str = ""
    call_id: str = ""
    cancelled: bool = False  # Vetoed by the confirmation hook


Operation = Union[Thought, Action, Answer, Observation, Error]


class UnstructuredReplyPolicy(enum.Enum):
    """What to do with a reply that contains no operation at all."""

    THOUGHT = "thought"  # Treat the whole reply as a silent thought
    ERROR = "error"  # Answer with a format-violation error


@runtime_checkable
class ProtocolCodec(Protocol):
    """Encodes operations into messages and decodes model text into operations."""

    def encode(self, op: Operation) -> ChatMessage: ...

    def decode(self, text: str) -> list[Operation]: ...


# ---------------------------------------------------------------------------
# Text codec
# ---------------------------------------------------------------------------


class TextProtocolCodec:
    """The ``CODE: content<END>`` text protocol."""

    def __init__(
        self,
        unstructured: UnstructuredReplyPolicy = UnstructuredReplyPolicy.THOUGHT,
    ) -> None:
        self.unstructured = unstructured

    def encode(self, op: Operation) -> ChatMessage:
        if isinstance(op, Thought):
            return ChatMessage.assistant(format_operation(THOUGHT_CODE, op.content))
        if isinstance(op, Action):
            if op.call_id:
                return ChatMessage.assistant(
                    function_call=FunctionCall(
                        name=op.tool_name, arguments=op.raw_args, id=op.call_id
                    )
                )
            return ChatMessage.assistant(
                format_operation(ACTION_CODE, f"{op.tool_name}({op.raw_args})")
            )
        if isinstance(op, Answer):
            return ChatMessage.assistant(format_operation(ANSWER_CODE, op.raw_content))
        if isinstance(op, Observation):
            if op.call_id:
                return ChatMessage.function(op.source_tool, op.content, op.call_id)
            return ChatMessage.system(format_operation(OBSERVATION_CODE, op.content))
        if isinstance(op, Error):
            if op.call_id:
                return ChatMessage.function(
                    op.source_tool, format_operation(ERROR_CODE, op.content), op.call_id
                )
            return ChatMessage.system(format_operation(ERROR_CODE, op.content))
        raise TypeError(f"not an operation: {op!r}")

    def decode(self, text: str) -> list[Operation]:
        matches = list(_OPERATION_RE.finditer(text))
        # The last operation of a reply is the one most likely to lose its marker
        rest = text[matches[-1].end() :] if matches else text
        tail = _OPERATION_NO_END_RE.search(rest)
        if tail is not None:
            matches.append(tail)

        if not matches:
            if self.unstructured is UnstructuredReplyPolicy.ERROR:
                return [
                    Error(
                        "invalid response format: every message must contain "
                        f"operations of the form `CODE: content{END_MARKER}` where "
                        f"CODE is one of {THOUGHT_CODE}, {ACTION_CODE} or {ANSWER_CODE}"
                    )
                ]
            logger.debug("Reply has no operations, treating it as a thought")
            return [Thought(text.strip())]

        return [self._decode_one(m.group("code"), m.group("content")) for m in matches]

    def _decode_one(self, code: str, content: str) -> Operation:
        content = content.strip()
        if code == THOUGHT_CODE:
            return Thought(content)
        if code == ACTION_CODE:
            return parse_action(content)
        if code == ANSWER_CODE:
            return Answer(content)
        if code == OBSERVATION_CODE:
            return Observation(content)
        if code == ERROR_CODE:
            return Error(content)
        return Error(
            f"invalid operation code {code!r}: operations must begin with "
            f"`{THOUGHT_CODE}: `, `{ACTION_CODE}: ` or `{ANSWER_CODE}: `"
        )


def format_operation(code: str, content: str) -> str:
    return f"{code}: {content}{END_MARKER}"


def parse_action(content: str) -> Action | Error:
    """Parse ``tool_name(json_args)``. Malformed text becomes an ``Error``."""
    match = _ACTION_RE.match(content)
    if match is None:
        return Error(
            f"invalid action format: expected `{ACTION_CODE}: tool_name(json_args)"
            f"{END_MARKER}`, got {content!r}"
        )
    # `tool()` means no arguments
    raw_args = match.group("args").strip() or "{}"
    return Action(tool_name=match.group("tool"), raw_args=raw_args)
