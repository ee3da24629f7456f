"""Tool interfaces and base classes.

A tool is anything that satisfies the ``Tool`` protocol. Optional
capabilities are separate protocols checked with ``isinstance``, e.g. a tool
that is also a ``Preprocessor`` gets to rewrite every action's arguments
before they reach any tool.
"""

from __future__ import annotations

import inspect
import json
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Generic, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ValidationError

from chainagent.errors import ToolExecutionError

T = TypeVar("T", bound=BaseModel)


@runtime_checkable
class Tool(Protocol):
    """A capability the agent can invoke mid-conversation."""

    name: str
    description: str

    def args_schema(self) -> str:
        """A 'fuzzy schema' of the arguments, as JSON.

        This is documentation for the model, not a strict validator.
        """
        ...

    async def execute(self, args: str) -> str:
        """Run the tool on JSON arguments. Raise to report a failure."""
        ...

    def compact_args(self, args: str) -> str:
        """A memory-friendly version of ``args`` (e.g. large values redacted)."""
        ...


@runtime_checkable
class Preprocessor(Protocol):
    """Rewrites raw action arguments before any tool sees them."""

    async def process(self, args: str) -> str: ...


@dataclass
class ToolResult:
    """Base result from a tool execution."""

    output: str = ""
    is_error: bool = False


@dataclass
class ToolOk(ToolResult):
    """Successful tool result."""

    is_error: bool = False


@dataclass
class ToolError(ToolResult):
    """Failed tool result."""

    is_error: bool = True


class BaseTool(ABC, Generic[T]):
    """Base class for tools with a Pydantic parameter model.

    The fuzzy schema shown to the model is derived from the field
    descriptions, so the model sees the same documentation the code uses.

    Usage:
        class EchoParams(BaseModel):
            text: str = Field(description="the text to echo back")

        class EchoTool(BaseTool[EchoParams]):
            name = "echo"
            description = "Echo text back"
            param_model = EchoParams

            async def run(self, params: EchoParams) -> ToolResult:
                return ToolOk(output=params.text)
    """

    name: ClassVar[str]
    description: ClassVar[str]
    param_model: ClassVar[type[BaseModel]]

    async def execute(self, args: str) -> str:
        """Validate arguments, run, and unwrap the result.

        Raises:
            ToolExecutionError: Invalid parameters, or the tool returned a
                ``ToolError``.
        """
        try:
            params = self.param_model.model_validate_json(args or "{}")
        except ValidationError as e:
            raise ToolExecutionError(f"invalid parameters: {e}") from e

        result = await self.run(params)  # type: ignore[arg-type]
        if result.is_error:
            raise ToolExecutionError(result.output)
        return result.output

    @abstractmethod
    async def run(self, params: T) -> ToolResult:
        """Run the tool with validated parameters."""
        ...

    def args_schema(self) -> str:
        fuzzy: dict[str, Any] = {}
        for field_name, info in self.param_model.model_fields.items():
            if info.description:
                fuzzy[field_name] = info.description
            else:
                annotation = getattr(info.annotation, "__name__", str(info.annotation))
                fuzzy[field_name] = f"a {annotation}"
        return json.dumps(fuzzy)

    def compact_args(self, args: str) -> str:
        return args


ToolHandler = Callable[[str], "str | Awaitable[str]"]


class FunctionTool:
    """A tool built from a plain function taking raw JSON arguments.

    The handler may be sync or async and should raise on failure.
    """

    def __init__(
        self,
        name: str,
        description: str,
        args_schema: str,
        handler: ToolHandler,
        compact: Callable[[str], str] | None = None,
    ) -> None:
        self.name = name
        self.description = description
        self._args_schema = args_schema
        self._handler = handler
        self._compact = compact

    def args_schema(self) -> str:
        return self._args_schema

    async def execute(self, args: str) -> str:
        result = self._handler(args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def compact_args(self, args: str) -> str:
        if self._compact is None:
            return args
        return self._compact(args)

    def __repr__(self) -> str:
        return f"FunctionTool(name={self.name!r})"
