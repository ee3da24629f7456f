"""Tool registry: register, look up and describe tools."""

from __future__ import annotations

import logging

from chainagent.errors import SchemaConversionError, ToolNotFoundError
from chainagent.llm.functions import FunctionSpec, to_function_spec
from chainagent.tool.base import Preprocessor, Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of available tools.

    Tools keep their registration order, which is the order they are listed
    to the model and the order their preprocessing runs in.
    """

    def __init__(self, tools: list[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        if tools:
            self.register_many(tools)

    def register(self, tool: Tool) -> None:
        """Register a tool instance."""
        if tool.name in self._tools:
            logger.warning("Tool %s already registered, overwriting", tool.name)
        self._tools[tool.name] = tool

    def register_many(self, tools: list[Tool]) -> None:
        """Register multiple tools."""
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def resolve(self, name: str) -> Tool:
        """Get a tool by name, or raise ``ToolNotFoundError``."""
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name, self.names())
        return tool

    def names(self) -> list[str]:
        """Get all registered tool names."""
        return list(self._tools.keys())

    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def preprocessors(self) -> list[Preprocessor]:
        """Registered tools that also preprocess arguments, in order."""
        return [t for t in self._tools.values() if isinstance(t, Preprocessor)]

    def function_specs(self) -> dict[str, FunctionSpec]:
        """Best-effort native function specs, keyed by tool name.

        Tools whose fuzzy schema cannot be converted are left out; they stay
        usable through the textual ``ACT:`` convention.
        """
        specs: dict[str, FunctionSpec] = {}
        for tool in self._tools.values():
            try:
                specs[tool.name] = to_function_spec(tool)
            except SchemaConversionError as e:
                logger.info(
                    "Tool %s falls back to the text protocol: %s", tool.name, e
                )
        return specs

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
