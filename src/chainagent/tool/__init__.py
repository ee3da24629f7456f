"""Tool system: interfaces, registry, repair pipeline and dispatch."""

from chainagent.tool.base import (
    BaseTool,
    FunctionTool,
    Preprocessor,
    Tool,
    ToolError,
    ToolOk,
    ToolResult,
)
from chainagent.tool.dispatcher import ActionConfirmation, ToolDispatcher
from chainagent.tool.pipeline import ArgumentPipeline, JSONAutoFixer
from chainagent.tool.registry import ToolRegistry
from chainagent.tool.truncation import truncate_output

__all__ = [
    "BaseTool",
    "FunctionTool",
    "Preprocessor",
    "Tool",
    "ToolError",
    "ToolOk",
    "ToolResult",
    "ActionConfirmation",
    "ToolDispatcher",
    "ArgumentPipeline",
    "JSONAutoFixer",
    "ToolRegistry",
    "truncate_output",
]
