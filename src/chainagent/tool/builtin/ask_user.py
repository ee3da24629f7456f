"""Ask-user tool: a human-in-the-loop question."""

from __future__ import annotations

import asyncio
import inspect
import json
from collections.abc import Awaitable
from typing import Callable, ClassVar, Union

from pydantic import BaseModel, Field

from chainagent.tool.base import BaseTool, ToolError, ToolOk, ToolResult

AskFunction = Callable[[str], Union[str, Awaitable[str]]]


class AskUserParams(BaseModel):
    question: str = Field(description="the question to ask the user")


class AskUserTool(BaseTool[AskUserParams]):
    """Asks the user a question and returns their answer.

    ``ask`` receives the question and returns the answer; it defaults to
    reading a line from stdin in a worker thread.
    """

    name: ClassVar[str] = "ask_user"
    description: ClassVar[str] = "A tool for asking the user a question."
    param_model: ClassVar[type[BaseModel]] = AskUserParams

    def __init__(self, ask: AskFunction | None = None) -> None:
        self._ask = ask or _ask_stdin

    async def run(self, params: AskUserParams) -> ToolResult:
        try:
            answer = self._ask(params.question)
            if inspect.isawaitable(answer):
                answer = await answer
        except EOFError:
            return ToolError(output="the user did not provide an answer")

        if not answer:
            return ToolError(output="the user did not provide an answer")
        return ToolOk(output=json.dumps({"answer": answer}))


async def _ask_stdin(question: str) -> str:
    return await asyncio.to_thread(input, f"{question}\n> ")
