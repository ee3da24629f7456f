"""Sub-agent delegation tool.

Lets an agent hand a self-contained sub-task to a fresh ``ChainAgent`` with
its own short buffer memory and a subset of tools.
"""

from __future__ import annotations

import json
import logging
from typing import ClassVar

from pydantic import BaseModel, Field

from chainagent.agent.agent import AgentConfig, ChainAgent
from chainagent.agent.task import Task
from chainagent.llm.provider import ChatProvider
from chainagent.memory import BufferMemory
from chainagent.tool.base import BaseTool, Tool, ToolError, ToolOk, ToolResult

logger = logging.getLogger(__name__)

SUB_AGENT_MEMORY = 10


class DelegateParams(BaseModel):
    task: str = Field(
        description="a description of the task you want to give the agent, "
        "including helpful examples."
    )
    input: str = Field(description="the specific input on which the agent should act.")


class AgentTool(BaseTool[DelegateParams]):
    """Delegates a sub-task to a freshly built agent."""

    name: ClassVar[str] = "smart_agent"
    description = "A smart agent you can delegate tasks to. Use for relatively larger tasks."
    param_model: ClassVar[type[BaseModel]] = DelegateParams

    def __init__(
        self,
        provider: ChatProvider,
        tools: list[Tool] | None = None,
        max_solution_attempts: int = 0,
    ) -> None:
        self._provider = provider
        self._tools = list(tools or [])
        self._max_solution_attempts = max_solution_attempts
        if self._tools:
            names = ", ".join(t.name for t in self._tools)
            self.description = (
                f"{type(self).description} The agent will have access to "
                f"the following tools: {names}."
            )

    async def run(self, params: DelegateParams) -> ToolResult:
        task: Task[str, str] = Task(description=params.task)
        agent = ChainAgent(
            self._provider,
            task,
            AgentConfig(
                tools=self._tools,
                max_solution_attempts=self._max_solution_attempts,
                memory_factory=lambda: BufferMemory(SUB_AGENT_MEMORY),
            ),
        )
        logger.info("Delegating to sub-agent: %s", params.task[:200])
        try:
            output = await agent.run(params.input)
        except Exception as e:
            return ToolError(output=f"error running agent: {e}")
        return ToolOk(output=json.dumps(output))
