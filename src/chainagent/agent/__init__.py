"""Agent system: task compilation, the agent loop, sub-agent delegation."""

from chainagent.agent.agent import AgentConfig, ChainAgent
from chainagent.agent.delegate import AgentTool
from chainagent.agent.task import Example, Task

__all__ = [
    "AgentConfig",
    "ChainAgent",
    "AgentTool",
    "Example",
    "Task",
]
