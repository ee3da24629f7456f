"""chainagent: LLM agents that think, act through tools, and answer."""

from chainagent.agent import AgentConfig, ChainAgent, Example, Task

__version__ = "0.1.0"

__all__ = [
    "AgentConfig",
    "ChainAgent",
    "Example",
    "Task",
    "__version__",
]
