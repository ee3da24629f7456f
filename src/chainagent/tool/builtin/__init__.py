"""Built-in general-purpose tools."""

from chainagent.tool.builtin.ask_user import AskUserTool
from chainagent.tool.builtin.key_value_store import KeyValueStore
from chainagent.tool.builtin.shell import ShellTool

__all__ = [
    "AskUserTool",
    "KeyValueStore",
    "ShellTool",
]
