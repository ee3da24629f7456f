"""Message types for the LLM abstraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["system", "user", "assistant", "function"]


@dataclass(frozen=True)
class FunctionCall:
    """A native function call emitted by the model."""

    name: str
    arguments: str = ""  # JSON string
    id: str = ""


@dataclass
class ChatMessage:
    """One role-tagged message of a conversation.

    ``function`` messages answer a native function call: ``name`` is the
    tool that ran and ``tool_call_id`` the call slot they answer.
    """

    role: Role
    text: str = ""
    function_call: FunctionCall | None = None
    name: str = ""
    tool_call_id: str = ""

    # --- Convenience constructors ---

    @classmethod
    def system(cls, text: str) -> ChatMessage:
        return cls(role="system", text=text)

    @classmethod
    def user(cls, text: str) -> ChatMessage:
        return cls(role="user", text=text)

    @classmethod
    def assistant(
        cls, text: str = "", function_call: FunctionCall | None = None
    ) -> ChatMessage:
        return cls(role="assistant", text=text, function_call=function_call)

    @classmethod
    def function(cls, name: str, text: str, tool_call_id: str = "") -> ChatMessage:
        return cls(role="function", text=text, name=name, tool_call_id=tool_call_id)

    def to_openai_dict(self) -> dict[str, Any]:
        """Convert to OpenAI chat-completions format.

        Function results are sent as ``tool`` messages when the call id is
        known, which is what current chat-completion APIs expect.
        """
        if self.role == "function":
            if self.tool_call_id:
                return {
                    "role": "tool",
                    "tool_call_id": self.tool_call_id,
                    "content": self.text,
                }
            return {"role": "function", "name": self.name, "content": self.text}

        if self.role == "assistant" and self.function_call is not None:
            call = self.function_call
            return {
                "role": "assistant",
                "content": self.text or None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.arguments},
                    }
                ],
            }

        return {"role": self.role, "content": self.text}


@dataclass
class ChatPrompt:
    """An ordered conversation history sent to the backend."""

    history: list[ChatMessage] = field(default_factory=list)

    def to_openai_messages(self) -> list[dict[str, Any]]:
        return [m.to_openai_dict() for m in self.history]

    def __len__(self) -> int:
        return len(self.history)
