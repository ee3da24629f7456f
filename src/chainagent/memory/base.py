"""Memory interface: owns the conversation history sent to the model."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from chainagent.llm.message import ChatMessage, ChatPrompt


@runtime_checkable
class Memory(Protocol):
    """Assembles prompts from history.

    Implementations mutate themselves in place, so one instance must not be
    shared by concurrent runs without external synchronization.
    """

    async def add(self, message: ChatMessage) -> None:
        """Record one message (typically the model's reply)."""
        ...

    async def add_prompt(self, prompt: ChatPrompt) -> None:
        """Record the initial task prompt."""
        ...

    async def prompt_with_context(self, *messages: ChatMessage) -> ChatPrompt:
        """Record ``messages`` and return the prompt for the next model call."""
        ...
