"""Buffer memory: the raw history, optionally capped to the newest messages."""

from __future__ import annotations

from chainagent.llm.message import ChatMessage, ChatPrompt


class BufferMemory:
    """Keeps every message, or only the newest ``max_history`` when set.

    ``max_history=0`` means unbounded. A cap drops the oldest messages
    first, which includes the task prompt once the conversation is long
    enough.
    """

    def __init__(self, max_history: int = 0) -> None:
        self.max_history = max_history
        self.buffer: list[ChatMessage] = []

    async def add(self, message: ChatMessage) -> None:
        self.buffer.append(message)
        self._reduce()

    async def add_prompt(self, prompt: ChatPrompt) -> None:
        self.buffer.extend(prompt.history)
        self._reduce()

    async def prompt_with_context(self, *messages: ChatMessage) -> ChatPrompt:
        self.buffer.extend(messages)
        self._reduce()
        return ChatPrompt(history=list(self.buffer))

    def _reduce(self) -> None:
        if self.max_history > 0 and len(self.buffer) > self.max_history:
            del self.buffer[: len(self.buffer) - self.max_history]
