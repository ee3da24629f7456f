"""Runners that are not agents."""

from __future__ import annotations

from chainagent.llm.message import ChatMessage, ChatPrompt
from chainagent.llm.provider import ChatProvider


class LLMRunner:
    """Evaluates a bare backend: the input is a prompt, the output its reply."""

    def __init__(self, provider: ChatProvider) -> None:
        self.provider = provider

    async def run(self, input_value: ChatPrompt) -> ChatMessage:
        return await self.provider.chat(input_value)
