"""Summarised memory: an LLM-maintained rolling memory state.

Instead of the full history the prompt carries:

1. the original task prompt, verbatim;
2. a system message with the current *memory state*, a compact summary the
   model rewrites after every new message;
3. the last few messages, verbatim.

Every ``add`` costs one model call.
"""

from __future__ import annotations

import logging

from chainagent.llm.message import ChatMessage, ChatPrompt
from chainagent.llm.provider import ChatProvider

logger = logging.getLogger(__name__)

EMPTY_STATE = "<memory state is empty>"
MEMORY_STATE_PREFIX = "Memory state:\n\n"

SUMMARY_SYSTEM = """\
You are a smart memory manager. The user sends you two or more messages: \
one with the current memory state, and the rest with new messages sent to \
their conversation with a smart, LLM based agent. Update the memory state \
to reflect the new messages' content.

Rules:
- Keep the memory state as compact as possible while still giving the agent \
everything it needs to complete its task.
- Record the actions the agent has taken and their results.
- Record the agent's intentions and its plan.
- Do not include any other text in your response.
"""

# Worked example: (memory state, new message, updated state)
SUMMARY_EXAMPLE = (
    "The agent is trying to find the derivative of f(x)=ln(x) in order to find "
    "the maximum of the function. It already tried a web search, but the "
    "results were not helpful.",
    "Role: assistant\nContent: THT: I should use the calculator tool to find "
    "the derivative.<END>",
    "The agent is trying to find the derivative of f(x)=ln(x) in order to find "
    "the maximum of the function. It already tried a web search, but the "
    "results were not helpful. It has now decided to use the calculator tool.",
)


class SummarisedMemory:
    """Memory that summarises everything but the most recent messages."""

    def __init__(self, recent_message_limit: int, provider: ChatProvider) -> None:
        self.recent_message_limit = recent_message_limit
        self._provider = provider
        self.recent_messages: list[ChatMessage] = []
        self.original_prompt = ChatPrompt()
        self.memory_state = ""

    async def add(self, message: ChatMessage) -> None:
        self.recent_messages.append(message)
        self._reduce()
        await self._update_memory_state(message)

    async def add_prompt(self, prompt: ChatPrompt) -> None:
        self.original_prompt = prompt

    async def prompt_with_context(self, *messages: ChatMessage) -> ChatPrompt:
        self.recent_messages.extend(messages)
        return ChatPrompt(
            history=[
                *self.original_prompt.history,
                ChatMessage.system(MEMORY_STATE_PREFIX + (self.memory_state or EMPTY_STATE)),
                *self.recent_messages,
            ]
        )

    def _reduce(self) -> None:
        limit = self.recent_message_limit
        if limit > 0 and len(self.recent_messages) > limit:
            del self.recent_messages[: len(self.recent_messages) - limit]

    async def _update_memory_state(self, *messages: ChatMessage) -> None:
        example_state, example_message, example_update = SUMMARY_EXAMPLE
        history = [
            ChatMessage.system(SUMMARY_SYSTEM),
            ChatMessage.user(MEMORY_STATE_PREFIX + example_state),
            ChatMessage.user(example_message),
            ChatMessage.assistant(example_update),
            ChatMessage.user(
                "These were examples. Now my current memory state is:\n\n"
                + (self.memory_state or EMPTY_STATE)
            ),
        ]
        for m in messages:
            history.append(
                ChatMessage.user(f"New message:\n\nRole: {m.role}\nContent: {m.text}")
            )

        response = await self._provider.chat(ChatPrompt(history=history))
        self.memory_state = response.text
        logger.debug("Updated memory state: %s", self.memory_state)
