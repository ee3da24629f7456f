"""Tests for chainagent.memory (buffer and summarised memories)."""

from __future__ import annotations

import pytest

from chainagent.llm.message import ChatMessage, ChatPrompt
from chainagent.memory import BufferMemory, Memory, SummarisedMemory
from chainagent.memory.summarised import EMPTY_STATE, MEMORY_STATE_PREFIX


class SummaryProvider:
    """Returns numbered summaries and records what it was asked to summarise."""

    def __init__(self) -> None:
        self.prompts: list[ChatPrompt] = []

    async def chat(self, prompt: ChatPrompt) -> ChatMessage:
        self.prompts.append(prompt)
        return ChatMessage.assistant(f"summary {len(self.prompts)}")


def _prompt(*texts: str) -> ChatPrompt:
    return ChatPrompt(history=[ChatMessage.user(t) for t in texts])


# ---------------------------------------------------------------------------
# BufferMemory
# ---------------------------------------------------------------------------


class TestBufferMemory:
    async def test_unbounded_keeps_everything(self) -> None:
        memory = BufferMemory()
        await memory.add_prompt(_prompt("task", "input"))
        await memory.add(ChatMessage.assistant("THT: hmm<END>"))
        prompt = await memory.prompt_with_context(ChatMessage.system("OBS: 1<END>"))
        assert [m.text for m in prompt.history] == [
            "task",
            "input",
            "THT: hmm<END>",
            "OBS: 1<END>",
        ]

    async def test_caps_to_newest_messages(self) -> None:
        memory = BufferMemory(max_history=2)
        await memory.add_prompt(_prompt("a", "b", "c"))
        await memory.add(ChatMessage.user("d"))
        prompt = await memory.prompt_with_context(ChatMessage.user("e"))
        assert [m.text for m in prompt.history] == ["d", "e"]

    async def test_prompt_is_a_copy(self) -> None:
        memory = BufferMemory()
        prompt = await memory.prompt_with_context(ChatMessage.user("a"))
        prompt.history.append(ChatMessage.user("b"))
        assert len(memory.buffer) == 1

    async def test_empty_context(self) -> None:
        memory = BufferMemory()
        await memory.add_prompt(_prompt("a"))
        assert len(await memory.prompt_with_context()) == 1

    def test_satisfies_protocol(self) -> None:
        assert isinstance(BufferMemory(), Memory)


# ---------------------------------------------------------------------------
# SummarisedMemory
# ---------------------------------------------------------------------------


class TestSummarisedMemory:
    async def test_prompt_layout(self) -> None:
        provider = SummaryProvider()
        memory = SummarisedMemory(recent_message_limit=2, provider=provider)
        await memory.add_prompt(_prompt("task"))
        await memory.add(ChatMessage.assistant("THT: first<END>"))

        prompt = await memory.prompt_with_context(ChatMessage.system("OBS: x<END>"))
        assert [m.text for m in prompt.history] == [
            "task",
            MEMORY_STATE_PREFIX + "summary 1",
            "THT: first<END>",
            "OBS: x<END>",
        ]

    async def test_empty_state_placeholder(self) -> None:
        memory = SummarisedMemory(recent_message_limit=2, provider=SummaryProvider())
        await memory.add_prompt(_prompt("task"))
        prompt = await memory.prompt_with_context()
        assert prompt.history[1].text == MEMORY_STATE_PREFIX + EMPTY_STATE

    async def test_every_add_updates_state(self) -> None:
        provider = SummaryProvider()
        memory = SummarisedMemory(recent_message_limit=5, provider=provider)
        await memory.add(ChatMessage.assistant("one"))
        await memory.add(ChatMessage.assistant("two"))
        assert memory.memory_state == "summary 2"
        assert len(provider.prompts) == 2
        last = provider.prompts[-1].history
        assert "summary 1" in last[-2].text
        assert last[-1].text == "New message:\n\nRole: assistant\nContent: two"

    async def test_recent_messages_are_capped(self) -> None:
        memory = SummarisedMemory(recent_message_limit=2, provider=SummaryProvider())
        for text in ("a", "b", "c"):
            await memory.add(ChatMessage.assistant(text))
        assert [m.text for m in memory.recent_messages] == ["b", "c"]

    async def test_provider_failure_propagates(self) -> None:
        class Broken:
            async def chat(self, prompt: ChatPrompt) -> ChatMessage:
                raise ConnectionError("offline")

        memory = SummarisedMemory(recent_message_limit=2, provider=Broken())
        with pytest.raises(ConnectionError):
            await memory.add(ChatMessage.assistant("x"))
