"""Tests for chainagent.tool.pipeline (JSON auto-fixer, argument pipeline)."""

from __future__ import annotations

import pytest

from chainagent.errors import MaxRetriesExceeded, ProviderError
from chainagent.llm.message import ChatMessage, ChatPrompt
from chainagent.tool.pipeline import (
    ArgumentPipeline,
    JSONAutoFixer,
    extract_fenced_json,
    is_valid_json,
)


class ScriptedProvider:
    """Replies with canned texts, in order, and records every prompt."""

    def __init__(self, *replies: str | Exception) -> None:
        self.replies = list(replies)
        self.prompts: list[ChatPrompt] = []

    async def chat(self, prompt: ChatPrompt) -> ChatMessage:
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return ChatMessage.assistant(reply)


class Suffix:
    def __init__(self, suffix: str) -> None:
        self.suffix = suffix

    async def process(self, args: str) -> str:
        return args + self.suffix


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_is_valid_json(self) -> None:
        assert is_valid_json('{"a": 1}')
        assert is_valid_json("[]")
        assert not is_valid_json('{"a": 1')
        assert not is_valid_json("")

    def test_extract_fenced_json(self) -> None:
        assert extract_fenced_json('Here:\n```json\n{"a": 1}\n```\n') == '{"a": 1}'

    def test_extract_plain_fence(self) -> None:
        assert extract_fenced_json('```\n[1, 2]\n```') == "[1, 2]"

    def test_extract_without_fence(self) -> None:
        assert extract_fenced_json('{"a": 1}') == '{"a": 1}'


# ---------------------------------------------------------------------------
# JSONAutoFixer
# ---------------------------------------------------------------------------


class TestJSONAutoFixer:
    async def test_valid_json_passes_through_without_model_call(self) -> None:
        provider = ScriptedProvider()
        fixer = JSONAutoFixer(provider)
        assert await fixer.process('{"a": 1}') == '{"a": 1}'
        assert provider.prompts == []

    async def test_repairs_on_first_try(self) -> None:
        provider = ScriptedProvider('{"name": "John \\"Doe"}')
        fixer = JSONAutoFixer(provider)
        assert await fixer.process('{"name": "John "Doe"}') == '{"name": "John \\"Doe"}'
        assert len(provider.prompts) == 1

    async def test_prompt_ends_with_broken_payload(self) -> None:
        provider = ScriptedProvider("{}")
        await JSONAutoFixer(provider).process("{broken")
        history = provider.prompts[0].history
        assert history[0].role == "system"
        assert history[-1] == ChatMessage.user("{broken")

    async def test_accepts_fenced_reply(self) -> None:
        provider = ScriptedProvider('Sure!\n```json\n{"a": 1}\n```')
        assert await JSONAutoFixer(provider).process("{a: 1}") == '{"a": 1}'

    async def test_retries_until_valid(self) -> None:
        provider = ScriptedProvider("still broken", '{"a": 1}')
        fixer = JSONAutoFixer(provider, max_retries=3)
        assert await fixer.process("{a: 1}") == '{"a": 1}'
        assert len(provider.prompts) == 2

    async def test_max_retries_exceeded(self) -> None:
        provider = ScriptedProvider("nope", "nope", "nope")
        fixer = JSONAutoFixer(provider, max_retries=3)
        with pytest.raises(MaxRetriesExceeded) as exc_info:
            await fixer.process("{a: 1}")
        assert len(exc_info.value.failures) == 3
        assert "max retries exceeded" in str(exc_info.value)
        assert len(provider.prompts) == 3

    async def test_provider_failure_is_distinguishable(self) -> None:
        provider = ScriptedProvider(ConnectionError("offline"))
        with pytest.raises(ProviderError, match="offline"):
            await JSONAutoFixer(provider).process("{a: 1}")


# ---------------------------------------------------------------------------
# ArgumentPipeline
# ---------------------------------------------------------------------------


class TestArgumentPipeline:
    async def test_empty_pipeline_is_identity(self) -> None:
        assert await ArgumentPipeline().process("raw") == "raw"

    async def test_runs_in_order(self) -> None:
        pipeline = ArgumentPipeline([Suffix("a"), Suffix("b")])
        assert await pipeline.process("x") == "xab"
        assert len(pipeline) == 2

    async def test_error_stops_pipeline(self) -> None:
        provider = ScriptedProvider("nope")
        pipeline = ArgumentPipeline([JSONAutoFixer(provider, max_retries=1), Suffix("!")])
        with pytest.raises(MaxRetriesExceeded):
            await pipeline.process("{bad")
