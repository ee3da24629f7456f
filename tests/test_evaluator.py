"""Tests for chainagent.evaluation (repeated-run scoring)."""

from __future__ import annotations

import asyncio
import math

import pytest

from chainagent.agent import AgentConfig, ChainAgent, Task
from chainagent.evaluation import Evaluator, EvaluatorOptions, LLMRunner, Runner
from chainagent.llm.message import ChatMessage, ChatPrompt


class LengthProvider:
    """Replies with the first message of the prompt, so scores are deterministic."""

    def __init__(self) -> None:
        self.calls = 0

    async def chat(self, prompt: ChatPrompt) -> ChatMessage:
        self.calls += 1
        await asyncio.sleep(0)
        return ChatMessage.assistant(prompt.history[0].text)


class FlakyRunner:
    """Fails every other call for each input, starting with the first."""

    def __init__(self) -> None:
        self.counts: dict[str, int] = {}

    async def run(self, input_value: str) -> str:
        self.counts[input_value] = self.counts.get(input_value, 0) + 1
        await asyncio.sleep(0)
        if self.counts[input_value] % 2 == 1:
            raise RuntimeError("flaky")
        return input_value


class GatheringRunner:
    """Only completes once `expected` runs are in flight at the same time."""

    def __init__(self, expected: int) -> None:
        self.expected = expected
        self.started = 0
        self.all_started = asyncio.Event()

    async def run(self, input_value: str) -> str:
        self.started += 1
        if self.started == self.expected:
            self.all_started.set()
        await asyncio.wait_for(self.all_started.wait(), timeout=1.0)
        return input_value


class AlwaysFails:
    async def run(self, input_value: str) -> str:
        raise RuntimeError("nope")


def _prompt(text: str) -> ChatPrompt:
    return ChatPrompt(history=[ChatMessage.user(text)])


def _length(_input: object, output: ChatMessage) -> float:
    return float(len(output.text))


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class TestEvaluator:
    async def test_mean_over_repetitions(self) -> None:
        provider = LengthProvider()
        evaluator = Evaluator(LLMRunner(provider), EvaluatorOptions(_length, repetitions=5))

        assert await evaluator.evaluate([_prompt("Hello")]) == [5.0]
        assert provider.calls == 5

    async def test_scores_in_test_pack_order(self) -> None:
        evaluator = Evaluator(
            LLMRunner(LengthProvider()), EvaluatorOptions(_length, repetitions=3)
        )
        report = await evaluator.evaluate([_prompt("a"), _prompt("abc"), _prompt("")])
        assert report == [1.0, 3.0, 0.0]

    async def test_repetitions_run_concurrently(self) -> None:
        runner = GatheringRunner(expected=4)
        evaluator = Evaluator(runner, EvaluatorOptions(lambda i, o: 1.0, repetitions=4))
        # One run at a time, each would time out and the score would be nan
        assert await evaluator.evaluate(["x"]) == [1.0]
        assert runner.started == 4

    async def test_failed_runs_are_excluded(self) -> None:
        runner = FlakyRunner()
        evaluator = Evaluator(
            runner, EvaluatorOptions(lambda i, o: 1.0, repetitions=4)
        )
        # Two of four runs fail; the average is over the two that succeeded
        assert await evaluator.evaluate(["x"]) == [1.0]
        assert runner.counts == {"x": 4}

    async def test_all_failed_is_nan(self) -> None:
        evaluator = Evaluator(AlwaysFails(), EvaluatorOptions(lambda i, o: 1.0, repetitions=2))
        (score,) = await evaluator.evaluate(["x"])
        assert math.isnan(score)

    async def test_empty_test_pack(self) -> None:
        evaluator = Evaluator(AlwaysFails(), EvaluatorOptions(lambda i, o: 1.0))
        assert await evaluator.evaluate([]) == []

    def test_repetitions_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            Evaluator(AlwaysFails(), EvaluatorOptions(lambda i, o: 1.0, repetitions=0))

    async def test_agent_is_a_runner(self) -> None:
        class Answering:
            async def chat(self, prompt: ChatPrompt) -> ChatMessage:
                return ChatMessage.assistant(f"ANS: {prompt.history[-1].text.upper()}<END>")

        agent: ChainAgent[str, str] = ChainAgent(
            Answering(), Task(description="Shout."), AgentConfig()
        )
        assert isinstance(agent, Runner)
        evaluator = Evaluator(
            agent, EvaluatorOptions(lambda i, o: float(o == i.upper()), repetitions=3)
        )
        assert await evaluator.evaluate(["hey", "yo"]) == [1.0, 1.0]
