"""Repeated-run evaluation of agents and bare models.

Every repetition runs the whole test pack once, inputs in order. The
repetitions themselves run concurrently, and each input's score is the mean
over the repetitions that produced one.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Callable, Generic, Protocol, TypeVar, runtime_checkable

logger = logging.getLogger(__name__)

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")
InputT_contra = TypeVar("InputT_contra", contravariant=True)
OutputT_co = TypeVar("OutputT_co", covariant=True)

GoodnessFunction = Callable[[InputT, OutputT], float]


@runtime_checkable
class Runner(Protocol[InputT_contra, OutputT_co]):
    """Anything that maps an input to an output, e.g. a ``ChainAgent``."""

    async def run(self, input_value: InputT_contra) -> OutputT_co: ...


@dataclass
class EvaluatorOptions(Generic[InputT, OutputT]):
    """How outputs are scored and how many times the pack is run."""

    goodness: GoodnessFunction[InputT, OutputT]
    repetitions: int = 1


class Evaluator(Generic[InputT, OutputT]):
    """Scores a runner on a test pack.

    A run that raises contributes no score: it is left out of that input's
    average entirely rather than counted as zero. An input whose every run
    failed scores ``nan``.
    """

    def __init__(
        self,
        runner: Runner[InputT, OutputT],
        options: EvaluatorOptions[InputT, OutputT],
    ) -> None:
        if options.repetitions < 1:
            raise ValueError("repetitions must be at least 1")
        self.runner = runner
        self.options = options

    async def evaluate(self, test_pack: Sequence[InputT]) -> list[float]:
        """Average score per input, in test pack order."""
        reports = await asyncio.gather(
            *(self._repetition(test_pack, i) for i in range(self.options.repetitions))
        )

        averages: list[float] = []
        for i in range(len(test_pack)):
            scores = [r[i] for r in reports if r[i] is not None]
            averages.append(math.fsum(scores) / len(scores) if scores else math.nan)
        return averages

    async def _repetition(
        self, test_pack: Sequence[InputT], repetition: int
    ) -> list[float | None]:
        report: list[float | None] = []
        for i, input_value in enumerate(test_pack):
            try:
                output = await self.runner.run(input_value)
            except Exception as e:
                logger.warning(
                    "Repetition %d: input %d failed, excluding it: %s", repetition, i, e
                )
                report.append(None)
                continue
            report.append(self.options.goodness(input_value, output))
        return report
