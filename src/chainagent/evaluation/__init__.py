"""Evaluation: score agents and models over repeated runs."""

from chainagent.evaluation.evaluator import Evaluator, EvaluatorOptions, Runner
from chainagent.evaluation.runners import LLMRunner

__all__ = [
    "Evaluator",
    "EvaluatorOptions",
    "Runner",
    "LLMRunner",
]
