"""Argument repair pipeline.

Every action's raw arguments pass through a chain of preprocessors before
the tool runs. The built-in member is the ``JSONAutoFixer``, which asks the
model to repair malformed JSON. Each repair attempt is a real model call.
"""

from __future__ import annotations

import json
import logging
import re

from chainagent.errors import MaxRetriesExceeded, ProviderError
from chainagent.llm.message import ChatMessage, ChatPrompt
from chainagent.llm.provider import ChatProvider
from chainagent.tool.base import Preprocessor

logger = logging.getLogger(__name__)

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s(?P<json>[\s\S]+?)\s```")

AUTOFIX_SYSTEM = (
    "You are an automated JSON fixer. You will receive a JSON payload that "
    "might contain errors, and you must fix them and return a valid JSON payload."
)

# One worked example: unescaped quote inside a string
AUTOFIX_EXAMPLE_BROKEN = '{"name": "John "Doe", "age": 30, "car": null}'
AUTOFIX_EXAMPLE_FIXED = '{"name": "John \\"Doe", "age": 30, "car": null}'


def is_valid_json(raw: str) -> bool:
    try:
        json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return False
    return True


def extract_fenced_json(response: str) -> str:
    """Return the contents of a markdown code fence, or the response as is."""
    match = _FENCED_JSON_RE.search(response)
    if match:
        return match.group("json")
    return response


class JSONAutoFixer:
    """Preprocessor that repairs malformed JSON with the help of the model.

    Valid JSON passes through untouched. Otherwise the model is asked up to
    ``max_retries`` times; if it never returns valid JSON the failures are
    raised together as ``MaxRetriesExceeded``. A failing backend raises
    ``ProviderError`` instead, so the two cases stay distinguishable.
    """

    def __init__(self, provider: ChatProvider, max_retries: int = 3) -> None:
        self._provider = provider
        self.max_retries = max_retries

    def prompt(self, args: str) -> ChatPrompt:
        return ChatPrompt(
            history=[
                ChatMessage.system(AUTOFIX_SYSTEM),
                ChatMessage.user(AUTOFIX_EXAMPLE_BROKEN),
                ChatMessage.assistant(AUTOFIX_EXAMPLE_FIXED),
                ChatMessage.user(args),
            ]
        )

    async def process(self, args: str) -> str:
        if is_valid_json(args):
            return args

        logger.debug("Running JSON auto fixer on %s", args[:200])
        prompt = self.prompt(args)
        failures: list[str] = []
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self._provider.chat(prompt)
            except Exception as e:
                raise ProviderError(f"error running JSON auto fixer: {e}") from e

            candidate = extract_fenced_json(response.text).strip()
            try:
                json.loads(candidate)
            except json.JSONDecodeError as e:
                failures.append(f"attempt {attempt}: invalid JSON returned ({e})")
                continue

            logger.debug("JSON auto fixer succeeded after %d attempt(s)", attempt)
            return candidate

        raise MaxRetriesExceeded(failures)


class ArgumentPipeline:
    """Applies preprocessors to raw arguments, in order."""

    def __init__(self, preprocessors: list[Preprocessor] | None = None) -> None:
        self._preprocessors = list(preprocessors or [])

    @property
    def preprocessors(self) -> list[Preprocessor]:
        return list(self._preprocessors)

    async def process(self, args: str) -> str:
        for preprocessor in self._preprocessors:
            args = await preprocessor.process(args)
        return args

    def __len__(self) -> int:
        return len(self._preprocessors)
