"""LLM provider abstraction: unified via litellm.

litellm handles all provider-specific details (Anthropic, OpenAI, Gemini,
local servers...) and normalizes responses to OpenAI-format objects, which
we convert to ``ChatMessage``.

Two capabilities are exposed as protocols:

- ``ChatProvider``: plain text chat, every backend has it.
- ``FunctionCallingProvider``: chat where the model may answer with a native
  function call instead of text. Function specs are passed on every call,
  so a provider holds no per-conversation state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from chainagent.llm.functions import FunctionSpec
from chainagent.llm.message import ChatMessage, ChatPrompt, FunctionCall

if TYPE_CHECKING:
    from litellm import ModelResponse

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Configuration for an LLM provider."""

    model: str
    temperature: float | None = None
    max_tokens: int | None = None
    native_functions: bool = True  # Use native function calls when tools exist


@runtime_checkable
class ChatProvider(Protocol):
    """Protocol for LLM providers."""

    async def chat(self, prompt: ChatPrompt) -> ChatMessage:
        """Send the whole prompt and return the model's reply."""
        ...


@runtime_checkable
class FunctionCallingProvider(ChatProvider, Protocol):
    """A provider whose backend supports native structured function calls."""

    async def chat_with_functions(
        self, prompt: ChatPrompt, functions: list[FunctionSpec]
    ) -> ChatMessage:
        """Like ``chat``, but the reply may carry a ``function_call``."""
        ...


def supports_functions(provider: ChatProvider) -> bool:
    """Capability query: can this provider make native function calls?"""
    if not isinstance(provider, FunctionCallingProvider):
        return False
    config = getattr(provider, "config", None)
    if not getattr(config, "native_functions", True):
        return False
    model_check = getattr(provider, "model_supports_functions", None)
    return model_check() if callable(model_check) else True


# ---------------------------------------------------------------------------
# litellm provider
# ---------------------------------------------------------------------------


@dataclass
class LiteLLMProvider:
    """Unified LLM provider using litellm.

    litellm handles provider detection from the model string prefix
    (e.g. "anthropic/claude-...", "gemini/gemini-...", "openai/gpt-...")
    and reads API keys from environment variables automatically.
    """

    _config: ProviderConfig

    @property
    def config(self) -> ProviderConfig:
        return self._config

    def model_supports_functions(self) -> bool:
        """Ask litellm whether the configured model accepts tool specs."""
        import litellm

        try:
            return litellm.supports_function_calling(model=self._config.model)
        except Exception as e:
            logger.warning(
                "Cannot tell whether %s supports function calls, using text: %s",
                self._config.model,
                e,
            )
            return False

    async def chat(self, prompt: ChatPrompt) -> ChatMessage:
        response = await _acompletion_with_retry(**self._request_kwargs(prompt))
        return _response_to_message(response)

    async def chat_with_functions(
        self, prompt: ChatPrompt, functions: list[FunctionSpec]
    ) -> ChatMessage:
        kwargs = self._request_kwargs(prompt)
        if functions:
            kwargs["tools"] = [f.to_openai_spec() for f in functions]
        response = await _acompletion_with_retry(**kwargs)
        return _response_to_message(response)

    def _request_kwargs(self, prompt: ChatPrompt) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": prompt.to_openai_messages(),
        }
        if self._config.temperature is not None:
            kwargs["temperature"] = self._config.temperature
        if self._config.max_tokens is not None:
            kwargs["max_tokens"] = self._config.max_tokens
        return kwargs


@retry(
    retry=retry_if_exception_type((ConnectionError, TimeoutError, OSError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _acompletion_with_retry(**kwargs: Any) -> ModelResponse:
    """Call litellm.acompletion with retry on transient errors."""
    import litellm

    return await litellm.acompletion(**kwargs)


def _response_to_message(response: Any) -> ChatMessage:
    """Convert a litellm ModelResponse to a ``ChatMessage``.

    litellm responses have the same shape as OpenAI ChatCompletion objects:
      response.choices[0].message.{content, tool_calls}

    Only the first tool call is kept: the engine executes one native call
    per model turn.
    """
    choices = getattr(response, "choices", None)
    if not choices:
        raise ValueError(f"no choices in response: {response!r}")

    message = choices[0].message
    text = getattr(message, "content", None) or ""

    function_call = None
    tool_calls = getattr(message, "tool_calls", None)
    if tool_calls:
        if len(tool_calls) > 1:
            logger.warning(
                "Model returned %d tool calls, only the first is executed",
                len(tool_calls),
            )
        tc = tool_calls[0]
        function_call = FunctionCall(
            name=tc.function.name or "",
            arguments=tc.function.arguments or "",
            id=getattr(tc, "id", None) or "",
        )
    else:
        legacy = getattr(message, "function_call", None)
        if legacy is not None and getattr(legacy, "name", None):
            function_call = FunctionCall(
                name=legacy.name, arguments=legacy.arguments or ""
            )

    return ChatMessage(role="assistant", text=text, function_call=function_call)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_provider(
    model: str,
    temperature: float | None = None,
    max_tokens: int | None = None,
    native_functions: bool = True,
) -> LiteLLMProvider:
    """Create a LiteLLM provider.

    Args:
        model: Model name with provider prefix (e.g. "openai/gpt-4o",
               "anthropic/claude-sonnet-4-5-20250929").
               litellm detects the provider from the prefix and reads
               API keys from env vars automatically.
        temperature: Sampling temperature.
        max_tokens: Max output tokens.
        native_functions: Offer tools as native function specs. Disable for
            models that only follow the textual ``ACT:`` convention.

    Returns:
        A LiteLLMProvider instance.
    """
    config = ProviderConfig(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        native_functions=native_functions,
    )
    return LiteLLMProvider(_config=config)
