"""LLM abstraction layer: chat messages, providers, function specs."""

from chainagent.llm.functions import (
    FunctionSpec,
    ParameterSpec,
    infer_parameter_spec,
    to_function_spec,
)
from chainagent.llm.message import ChatMessage, ChatPrompt, FunctionCall
from chainagent.llm.provider import (
    ChatProvider,
    FunctionCallingProvider,
    LiteLLMProvider,
    ProviderConfig,
    create_provider,
    supports_functions,
)

__all__ = [
    "ChatMessage",
    "ChatPrompt",
    "FunctionCall",
    "FunctionSpec",
    "ParameterSpec",
    "infer_parameter_spec",
    "to_function_spec",
    "ChatProvider",
    "FunctionCallingProvider",
    "LiteLLMProvider",
    "ProviderConfig",
    "create_provider",
    "supports_functions",
]
