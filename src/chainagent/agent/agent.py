"""The chain agent: a Task-driven conversation loop over the text protocol.

One ``run`` is a sequence of attempts. Each attempt compiles the task into
a fresh memory, then alternates model calls with decoding:

1. Thoughts are dropped (or relayed back when configured)
2. Actions go through the dispatcher and come back as OBS/ERR messages
3. An Answer is parsed and validated; failures are fed back as ERR
4. Anything malformed is fed back as ERR so the model can self-correct

An attempt ends with a validated answer, or with an ``AttemptFailedError``
(backend down, memory broken, step budget exhausted), in which case ``run``
starts over with clean state while restarts remain.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Generic

from chainagent.agent.task import InputT, OutputT, Task
from chainagent.errors import (
    AttemptFailedError,
    InvalidInputError,
    MaxAttemptsExceeded,
    MemoryStoreError,
    ProviderError,
)
from chainagent.llm.message import ChatMessage, ChatPrompt
from chainagent.llm.provider import ChatProvider, FunctionCallingProvider, supports_functions
from chainagent.memory import BufferMemory, Memory
from chainagent.protocol import (
    OBSERVATION_CODE,
    Action,
    Answer,
    Error,
    Observation,
    ProtocolCodec,
    TextProtocolCodec,
    Thought,
)
from chainagent.tool.base import Preprocessor, Tool
from chainagent.tool.dispatcher import ActionConfirmation, ToolDispatcher
from chainagent.tool.pipeline import ArgumentPipeline, JSONAutoFixer
from chainagent.tool.registry import ToolRegistry

logger = logging.getLogger(__name__)

Validator = Callable[[Any], Any]  # Raises on failure
MemoryFactory = Callable[[], Memory]


@dataclass
class AgentConfig:
    """Everything that shapes an agent besides its provider and task.

    Attributes:
        tools: Tools the model may call, in catalog order.
        input_validators: Checked once per ``run``; a failure is a caller
            error and is never retried.
        output_validators: Checked on every candidate answer; failures are
            fed back to the model.
        max_solution_attempts: Follow-up model calls allowed per attempt
            beyond the first. 0 means unbounded.
        max_restarts: Fresh attempts after a failed one.
        action_confirmation: Hook asked before every tool execution; a falsy
            result vetoes the action.
        memory_factory: Builds the memory for each attempt.
        preprocessors: Extra argument preprocessors, run after the JSON
            auto-fixer and before tools that are preprocessors themselves.
        json_autofix_retries: Repair budget of the JSON auto-fixer. 0 turns
            the auto-fixer off.
        codec: Wire protocol codec.
        relay_thoughts: Echo decoded thoughts back into the conversation.
    """

    tools: list[Tool] = field(default_factory=list)
    input_validators: list[Validator] = field(default_factory=list)
    output_validators: list[Validator] = field(default_factory=list)
    max_solution_attempts: int = 0
    max_restarts: int = 0
    action_confirmation: ActionConfirmation | None = None
    memory_factory: MemoryFactory = BufferMemory
    preprocessors: list[Preprocessor] = field(default_factory=list)
    json_autofix_retries: int = 3
    codec: ProtocolCodec = field(default_factory=TextProtocolCodec)
    relay_thoughts: bool = False

    def __post_init__(self) -> None:
        for name in ("max_solution_attempts", "max_restarts", "json_autofix_retries"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")


@dataclass
class _Accepted(Generic[OutputT]):
    value: OutputT


class ChainAgent(Generic[InputT, OutputT]):
    """Runs a ``Task`` against a chat provider with tools.

    ``run`` keeps all per-run state local, so one agent may serve concurrent
    runs as long as ``memory_factory`` hands out independent memories.
    """

    def __init__(
        self,
        provider: ChatProvider,
        task: Task[InputT, OutputT],
        config: AgentConfig | None = None,
    ) -> None:
        self.provider = provider
        self.task = task
        self.config = config or AgentConfig()
        self.registry = ToolRegistry(self.config.tools)

        self._native_specs = (
            self.registry.function_specs() if supports_functions(provider) else {}
        )
        self._textual_tools = [
            t for t in self.registry.tools() if t.name not in self._native_specs
        ]

        preprocessors: list[Preprocessor] = []
        if self.config.json_autofix_retries > 0:
            preprocessors.append(
                JSONAutoFixer(provider, max_retries=self.config.json_autofix_retries)
            )
        preprocessors.extend(self.config.preprocessors)
        preprocessors.extend(self.registry.preprocessors())
        self._dispatcher = ToolDispatcher(
            self.registry,
            ArgumentPipeline(preprocessors),
            self.config.action_confirmation,
        )

    @property
    def codec(self) -> ProtocolCodec:
        return self.config.codec

    async def run(self, input_value: InputT) -> OutputT:
        """Solve the task for ``input_value``.

        Raises:
            InvalidInputError: An input validator rejected the input.
            AttemptFailedError: Every attempt failed; this is the last
                attempt's error.
        """
        self._validate_input(input_value)

        attempts = self.config.max_restarts + 1
        attempt = 1
        while True:
            logger.info("Starting attempt %d/%d", attempt, attempts)
            try:
                return await self._attempt(input_value)
            except AttemptFailedError as e:
                if attempt >= attempts:
                    logger.error("Attempt %d failed, giving up: %s", attempt, e)
                    raise
                logger.warning("Attempt %d failed, restarting: %s", attempt, e)
            attempt += 1

    # --- Single attempt ---

    async def _attempt(self, input_value: InputT) -> OutputT:
        memory = self.config.memory_factory()
        prompt = self.task.compile(input_value, self._textual_tools, self.codec)
        logger.debug("Task prompt: %s", prompt.history)
        try:
            await memory.add_prompt(prompt)
        except Exception as e:
            raise MemoryStoreError(f"failed to add prompt to memory: {e}") from e

        response = await self._predict(prompt, 0)
        await self._remember(memory, response)

        steps = 0
        while True:
            next_messages, accepted = await self._process(response)
            if accepted is not None:
                logger.info("Answer accepted after %d step(s)", steps)
                return accepted.value
            logger.debug("Next messages: %s", next_messages)

            try:
                prompt = await memory.prompt_with_context(*next_messages)
            except Exception as e:
                raise MemoryStoreError(f"failed to generate prompt: {e}") from e

            max_attempts = self.config.max_solution_attempts
            if max_attempts > 0 and steps > max_attempts:
                raise MaxAttemptsExceeded(max_attempts)

            response = await self._predict(prompt, steps + 1)
            await self._remember(memory, response)
            steps += 1

    async def _predict(self, prompt: ChatPrompt, step: int) -> ChatMessage:
        try:
            if self._native_specs and isinstance(self.provider, FunctionCallingProvider):
                response = await self.provider.chat_with_functions(
                    prompt, list(self._native_specs.values())
                )
            else:
                response = await self.provider.chat(prompt)
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"failed to predict response: {e}") from e

        logger.debug("Model response: %s", response.text or response.function_call)
        call = response.function_call
        if call is not None and not call.id:
            # Results are matched to calls by id
            response = replace(response, function_call=replace(call, id=f"call_{step}"))
        return response

    async def _remember(self, memory: Memory, response: ChatMessage) -> None:
        call = response.function_call
        if call is not None:
            tool = self.registry.get(call.name)
            if tool is not None:
                response = replace(
                    response,
                    function_call=replace(call, arguments=tool.compact_args(call.arguments)),
                )
        try:
            await memory.add(response)
        except Exception as e:
            raise MemoryStoreError(f"failed to add response to memory: {e}") from e

    # --- Decoding and dispatch ---

    async def _process(
        self, response: ChatMessage
    ) -> tuple[list[ChatMessage], _Accepted[OutputT] | None]:
        call = response.function_call
        if call is not None:
            action = Action(tool_name=call.name, raw_args=call.arguments, call_id=call.id)
            result = await self._dispatcher.execute(action)
            return [self.codec.encode(result)], None

        messages: list[ChatMessage] = []
        for op in self.codec.decode(response.text):
            if isinstance(op, Thought):
                logger.debug("Thought: %s", op.content)
                if self.config.relay_thoughts:
                    messages.append(self.codec.encode(op))
            elif isinstance(op, Action):
                logger.info("Action: %s(%s)", op.tool_name, op.raw_args[:200])
                messages.append(self.codec.encode(await self._dispatcher.execute(op)))
            elif isinstance(op, Answer):
                try:
                    value = self._accept(op.raw_content)
                except Exception as e:
                    logger.info("Answer rejected: %s", e)
                    messages.append(self.codec.encode(Error(str(e))))
                    continue
                return messages, _Accepted(value)
            elif isinstance(op, Observation):
                messages.append(
                    self.codec.encode(
                        Error(
                            f"`{OBSERVATION_CODE}` is reserved for tool results; "
                            "use an action to run a tool instead"
                        )
                    )
                )
            else:
                messages.append(self.codec.encode(op))
        return messages, None

    # --- Validation ---

    def _validate_input(self, input_value: InputT) -> None:
        errors = _run_validators(self.config.input_validators, input_value)
        if errors:
            raise InvalidInputError(errors)

    def _accept(self, raw: str) -> OutputT:
        try:
            value = self.task.parse_answer(raw)
        except Exception as e:
            raise ValueError(f"invalid answer: {e}") from e
        errors = _run_validators(self.config.output_validators, value)
        if errors:
            raise ValueError(
                "answer failed validation: " + "; ".join(str(e) for e in errors)
            )
        return value


def _run_validators(validators: Sequence[Validator], value: Any) -> list[Exception]:
    errors: list[Exception] = []
    for validator in validators:
        try:
            validator(value)
        except Exception as e:
            errors.append(e)
    return errors
