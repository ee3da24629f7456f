"""Exception hierarchy.

Only caller errors and errors that end an attempt (transport, memory,
exhausted step budget) ever leave ``ChainAgent.run``. Everything else is
turned into an ``ERR`` message and fed back to the model.
"""

from __future__ import annotations


class ChainAgentError(Exception):
    """Base class for all chainagent errors."""


class InvalidInputError(ChainAgentError):
    """The input failed one or more input validators. Never retried."""

    def __init__(self, errors: list[Exception]) -> None:
        self.errors = errors
        super().__init__("invalid input: " + "; ".join(str(e) for e in errors))


class AttemptFailedError(ChainAgentError):
    """Ends the current attempt. ``run`` may restart if restarts remain."""


class ProviderError(AttemptFailedError):
    """The LLM backend failed (network, auth, rate limit...)."""


class MemoryStoreError(AttemptFailedError):
    """The memory failed to record a message or build a prompt."""


class MaxAttemptsExceeded(AttemptFailedError):
    """The step budget (``max_solution_attempts``) ran out."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"max solution attempts reached ({attempts})")


class ArgumentRepairError(ChainAgentError):
    """A preprocessor could not produce usable tool arguments."""


class MaxRetriesExceeded(ArgumentRepairError):
    """The JSON auto-fixer kept returning invalid JSON."""

    def __init__(self, failures: list[str]) -> None:
        self.failures = failures
        detail = "; ".join(failures)
        message = "max retries exceeded"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ToolNotFoundError(ChainAgentError):
    """An action named a tool that is not registered."""

    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = sorted(available)
        super().__init__(
            f"tool not found: {name!r}. Available tools: {', '.join(self.available)}"
        )


class ToolExecutionError(ChainAgentError):
    """A tool reported a failure."""


class SchemaConversionError(ChainAgentError):
    """A fuzzy argument schema could not be turned into a function spec."""
