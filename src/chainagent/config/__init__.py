"""Configuration: Pydantic models for chainagent settings."""

from __future__ import annotations

import json
import os
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """LLM provider configuration.

    Model names use litellm's provider-prefix format:
        "openai/gpt-4o"
        "anthropic/claude-sonnet-4-5-20250929"
        "gemini/gemini-2.5-flash"

    API keys are read from env vars automatically by litellm
    (OPENAI_API_KEY, ANTHROPIC_API_KEY, GEMINI_API_KEY).
    """

    model: str = Field(default="openai/gpt-4o")
    temperature: float | None = Field(default=None)
    max_tokens: int | None = Field(default=None)
    native_functions: bool = Field(
        default=True,
        description="Offer tools as native function calls when the model supports them",
    )


class AgentDefaults(BaseModel):
    """Budgets applied to agents built from the CLI."""

    max_solution_attempts: int = Field(
        default=10, ge=0, description="Follow-up model calls per attempt (0 = unbounded)"
    )
    max_restarts: int = Field(default=1, ge=0, description="Fresh attempts after a failure")
    json_autofix_retries: int = Field(
        default=3, ge=0, description="Model calls spent repairing malformed JSON arguments"
    )
    memory_history: int = Field(
        default=0, ge=0, description="Messages kept in buffer memory (0 = unbounded)"
    )


class ChainAgentSettings(BaseModel):
    """Top-level chainagent configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    agent: AgentDefaults = Field(default_factory=AgentDefaults)

    @classmethod
    def load(cls, config_path: str | None = None) -> ChainAgentSettings:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            OPENAI_API_KEY            - OpenAI API key (read by litellm automatically)
            ANTHROPIC_API_KEY         - Anthropic API key (read by litellm automatically)
            CHAINAGENT_MODEL          - Override model (litellm format with provider prefix)
            CHAINAGENT_TEMPERATURE    - Override sampling temperature
            CHAINAGENT_MAX_ATTEMPTS   - Override max solution attempts
            CHAINAGENT_MAX_RESTARTS   - Override max restarts
        """
        # .env in the working directory takes precedence over stale shell exports
        load_dotenv(find_dotenv(usecwd=True), override=True)

        config_data: dict[str, Any] = {}
        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        llm = config_data.get("llm", {})
        env_model = os.environ.get("CHAINAGENT_MODEL")
        if env_model:
            llm["model"] = env_model

        env_temperature = os.environ.get("CHAINAGENT_TEMPERATURE")
        if env_temperature:
            llm["temperature"] = float(env_temperature)

        if llm:
            config_data["llm"] = llm

        agent = config_data.get("agent", {})
        env_max_attempts = os.environ.get("CHAINAGENT_MAX_ATTEMPTS")
        if env_max_attempts:
            agent["max_solution_attempts"] = int(env_max_attempts)

        env_max_restarts = os.environ.get("CHAINAGENT_MAX_RESTARTS")
        if env_max_restarts:
            agent["max_restarts"] = int(env_max_restarts)

        if agent:
            config_data["agent"] = agent

        return cls.model_validate(config_data)
