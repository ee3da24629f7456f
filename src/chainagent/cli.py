"""CLI entry point for chainagent."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING, Callable

import typer

from chainagent.config import ChainAgentSettings

if TYPE_CHECKING:
    from chainagent.llm.provider import ChatProvider
    from chainagent.protocol import Action
    from chainagent.tool.base import Tool

app = typer.Typer(
    name="chainagent",
    help="LLM agents that think, act through tools, and answer.",
    no_args_is_help=True,
)

CONFIRMED_TOOLS = {"shell"}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _builtin_tool_factories(
    provider: ChatProvider,
) -> dict[str, Callable[[list[Tool]], Tool]]:
    """Built-in tools by name. Each factory gets the other selected tools."""
    from chainagent.agent.delegate import AgentTool
    from chainagent.tool.builtin import AskUserTool, KeyValueStore, ShellTool

    return {
        "shell": lambda _others: ShellTool(),
        "store": lambda _others: KeyValueStore(),
        "ask_user": lambda _others: AskUserTool(),
        "smart_agent": lambda others: AgentTool(provider, others),
    }


def build_tools(names: list[str], provider: ChatProvider) -> list[Tool]:
    """Instantiate the named built-in tools, in the given order.

    Raises:
        typer.BadParameter: Unknown tool name.
    """
    factories = _builtin_tool_factories(provider)
    unknown = [n for n in names if n not in factories]
    if unknown:
        raise typer.BadParameter(
            f"unknown tool(s): {', '.join(unknown)}. "
            f"Available: {', '.join(sorted(factories))}"
        )

    tools: list[Tool] = []
    for name in dict.fromkeys(names):
        if name == "smart_agent":
            continue
        tools.append(factories[name](tools))
    if "smart_agent" in names:
        tools.append(factories["smart_agent"](list(tools)))
    return tools


async def confirm_action(action: Action) -> bool:
    """Ask on the terminal before running a tool that touches the system."""
    if action.tool_name not in CONFIRMED_TOOLS:
        return True
    return await asyncio.to_thread(
        typer.confirm, f"Run {action.tool_name}({action.raw_args})?", default=False
    )


@app.command()
def run(
    description: str = typer.Argument(help="What the agent should do."),
    input_text: str = typer.Argument(
        metavar="INPUT", help="The input the agent should act on."
    ),
    task_file: str | None = typer.Option(
        None,
        "--task-file",
        "-t",
        help="Markdown task file with YAML frontmatter examples; its body is "
        "appended to the description.",
    ),
    tool: list[str] = typer.Option(
        [],
        "--tool",
        help="Built-in tool to enable (shell, store, ask_user, smart_agent). Repeatable.",
    ),
    model: str | None = typer.Option(
        None, "--model", "-m", help="LLM model to use (default: from env/config)."
    ),
    max_attempts: int | None = typer.Option(
        None, "--max-attempts", help="Follow-up model calls per attempt (0 = unbounded)."
    ),
    max_restarts: int | None = typer.Option(
        None, "--max-restarts", help="Fresh attempts after a failed one."
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Run shell actions without asking first."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Run a text-in, text-out agent on INPUT."""
    setup_logging(verbose)

    if task_file and not os.path.isfile(task_file):
        typer.echo(f"Error: Task file not found: {task_file}", err=True)
        raise typer.Exit(1)

    settings = ChainAgentSettings.load(config_file)
    if model:
        settings.llm.model = model
    if max_attempts is not None:
        settings.agent.max_solution_attempts = max_attempts
    if max_restarts is not None:
        settings.agent.max_restarts = max_restarts

    try:
        answer = asyncio.run(
            _run_agent(description, input_text, task_file, tool, settings, confirm=not yes)
        )
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    typer.echo(answer)


async def _run_agent(
    description: str,
    input_text: str,
    task_file: str | None,
    tool_names: list[str],
    settings: ChainAgentSettings,
    confirm: bool,
) -> str:
    from chainagent.agent import AgentConfig, ChainAgent, Task
    from chainagent.llm.provider import create_provider
    from chainagent.memory import BufferMemory

    provider = create_provider(
        settings.llm.model,
        temperature=settings.llm.temperature,
        max_tokens=settings.llm.max_tokens,
        native_functions=settings.llm.native_functions,
    )

    task: Task[str, str] = Task(description=description)
    if task_file:
        from_file = Task.from_markdown(task_file)
        if from_file.description:
            task.description = f"{description}\n\n{from_file.description}"
        task.examples = from_file.examples

    history = settings.agent.memory_history
    agent = ChainAgent(
        provider,
        task,
        AgentConfig(
            tools=build_tools(tool_names, provider),
            max_solution_attempts=settings.agent.max_solution_attempts,
            max_restarts=settings.agent.max_restarts,
            json_autofix_retries=settings.agent.json_autofix_retries,
            action_confirmation=confirm_action if confirm else None,
            memory_factory=lambda: BufferMemory(history),
        ),
    )
    return await agent.run(input_text)


@app.command()
def tools() -> None:
    """List the built-in tools and their argument schemas."""
    from chainagent.llm.provider import create_provider

    settings = ChainAgentSettings.load()
    provider = create_provider(settings.llm.model)
    for name, factory in _builtin_tool_factories(provider).items():
        instance = factory([])
        typer.echo(f"{name}({instance.args_schema()})")
        typer.echo(f"    {instance.description}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
