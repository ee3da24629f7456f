"""Tool dispatcher: turns an ``Action`` into an ``Observation`` or ``Error``.

Steps, in order: resolve the tool, run the argument pipeline, ask the
confirmation hook, execute. Every failure along the way becomes an ``Error``
addressed to the originating tool and call slot; the only exception that
escapes is ``ProviderError`` from a repair step, which means the backend
itself is unavailable.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable
from dataclasses import replace
from typing import Callable, Union

from chainagent.errors import ProviderError, ToolNotFoundError
from chainagent.protocol import Action, Error, Observation
from chainagent.tool.pipeline import ArgumentPipeline
from chainagent.tool.registry import ToolRegistry
from chainagent.tool.truncation import truncate_output

logger = logging.getLogger(__name__)

ActionConfirmation = Callable[[Action], Union[bool, Awaitable[bool]]]

CANCELLED_MESSAGE = "the action was cancelled by the user"


class ToolDispatcher:
    """Executes actions against a ``ToolRegistry``."""

    def __init__(
        self,
        registry: ToolRegistry,
        pipeline: ArgumentPipeline | None = None,
        confirm: ActionConfirmation | None = None,
    ) -> None:
        self._registry = registry
        self._pipeline = pipeline or ArgumentPipeline()
        self._confirm = confirm

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def execute(self, action: Action) -> Observation | Error:
        name = action.tool_name
        try:
            tool = self._registry.resolve(name)
        except ToolNotFoundError as e:
            return Error(str(e), source_tool=name, call_id=action.call_id)

        try:
            # Native calls may carry an empty argument string
            args = await self._pipeline.process(action.raw_args.strip() or "{}")
        except ProviderError:
            raise
        except Exception as e:
            logger.debug("Preprocessing failed for %s: %s", name, e)
            return Error(
                f"invalid arguments for {name}: {e}",
                source_tool=name,
                call_id=action.call_id,
            )
        action = replace(action, raw_args=args)

        if not await self._confirmed(action):
            logger.info("Action %s cancelled by the user", name)
            return Error(
                CANCELLED_MESSAGE,
                source_tool=name,
                call_id=action.call_id,
                cancelled=True,
            )

        try:
            output = await tool.execute(args)
        except Exception as e:
            logger.debug("Tool %s failed: %s", name, e)
            return Error(str(e), source_tool=name, call_id=action.call_id)

        if not isinstance(output, str):
            output = str(output)
        logger.debug("Tool %s output: %s", name, output[:500])
        return Observation(
            truncate_output(output), source_tool=name, call_id=action.call_id
        )

    async def _confirmed(self, action: Action) -> bool:
        if self._confirm is None:
            return True
        try:
            verdict = self._confirm(action)
            if inspect.isawaitable(verdict):
                verdict = await verdict
        except Exception as e:
            logger.warning("Action confirmation hook failed, vetoing: %s", e)
            return False
        return bool(verdict)
