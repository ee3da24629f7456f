"""Key-value scratch storage the agent can reference from other tools' arguments.

Long values cost context every turn they are repeated. The agent can
``set`` them once and then write ``{{ store "key" }}`` anywhere inside the
arguments of any later action; the store, acting as a preprocessor,
substitutes the stored value before the target tool runs.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable

from chainagent.errors import ArgumentRepairError

_REFERENCE_RE = re.compile(r'\{\{\s*store\s+"(?P<key>(?:[^"\\]|\\.)*)"\s*\}\}')


class KeyValueStore:
    """The ``store`` tool. Also a ``Preprocessor``."""

    name = "store"
    description = (
        "A place where you can store key-value pairs of data. This is useful "
        "mainly for long values, which you should store here to save memory. "
        'To use a stored value, reference it as {{ store "key" }} anywhere, '
        "including the arguments to other tools."
    )

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def args_schema(self) -> str:
        return json.dumps(
            {
                "command": "either 'set', 'get' or 'list'",
                "key": "the key to store or retrieve. Specify only for 'get' and 'set'.",
                "value": "the value to store. Specify only for 'set'.",
            }
        )

    async def execute(self, args: str) -> str:
        request = json.loads(args)
        if not isinstance(request, dict):
            raise ValueError("arguments must be a JSON object")

        key = request.get("key") or ""
        value = request.get("value") or ""
        command = request.get("command") or _infer_command(key, value)

        if command == "get":
            if key not in self._store:
                raise KeyError(f"key not found: {key}")
            return json.dumps(self._store[key])
        if command == "set":
            if not key:
                raise ValueError("'set' needs a key")
            self._store[key] = value if isinstance(value, str) else json.dumps(value)
            return json.dumps("stored successfully")
        if command == "list":
            return json.dumps(list(self._store))
        raise ValueError(f"unknown command: {command}")

    def compact_args(self, args: str) -> str:
        try:
            request = json.loads(args)
        except json.JSONDecodeError:
            return args
        if not isinstance(request, dict):
            return args
        command = request.get("command") or _infer_command(
            request.get("key") or "", request.get("value") or ""
        )
        if command == "set":
            return json.dumps(
                {"command": "set", "key": request.get("key", ""), "value": "<omitted>"}
            )
        return args

    async def process(self, args: str) -> str:
        try:
            decoded = json.loads(args)
        except json.JSONDecodeError as e:
            raise ArgumentRepairError(f"cannot resolve store references: {e}") from e
        return json.dumps(_map_strings(decoded, self._substitute))

    def _substitute(self, text: str) -> str:
        def lookup(match: re.Match[str]) -> str:
            key = match.group("key").replace('\\"', '"')
            # Unknown keys are left in place so the model can see the mistake
            return self._store.get(key, match.group(0))

        return _REFERENCE_RE.sub(lookup, text)

    def __len__(self) -> int:
        return len(self._store)


def _infer_command(key: str, value: Any) -> str:
    if key and value:
        return "set"
    if key:
        return "get"
    return "list"


def _map_strings(value: Any, fn: Callable[[str], str]) -> Any:
    if isinstance(value, dict):
        return {k: _map_strings(v, fn) for k, v in value.items()}
    if isinstance(value, list):
        return [_map_strings(v, fn) for v in value]
    if isinstance(value, str):
        return fn(value)
    return value
