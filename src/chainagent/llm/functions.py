"""Native function-call specs, inferred from a tool's fuzzy argument schema.

A fuzzy schema is documentation written as JSON, e.g.::

    {"command": "the git command to execute", "paths": ["a file path"]}

Each value is read as an example of its own type: strings become ``string``
parameters described by the string itself, lists become ``array`` parameters
whose items are inferred from the elements, and so on.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from chainagent.errors import SchemaConversionError

if TYPE_CHECKING:
    from chainagent.tool.base import Tool


class ParameterSpec(BaseModel):
    """JSON-schema-like description of one parameter."""

    type: str
    description: str | None = None
    properties: dict[str, ParameterSpec] | None = None
    required: list[str] | None = None
    items: ParameterSpec | None = None
    enum: list[Any] | None = None

    def to_schema(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class FunctionSpec(BaseModel):
    """Machine-readable description of a tool for native function calling."""

    name: str
    description: str
    parameters: ParameterSpec = Field(
        default_factory=lambda: ParameterSpec(type="object", properties={})
    )

    def to_openai_spec(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters.to_schema(),
            },
        }


def infer_parameter_spec(fuzzy_schema: str | Any) -> ParameterSpec:
    """Infer a ``ParameterSpec`` from a fuzzy schema (JSON text or decoded value).

    Raises:
        SchemaConversionError: The schema is not valid JSON, contains ``null``,
            or mixes element types inside one array.
    """
    if isinstance(fuzzy_schema, (str, bytes)):
        try:
            value = json.loads(fuzzy_schema)
        except json.JSONDecodeError as e:
            raise SchemaConversionError(f"fuzzy schema is not valid JSON: {e}") from e
    else:
        value = fuzzy_schema
    return _infer(value)


def _infer(value: Any) -> ParameterSpec:
    # bool before int/float: bool is a subclass of int
    if isinstance(value, bool):
        return ParameterSpec(type="boolean", description="a boolean value")
    if isinstance(value, (int, float)):
        return ParameterSpec(type="number", description="a number")
    if isinstance(value, str):
        return ParameterSpec(type="string", description=value)
    if isinstance(value, dict):
        return ParameterSpec(
            type="object",
            properties={key: _infer(item) for key, item in value.items()},
            required=[],
        )
    if isinstance(value, list):
        items: ParameterSpec | None = None
        for element in value:
            spec = _infer(element)
            if items is not None:
                if items.type != spec.type:
                    raise SchemaConversionError(
                        "arrays with values of more than one type are not supported"
                    )
                if items.description != spec.description:
                    spec.description = " ".join(
                        d for d in (items.description, spec.description) if d
                    )
            items = spec
        return ParameterSpec(type="array", items=items)
    raise SchemaConversionError(f"cannot convert {value!r} to a parameter spec")


def to_function_spec(tool: Tool) -> FunctionSpec:
    """Build a ``FunctionSpec`` for a tool.

    The top-level parameters must be an object; anything else cannot be
    passed as keyword arguments by a native function-calling backend.
    """
    parameters = infer_parameter_spec(tool.args_schema())
    if parameters.type != "object":
        raise SchemaConversionError(
            f"tool {tool.name!r}: top-level arguments must be an object, "
            f"got {parameters.type}"
        )
    return FunctionSpec(
        name=tool.name, description=tool.description, parameters=parameters
    )
