"""
Capability Contract — the shape every tool must have.

A capability is anything with a ``name``, a ``description``, a JSON Schema
``parameter_schema`` and an awaitable ``execute(args_json) -> result_json``.
The registry, the agentic loop and the synthesis loader all rely on this
contract and nothing more, so generated tools and built-in tools are
interchangeable from the model's point of view.

Two implementations live here:

1. ``Capability`` — the abstract base class generated tools subclass.
2. ``FunctionTool`` — wraps a plain handler function with schema validation
   and JSON serialization. Built-in tools use this.
"""

from __future__ import annotations

import inspect
import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import structlog

from toolsmith.errors import ArgumentParseError

logger = structlog.get_logger(__name__)


def parse_arguments(args_json: Optional[str]) -> dict[str, Any]:
    """Parse a tool's JSON argument string into a dict.

    An empty string means "no arguments". Anything that is not a JSON object
    raises ArgumentParseError.
    """
    if args_json is None or not str(args_json).strip():
        return {}
    try:
        parsed = json.loads(args_json)
    except (TypeError, ValueError) as e:
        raise ArgumentParseError(f"Arguments are not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ArgumentParseError(
            f"Arguments must be a JSON object, got {type(parsed).__name__}"
        )
    return parsed


def error_result(message: str, **extra: Any) -> str:
    """Build the ``{"error": ...}`` JSON payload tools return on failure."""
    payload: dict[str, Any] = {"error": message}
    payload.update(extra)
    return json.dumps(payload, ensure_ascii=False)


def serialize_result(result: Any) -> str:
    """Serialize a handler's return value into the JSON string tools return."""
    if isinstance(result, str):
        return json.dumps({"result": result}, ensure_ascii=False)
    try:
        return json.dumps(result, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return json.dumps({"result": str(result)}, ensure_ascii=False)


# JSON Schema type → Python types (for lightweight validation)
_JSON_TYPE_MAP: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


def validate_arguments(schema: dict[str, Any], arguments: dict[str, Any]) -> Optional[str]:
    """
    Lightweight JSON Schema validation for tool inputs.

    Checks required fields, basic type constraints and enums. Returns an
    error message string on failure, or None if the input is valid.
    """
    required = schema.get("required", [])
    properties = schema.get("properties", {})

    missing = [name for name in required if name not in arguments]
    if missing:
        return f"Missing required parameter(s): {', '.join(missing)}"

    for name, value in arguments.items():
        prop_schema = properties.get(name)
        if not prop_schema or not isinstance(prop_schema, dict):
            continue
        enum = prop_schema.get("enum")
        if enum is not None and value not in enum:
            return f"Parameter '{name}' must be one of {enum}, got {value!r}"
        expected_type = prop_schema.get("type")
        if not expected_type:
            continue
        py_types = _JSON_TYPE_MAP.get(expected_type)
        if py_types is None:
            continue
        # In Python bool is a subclass of int, but JSON booleans are distinct
        if isinstance(value, bool) and expected_type in ("integer", "number"):
            return f"Parameter '{name}' expected {expected_type}, got boolean"
        if not isinstance(value, py_types):
            return f"Parameter '{name}' expected {expected_type}, got {type(value).__name__}"

    return None


def is_json_schema_object(schema: Any) -> bool:
    """True if ``schema`` looks like an object-typed JSON Schema."""
    if not isinstance(schema, dict):
        return False
    if schema.get("type") != "object":
        return False
    properties = schema.get("properties", {})
    return isinstance(properties, dict)


def conformance_errors(obj: Any) -> list[str]:
    """
    Structural check of an object against the capability contract.

    Returns a list of problems; an empty list means the object conforms.
    Used by the synthesis loader before a generated tool is registered.
    """
    problems: list[str] = []
    name = getattr(obj, "name", None)
    if not isinstance(name, str) or not name.strip():
        problems.append("'name' must be a non-empty string")
    description = getattr(obj, "description", None)
    if not isinstance(description, str) or not description.strip():
        problems.append("'description' must be a non-empty string")
    if not is_json_schema_object(getattr(obj, "parameter_schema", None)):
        problems.append("'parameter_schema' must be a JSON Schema object with type 'object'")
    execute = getattr(obj, "execute", None)
    if not callable(execute):
        problems.append("'execute' must be callable")
    return problems


def is_tool(obj: Any) -> bool:
    return not conformance_errors(obj)


class Capability(ABC):
    """
    Base class for class-based tools.

    Subclasses set ``name``, ``description`` and ``parameter_schema`` as class
    attributes and implement ``execute``. Generated tools are written against
    this class; the synthesis loader instantiates them with no arguments.
    """

    name: str = ""
    description: str = ""
    parameter_schema: dict[str, Any] = {"type": "object", "properties": {}}
    category: str = "general"
    origin: str = "builtin"

    @abstractmethod
    async def execute(self, args_json: str) -> str:
        """Run the tool. Receives a JSON string, returns a JSON string."""

    def to_api_format(self) -> dict[str, Any]:
        """The function-calling declaration shape for this tool."""
        return to_api_format(self)


def to_api_format(tool: Any) -> dict[str, Any]:
    """
    Convert any conforming tool to the function-calling declaration:

        {
            "type": "function",
            "function": {"name": ..., "description": ..., "parameters": {...}}
        }
    """
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameter_schema,
        },
    }


class FunctionTool(Capability):
    """
    A tool backed by a plain handler function.

    The handler receives the parsed arguments as keyword arguments and may be
    sync or async. Malformed JSON and schema violations are reported as
    ``{"error": ...}`` results; exceptions raised by the handler itself
    propagate to the caller, which decides how to surface them.
    """

    def __init__(
        self,
        name: str,
        description: str,
        parameter_schema: dict[str, Any],
        handler: Callable[..., Any],
        category: str = "general",
        origin: str = "builtin",
    ):
        self.name = name
        self.description = description
        self.parameter_schema = parameter_schema
        self.handler = handler
        self.category = category
        self.origin = origin

    async def execute(self, args_json: str) -> str:
        try:
            arguments = parse_arguments(args_json)
        except ArgumentParseError as e:
            logger.warning("function_tool.bad_arguments", tool=self.name, error=str(e))
            return error_result(str(e))

        validation_error = validate_arguments(self.parameter_schema, arguments)
        if validation_error:
            logger.warning("function_tool.invalid_arguments", tool=self.name, error=validation_error)
            return error_result(validation_error)

        # Keyword arguments the schema does not declare would break the handler call
        properties = self.parameter_schema.get("properties") or {}
        unknown = [key for key in arguments if key not in properties]
        if properties and unknown:
            logger.debug("function_tool.ignored_arguments", tool=self.name, ignored=unknown)
            arguments = {k: v for k, v in arguments.items() if k in properties}

        result = self.handler(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return serialize_result(result)

    def __repr__(self) -> str:
        return f"FunctionTool(name={self.name!r}, category={self.category!r})"
