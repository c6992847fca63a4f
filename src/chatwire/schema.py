"""Schema compilation: output schemas into tool definitions.

A schema can be described three ways:

- a field mapping ``{"name": {"type": "string", "required": True}}`` (or a
  list of ``(name, spec)`` pairs),
- a JSON Schema object dict with a ``properties`` key,
- a Pydantic ``BaseModel`` subclass.

All three compile into a `CompiledSchema` whose ``schema`` is a JSON Schema
object. Fields that do not declare ``required`` are optional.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
import json
import re
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from chatwire.errors import ConfigurationError, InvalidParameterError

if TYPE_CHECKING:
    from collections.abc import Callable

STRUCTURED_OUTPUT_TOOL = "structured_output"

_TOOL_NAME_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
_FIELD_KEYS = frozenset({"type", "required", "doc", "in", "of", "default"})

_TYPE_SCHEMAS: dict[str, dict[str, Any]] = {
    "string": {"type": "string"},
    "integer": {"type": "integer"},
    "pos_integer": {"type": "integer", "minimum": 1},
    "non_neg_integer": {"type": "integer", "minimum": 0},
    "float": {"type": "number"},
    "number": {"type": "number"},
    "boolean": {"type": "boolean"},
    "map": {"type": "object"},
    "object": {"type": "object"},
    "any": {},
}

_PY_TYPES: dict[type, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
}


@dataclass(frozen=True)
class CompiledSchema:
    """A normalized output schema and its JSON Schema rendering."""

    schema: dict[str, Any]
    source: Any = None

    @property
    def properties(self) -> dict[str, Any]:
        return self.schema.get("properties", {})

    @property
    def field_names(self) -> list[str]:
        return list(self.properties)

    @property
    def required(self) -> list[str]:
        return list(self.schema.get("required", []))


def compile_schema(source: Any) -> CompiledSchema:
    """Compile a schema description into a `CompiledSchema`.

    Raises:
        ConfigurationError: If the description is malformed.
    """
    if isinstance(source, CompiledSchema):
        return source

    if isinstance(source, type) and issubclass(source, BaseModel):
        schema = _inline_refs(source.model_json_schema())
        schema.setdefault("type", "object")
        schema.setdefault("properties", {})
        return CompiledSchema(schema=schema, source=source)

    if isinstance(source, dict) and "properties" in source:
        return CompiledSchema(schema=_compile_json_schema(source), source=source)

    if isinstance(source, dict):
        items = list(source.items())
    elif isinstance(source, (list, tuple)):
        items = list(source)
    else:
        raise ConfigurationError(
            f"Unsupported schema type: {type(source).__name__}",
            hint="Pass a field mapping, a JSON Schema dict, or a BaseModel subclass.",
        )

    properties: dict[str, Any] = {}
    required: list[str] = []
    for item in items:
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            raise ConfigurationError(
                f"Schema entries must be (name, spec) pairs, got {item!r}",
            )
        name, spec = item
        if not isinstance(name, str) or not name:
            raise ConfigurationError(
                f"Schema field names must be non-empty strings, got {name!r}",
            )
        if name in properties:
            raise ConfigurationError(f"Duplicate schema field: {name!r}")
        field_schema, is_required = _compile_field(name, spec)
        properties[name] = field_schema
        if is_required:
            required.append(name)

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    schema["additionalProperties"] = False
    return CompiledSchema(schema=schema, source=source)


def _compile_json_schema(source: dict[str, Any]) -> dict[str, Any]:
    properties = source["properties"]
    if not isinstance(properties, dict):
        raise ConfigurationError(
            "JSON Schema 'properties' must be an object",
        )
    required = source.get("required", [])
    if not isinstance(required, list) or any(r not in properties for r in required):
        raise ConfigurationError(
            "JSON Schema 'required' must list declared properties",
            hint=f"Declared properties: {sorted(properties)}",
        )
    schema = _inline_refs(source)
    schema.setdefault("type", "object")
    return schema


def _inline_refs(schema: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *schema* with local ``$ref`` pointers spliced in.

    Only the ``properties`` fragment is shown to the model, so definitions
    under ``$defs``/``definitions`` must be inlined where they are used.

    Raises:
        ConfigurationError: On dangling or recursive references.
    """

    def resolve(pointer: str) -> Any:
        node: Any = schema
        tokens = pointer[2:].split("/") if pointer != "#" else []
        for raw in tokens:
            token = raw.replace("~1", "/").replace("~0", "~")
            if not isinstance(node, dict) or token not in node:
                raise ConfigurationError(f"Unresolved schema reference: {pointer!r}")
            node = node[token]
        return node

    def walk(node: Any, seen: tuple[str, ...]) -> Any:
        if isinstance(node, list):
            return [walk(v, seen) for v in node]
        if not isinstance(node, dict):
            return deepcopy(node)
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith("#"):
            if ref in seen:
                raise ConfigurationError(
                    f"Recursive schema reference: {ref!r}",
                    hint="Self-referencing models cannot be inlined into a prompt.",
                )
            target = walk(resolve(ref), (*seen, ref))
            if not isinstance(target, dict):
                return target
            siblings = {k: walk(v, seen) for k, v in node.items() if k != "$ref"}
            return {**target, **siblings}
        return {k: walk(v, seen) for k, v in node.items()}

    body = {k: v for k, v in schema.items() if k not in ("$defs", "definitions")}
    return walk(body, ())


def _compile_field(name: str, spec: Any) -> tuple[dict[str, Any], bool]:
    """Render one field spec; returns ``(json_schema, required)``."""
    if isinstance(spec, (str, type)):
        spec = {"type": spec}
    if not isinstance(spec, dict):
        raise ConfigurationError(
            f"Schema field {name!r} must be a mapping, got {type(spec).__name__}",
        )

    unknown = set(spec) - _FIELD_KEYS
    if unknown:
        raise ConfigurationError(
            f"Schema field {name!r} has unknown keys: {sorted(unknown)}",
            hint=f"Supported keys: {sorted(_FIELD_KEYS)}",
        )

    required = spec.get("required", False)
    if not isinstance(required, bool):
        raise ConfigurationError(
            f"Schema field {name!r}: 'required' must be a boolean",
        )

    rendered = _render_type(name, spec.get("type", "any"), spec.get("of"))
    if "doc" in spec:
        rendered["description"] = str(spec["doc"])
    if "in" in spec:
        choices = spec["in"]
        if not isinstance(choices, (list, tuple)) or not choices:
            raise ConfigurationError(
                f"Schema field {name!r}: 'in' must be a non-empty list",
            )
        rendered["enum"] = list(choices)
    if "default" in spec:
        rendered["default"] = spec["default"]
    return rendered, required


def _render_type(name: str, type_: Any, of: Any = None) -> dict[str, Any]:
    if isinstance(type_, type):
        if type_ is list:
            type_ = "list"
        elif type_ in _PY_TYPES:
            type_ = _PY_TYPES[type_]

    if type_ in ("list", "array"):
        items: dict[str, Any] = {}
        if isinstance(of, dict):
            items, _ = _compile_field(name, of)
        elif of is not None:
            items = _render_type(name, of)
        return {"type": "array", "items": items}

    if isinstance(type_, str) and type_ in _TYPE_SCHEMAS:
        return dict(_TYPE_SCHEMAS[type_])

    raise ConfigurationError(
        f"Schema field {name!r} has unsupported type {type_!r}",
        hint=f"Supported types: {sorted([*_TYPE_SCHEMAS, 'list'])}",
    )


@dataclass(frozen=True)
class Tool:
    """A callable tool exposed to the model."""

    name: str
    description: str
    parameter_schema: CompiledSchema
    callback: Callable[[dict[str, Any]], Any] | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not _TOOL_NAME_RE.match(self.name):
            raise ConfigurationError(
                f"Invalid tool name: {self.name!r}",
                hint="Tool names may use letters, digits, '_' and '-' (max 64).",
            )

    @classmethod
    def new(
        cls,
        *,
        name: str,
        description: str,
        parameter_schema: Any,
        callback: Callable[[dict[str, Any]], Any] | None = None,
    ) -> Tool:
        """Build a tool, compiling *parameter_schema* on the way."""
        return cls(
            name=name,
            description=description,
            parameter_schema=compile_schema(parameter_schema),
            callback=callback,
        )

    def to_schema(self, flavor: str = "openai") -> dict[str, Any]:
        """Render the wire-level tool definition."""
        if flavor != "openai":
            raise InvalidParameterError(f"Unsupported tool schema flavor: {flavor!r}")
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": deepcopy(self.parameter_schema.schema),
            },
        }

    def execute(self, arguments: dict[str, Any]) -> Any:
        if self.callback is None:
            raise InvalidParameterError(f"Tool {self.name!r} has no callback")
        return self.callback(arguments)


def structured_output_tool(compiled: CompiledSchema) -> Tool:
    """Synthetic tool carrying *compiled* as its parameter schema.

    The tool is never executed; it exists so the schema can be rendered the
    same way as any other function definition.
    """
    return Tool(
        name=STRUCTURED_OUTPUT_TOOL,
        description="Generate structured output matching the provided schema",
        parameter_schema=compiled,
        callback=lambda _args: "structured output generated",
    )


def schema_properties_json(tool: Tool) -> str:
    """Pretty-printed JSON of the tool's parameter ``properties``."""
    properties = tool.to_schema("openai")["function"]["parameters"].get(
        "properties", {}
    )
    return json.dumps(properties, indent=2, ensure_ascii=False)
