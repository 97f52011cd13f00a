"""
Tool (function calling) utilities for Claude Hub
"""

import inspect
import json
import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Type, Union, get_args, get_origin, get_type_hints

import jsonschema
from pydantic import BaseModel, ValidationError

from ..core.exceptions import ToolError
from ..core.types import Message, MessageParam, Role, ToolDefinition, ToolResultBlock, ToolUseBlock

# Set up logger
logger = logging.getLogger(__name__)

TOOL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")


class ToolBuilder:
    """
    Fluent builder for a ToolDefinition

    Example:
        weather = (
            ToolBuilder("get_weather")
            .description("Current weather for a city")
            .property("city", {"type": "string"}, required=True)
            .build()
        )
    """

    def __init__(self, name: str):
        self._name = name
        self._description: Optional[str] = None
        self._schema: Optional[Dict[str, Any]] = None
        self._properties: Dict[str, Dict[str, Any]] = {}
        self._required: List[str] = []

    def description(self, description: str) -> "ToolBuilder":
        self._description = description
        return self

    def schema(self, schema: Dict[str, Any]) -> "ToolBuilder":
        """Use a complete input schema; properties added later are merged into it"""
        self._schema = dict(schema)
        return self

    def property(
        self,
        name: str,
        schema: Dict[str, Any],
        required: bool = False,
        description: Optional[str] = None,
    ) -> "ToolBuilder":
        prop = dict(schema)
        if description:
            prop["description"] = description
        self._properties[name] = prop
        if required and name not in self._required:
            self._required.append(name)
        return self

    def build(self) -> ToolDefinition:
        """
        Raises:
            ToolError: If the name or schema is invalid
        """
        schema = dict(self._schema) if self._schema is not None else {"type": "object", "properties": {}}
        if self._properties:
            schema["properties"] = {**schema.get("properties", {}), **self._properties}
        if self._required:
            schema["required"] = list(dict.fromkeys([*schema.get("required", []), *self._required]))
        return _tool_definition(self._name, self._description, schema)


def _tool_definition(name: str, description: Optional[str], schema: Dict[str, Any]) -> ToolDefinition:
    if not TOOL_NAME_PATTERN.match(name or ""):
        raise ToolError(f"Invalid tool name {name!r}: use 1-64 letters, digits, '_' or '-'")
    try:
        jsonschema.Draft202012Validator.check_schema(schema)
    except jsonschema.SchemaError as e:
        raise ToolError(f"Invalid input schema for tool '{name}': {e.message}") from e
    try:
        return ToolDefinition(name=name, description=description, input_schema=schema)
    except ValidationError as e:
        raise ToolError(f"Invalid tool definition '{name}': {e}") from e


def function_to_tool(
    func: Callable,
    description: Optional[str] = None,
    parameter_descriptions: Optional[Dict[str, str]] = None,
    name: Optional[str] = None,
) -> ToolDefinition:
    """
    Convert a Python function to a tool definition

    Args:
        func: The function to convert
        description: Optional tool description (falls back to the docstring)
        parameter_descriptions: Optional descriptions for parameters
        name: Tool name (defaults to the function name)

    Returns:
        ToolDefinition whose input schema mirrors the function signature

    Raises:
        ToolError: If the function cannot be converted
    """
    tool_name = name or func.__name__
    if description is None:
        description = inspect.getdoc(func) or f"Function {tool_name}"

    try:
        signature = inspect.signature(func)
        type_hints = get_type_hints(func)
    except (TypeError, ValueError, NameError) as e:
        raise ToolError(f"Failed to inspect function '{tool_name}': {e}") from e

    properties: Dict[str, Any] = {}
    required: List[str] = []
    for param_name, param in signature.parameters.items():
        if param_name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        param_schema = _type_to_json_schema(type_hints.get(param_name, Any))
        if parameter_descriptions and parameter_descriptions.get(param_name):
            param_schema["description"] = parameter_descriptions[param_name]
        properties[param_name] = param_schema
        if param.default is inspect.Parameter.empty:
            required.append(param_name)

    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return _tool_definition(tool_name, description, schema)


def _type_to_json_schema(type_hint: Any) -> Dict[str, Any]:
    """
    Convert a Python type hint to a JSON schema
    """
    if type_hint is Any:
        return {}
    if type_hint is str:
        return {"type": "string"}
    if type_hint is bool:
        return {"type": "boolean"}
    if type_hint is int:
        return {"type": "integer"}
    if type_hint is float:
        return {"type": "number"}
    if type_hint in (list, List):
        return {"type": "array", "items": {}}
    if type_hint in (dict, Dict):
        return {"type": "object"}

    origin = get_origin(type_hint)
    args = get_args(type_hint)
    if origin is Union:
        non_null = [a for a in args if a is not type(None)]
        if len(non_null) == 1:
            # Optional[...]
            return _type_to_json_schema(non_null[0])
        return {"anyOf": [_type_to_json_schema(a) for a in non_null]}
    if origin in (list, List) and args:
        return {"type": "array", "items": _type_to_json_schema(args[0])}
    if origin in (dict, Dict) and len(args) == 2 and args[0] is str:
        return {"type": "object", "additionalProperties": _type_to_json_schema(args[1])}

    if isinstance(type_hint, type) and issubclass(type_hint, BaseModel):
        return type_hint.model_json_schema()

    return {"type": "string"}


def pydantic_model_to_tool(
    model_class: Type[BaseModel],
    name: str,
    description: Optional[str] = None,
) -> ToolDefinition:
    """
    Convert a Pydantic model to a tool whose input is an instance of the model

    Raises:
        ToolError: If the model cannot be converted
    """
    schema = model_class.model_json_schema()
    if description is None:
        description = schema.pop("description", None) or f"Function {name}"
    schema.pop("title", None)
    return _tool_definition(name, description, schema)


def validate_tool_input(tool: ToolDefinition, tool_input: Dict[str, Any]) -> None:
    """
    Validate a tool_use input against the tool's input schema

    Raises:
        ToolError: If the input does not match the schema
    """
    try:
        jsonschema.validate(instance=tool_input, schema=tool.input_schema)
    except jsonschema.ValidationError as e:
        raise ToolError(f"Invalid input for tool '{tool.name}': {e.message}") from e


def _format_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    try:
        return json.dumps(result)
    except (TypeError, ValueError):
        return str(result)


def execute_tool_use(
    block: ToolUseBlock,
    functions: Dict[str, Callable],
    tools: Optional[Iterable[ToolDefinition]] = None,
) -> ToolResultBlock:
    """
    Run the function a tool_use block asks for

    Unknown tools, invalid input and exceptions raised by the function become
    ``is_error`` results so the model can see what went wrong.

    Args:
        block: The tool_use block from the assistant message
        functions: Available functions (name -> function)
        tools: Tool definitions to validate the input against, if given

    Returns:
        ToolResultBlock answering the block
    """
    function = functions.get(block.name)
    if function is None:
        logger.warning(f"Model requested unknown tool '{block.name}'")
        return ToolResultBlock.of(block.id, f"Error: tool '{block.name}' not found", is_error=True)

    definition = next((t for t in tools or () if t.name == block.name), None)
    try:
        if definition is not None:
            validate_tool_input(definition, block.input)
        result = function(**block.input)
    except Exception as e:
        logger.warning(f"Tool '{block.name}' failed: {type(e).__name__}: {e}")
        return ToolResultBlock.of(block.id, f"Error: {e}", is_error=True)

    logger.debug(f"Tool '{block.name}' completed for {block.id}")
    return ToolResultBlock.of(block.id, _format_result(result))


def execute_tool_uses(
    message: Message,
    functions: Dict[str, Callable],
    tools: Optional[Iterable[ToolDefinition]] = None,
) -> MessageParam:
    """
    Answer every tool_use block of an assistant message

    Returns:
        A user message carrying one tool_result per tool_use, in order

    Raises:
        ToolError: If the message contains no tool_use blocks
    """
    tool_uses = message.tool_uses
    if not tool_uses:
        raise ToolError("Message contains no tool_use blocks")
    tools = list(tools) if tools is not None else None
    results = tuple(execute_tool_use(block, functions, tools) for block in tool_uses)
    return MessageParam(role=Role.USER, content=results)


def create_tool_registry(
    functions: Dict[str, Callable],
    descriptions: Optional[Dict[str, str]] = None,
    parameter_descriptions: Optional[Dict[str, Dict[str, str]]] = None,
) -> Dict[str, Any]:
    """
    Create a registry of tools from functions

    Returns:
        A dictionary with ``tools`` (ToolDefinitions) and ``available_functions``
    """
    tools = []
    for name, func in functions.items():
        description = descriptions.get(name) if descriptions else None
        params_desc = parameter_descriptions.get(name) if parameter_descriptions else None
        tools.append(function_to_tool(func, description, params_desc, name=name))

    return {
        "tools": tools,
        "available_functions": functions,
    }
