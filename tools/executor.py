"""Tool executor: argument normalization, dispatch and per-call telemetry."""

from __future__ import annotations

import json
import logging
from typing import Any

from agent.exceptions import (
    ArgumentDecodeError,
    BackendError,
    ToolError,
    ToolExecutionError,
    UnknownToolError,
)
from agent.response import RawArguments
from agent.telemetry import STATUS_ERROR, Telemetry, format_stack
from ecommerce.client import EcommerceClient
from tools.base_tool import Tool
from tools.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


def normalize_arguments(tool: type[Tool], arguments: dict | RawArguments) -> dict:
    """
    Turn model-supplied arguments into a plain dict.

    A JSON string for the whole argument object must decode to an object.
    A JSON string for a list-valued argument that fails to decode becomes [].
    """
    if isinstance(arguments, RawArguments):
        text = arguments.text.strip()
        if not text:
            args: Any = {}
        else:
            try:
                args = json.loads(text)
            except json.JSONDecodeError as e:
                raise ArgumentDecodeError(
                    f"Invalid JSON arguments for {tool.name}: {e}", tool.name
                ) from e
    else:
        args = arguments

    if args is None:
        args = {}
    if not isinstance(args, dict):
        raise ArgumentDecodeError(
            f"Arguments for {tool.name} must be an object, got {type(args).__name__}",
            tool.name,
        )

    args = dict(args)
    for key in tool.list_args:
        value = args.get(key)
        if not isinstance(value, str):
            continue
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Failed to parse %s.%s, using empty list: %r", tool.name, key, value)
            decoded = []
        if not isinstance(decoded, list):
            logger.warning("%s.%s did not decode to a list, using empty list", tool.name, key)
            decoded = []
        args[key] = decoded
    return args


class ToolExecutor:
    """Runs one requested tool call against the ecommerce backend."""

    def __init__(
        self,
        registry: ToolRegistry,
        client: EcommerceClient,
        telemetry: Telemetry,
        agent_name: str = "Ecommerce Agent",
    ):
        self.registry = registry
        self.client = client
        self.telemetry = telemetry
        self.agent_name = agent_name

    async def execute(self, tool_name: str, arguments: dict | RawArguments) -> Any:
        """Execute a tool and return its result. Failures are reported, then re-raised."""
        with self.telemetry.start_operation(
            "gen_ai.execute_tool",
            f"execute_tool {tool_name}",
            {
                "gen_ai.tool.name": tool_name,
                "gen_ai.tool.input": _dump_input(arguments),
            },
        ) as span:
            try:
                tool_cls = self.registry.get_tool_class(tool_name)
                if tool_cls is None:
                    raise UnknownToolError(tool_name)

                args = normalize_arguments(tool_cls, arguments)
                span.set_attribute("gen_ai.tool.input", json.dumps(args, default=str))

                missing = [name for name in tool_cls.required_args() if name not in args]
                if missing:
                    raise ToolExecutionError(
                        f"Missing required argument(s) for {tool_name}: {', '.join(missing)}",
                        tool_name,
                    )

                tool = tool_cls(self.client)
                try:
                    result = await tool.execute(**args)
                except Exception as e:
                    raise BackendError(f"{tool_name} failed: {e}", tool_name) from e

                span.set_attribute("gen_ai.tool.output", json.dumps(result, default=str))
                return result
            except ToolError as e:
                reason = str(e)
                span.set_status(STATUS_ERROR, "tool_execution_failed")
                span.set_attribute("gen_ai.tool.error", reason)
                span.set_attribute("gen_ai.tool.error_stack", format_stack(e))
                self.telemetry.capture_exception(
                    e,
                    tags={
                        "component": "tool_execution",
                        "tool_name": tool_name,
                        "error_type": "tool_error",
                    },
                    contexts={
                        "tool_context": {
                            "tool_name": tool_name,
                            "tool_input": _dump_input(arguments),
                            "agent": self.agent_name,
                            "failure_reason": reason,
                        },
                    },
                )
                raise


def _dump_input(arguments: dict | RawArguments) -> str:
    if isinstance(arguments, RawArguments):
        return arguments.text
    return json.dumps(arguments, default=str)
