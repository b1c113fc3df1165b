"""
Tool registration utilities.

Each module in this package exposes a `register_tools(registry, ...)` function
that adds its tools to the central registry. The registry is built once at
process start and only read afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from mcp import types
from pydantic import BaseModel

from ..models import ActorContext


@dataclass(frozen=True)
class ToolResult:
    """Handler output plus the record ids the audit row is keyed on."""

    output: Dict[str, Any]
    patient_id: Optional[str] = None
    policy_id: Optional[str] = None


ToolHandler = Callable[[Any, ActorContext], Awaitable[ToolResult]]


@dataclass(frozen=True)
class RegisteredTool:
    spec: types.Tool
    input_model: Type[BaseModel]
    output_schema: Dict[str, Any]
    handler: ToolHandler


class ToolRegistry:
    """
    In-memory registry mapping tool names to their schemas and handlers.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, RegisteredTool] = {}

    def add_tool(
        self,
        tool: types.Tool,
        input_model: Type[BaseModel],
        output_schema: Dict[str, Any],
        handler: ToolHandler,
    ) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = RegisteredTool(
            spec=tool,
            input_model=input_model,
            output_schema=output_schema,
            handler=handler,
        )

    def list_tools(self) -> List[types.Tool]:
        return [rt.spec for rt in self._tools.values()]

    def describe(self) -> List[Dict[str, Any]]:
        """Schema introspection payload for clients generating bindings."""
        return [
            {
                "name": rt.spec.name,
                "description": rt.spec.description,
                "input_schema": rt.spec.inputSchema,
                "output_schema": rt.output_schema,
            }
            for rt in self._tools.values()
        ]

    def get(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)
