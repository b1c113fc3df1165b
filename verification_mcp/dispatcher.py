from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import anyio
from pydantic import ValidationError

from .audit import AuditLogEntry, AuditRecorder, collect_field_paths
from .errors import EXECUTION_ERROR, UNKNOWN_TOOL, VALIDATION_ERROR, GatewayError
from .models import ActorContext
from .tools import ToolRegistry, ToolResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolInvocation:
    output: Dict[str, Any]
    error: Optional[GatewayError] = None

    def to_envelope(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"output": self.output}
        if self.error is not None:
            body["error"] = self.error.to_dict()
        return body


def _validation_details(exc: ValidationError) -> List[Dict[str, Any]]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "input",
            "message": err["msg"],
        }
        for err in exc.errors()
    ]


class ToolDispatcher:
    """
    Single lookup -> validate -> call -> audit pipeline.

    Unknown tools and invalid input are rejected before any data is read and
    are not audited. Every call that reaches a handler is audited, including
    "not found" results and handler crashes.
    """

    def __init__(self, registry: ToolRegistry, audit: AuditRecorder) -> None:
        self._registry = registry
        self._audit = audit

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def invoke(self, tool_name: str, raw_input: Any, ctx: ActorContext) -> ToolInvocation:
        tool = self._registry.get(tool_name)
        if tool is None:
            return ToolInvocation(
                output={},
                error=GatewayError(UNKNOWN_TOOL, f"Unknown tool: {tool_name}"),
            )

        try:
            params = tool.input_model.model_validate(raw_input if raw_input is not None else {})
        except ValidationError as exc:
            details = _validation_details(exc)
            message = "; ".join(f"{d['field']}: {d['message']}" for d in details)
            return ToolInvocation(
                output={},
                error=GatewayError(VALIDATION_ERROR, message, details=details),
            )

        try:
            result = await tool.handler(params, ctx)
        except Exception:
            logger.exception(
                "Tool %s failed (request_id=%s)", tool_name, ctx.request_id
            )
            await self._record(
                tool_name,
                ctx,
                ToolResult(
                    output={},
                    patient_id=getattr(params, "patient_id", None),
                    policy_id=getattr(params, "policy_id", None),
                ),
            )
            return ToolInvocation(
                output={},
                error=GatewayError(EXECUTION_ERROR, "Tool execution failed"),
            )

        await self._record(tool_name, ctx, result)
        return ToolInvocation(output=result.output)

    async def _record(self, tool_name: str, ctx: ActorContext, result: ToolResult) -> None:
        entry = AuditLogEntry(
            request_id=ctx.request_id,
            actor_id=ctx.actor_id,
            actor_type=ctx.actor_type,
            purpose=ctx.purpose,
            patient_id=result.patient_id,
            policy_id=result.policy_id,
            tool_name=tool_name,
            # Paths come from the outgoing (already masked) payload.
            fields_returned=collect_field_paths(result.output),
        )
        # The handler has finished; the audit attempt survives cancellation.
        with anyio.CancelScope(shield=True):
            await self._audit.write(entry)
