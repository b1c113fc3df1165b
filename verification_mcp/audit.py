"""
Audit every tool call: who, purpose, patient/policy, tool, and which fields
were disclosed. Only field paths are recorded, never values.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

import anyio
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import ActorType
from .store import AUDIT_LOGS, RecordSource

logger = logging.getLogger(__name__)


class AuditLogEntry(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    request_id: str
    actor_id: str
    actor_type: ActorType
    purpose: str
    patient_id: Optional[str] = None
    policy_id: Optional[str] = None
    tool_name: str
    fields_returned: List[str] = Field(default_factory=list, alias="fieldsReturnedJson")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AuditRecorder:
    """
    Append-only audit writer.

    Failures are logged and swallowed: the business response is never held
    hostage to audit durability. Alerting on the `audit write failed` log
    line is expected to happen outside this process.
    """

    def __init__(self, source: RecordSource) -> None:
        self._source = source

    async def write(self, entry: AuditLogEntry) -> None:
        data = entry.model_dump(by_alias=True, mode="json")
        try:
            await anyio.to_thread.run_sync(self._source.append, AUDIT_LOGS, data)
        except Exception:
            logger.exception(
                "MCP audit write failed (request_id=%s tool=%s)",
                entry.request_id,
                entry.tool_name,
            )


def collect_field_paths(obj: Any, prefix: str = "") -> List[str]:
    """
    Collect structural paths from a JSON-like value.

    >>> collect_field_paths({"patient": {"first_name": "x"}, "ids": ["a", "b"]})
    ['patient.first_name', 'ids[0]', 'ids[1]']

    Leaves contribute their path and nothing else; the value is discarded.
    """
    paths: List[str] = []
    if obj is None:
        return paths
    if isinstance(obj, (list, tuple)):
        for index, item in enumerate(obj):
            item_path = f"{prefix}[{index}]"
            if _is_branch(item):
                paths.extend(collect_field_paths(item, item_path))
            else:
                paths.append(item_path)
        return paths
    if isinstance(obj, dict):
        for key, value in obj.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            if _is_branch(value):
                paths.extend(collect_field_paths(value, path))
            else:
                paths.append(path)
        return paths
    if prefix:
        paths.append(prefix)
    return paths


def _is_branch(value: Any) -> bool:
    # Scalars, dates and anything else non-container are leaves.
    return isinstance(value, (dict, list, tuple))
