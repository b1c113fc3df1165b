from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

import anyio
from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from .audit import AuditRecorder
from .auth import authenticate_headers
from .config import Settings, get_settings
from .data_access import DataAccess
from .dispatcher import ToolDispatcher
from .errors import AuthError
from .firebase_client import init_firebase
from .models import REQUIRED_PURPOSE
from .store import FirestoreRecordSource, InMemoryRecordSource, RecordSource
from .tools import ToolRegistry, verification_tools

logger = logging.getLogger(__name__)


def build_record_source(settings: Settings) -> RecordSource:
    """Pick the persistence collaborator configured for this process."""
    if settings.store_backend == "memory":
        if settings.seed_file:
            return InMemoryRecordSource.from_seed_file(settings.seed_file)
        logger.warning("Using an empty in-memory record store")
        return InMemoryRecordSource()
    init_firebase(settings)
    return FirestoreRecordSource()


def create_dispatcher(
    settings: Settings,
    source: Optional[RecordSource] = None,
) -> ToolDispatcher:
    """
    Build the registry and dispatcher shared by every transport.
    """
    source = source if source is not None else build_record_source(settings)

    registry = ToolRegistry()
    verification_tools.register_tools(registry, data=DataAccess(source))

    return ToolDispatcher(registry, audit=AuditRecorder(source))


def stdio_headers(settings: Settings) -> Dict[str, str]:
    """
    Synthesize the auth headers for a stdio call.

    stdio has no per-request headers, so the identity comes from settings and
    every call gets a fresh request id. It still goes through the auth gate.
    """
    headers = {
        "X-API-Key": settings.stdio_api_key or "",
        "X-Actor-Id": settings.stdio_actor_id,
        "X-Actor-Type": settings.stdio_actor_type,
        "X-Purpose": REQUIRED_PURPOSE,
        "X-Request-Id": str(uuid.uuid4()),
    }
    if settings.stdio_allow_unmasked:
        headers["X-Allow-Unmasked"] = "true"
    return headers


async def stdio_call(
    settings: Settings,
    dispatcher: ToolDispatcher,
    name: str,
    arguments: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """Run one stdio tool call and return the same envelope `/call` returns."""
    started = time.perf_counter()
    try:
        ctx = authenticate_headers(stdio_headers(settings), settings)
    except AuthError as exc:
        return {"output": {}, "error": exc.to_dict()}

    envelope = (await dispatcher.invoke(name, arguments or {}, ctx)).to_envelope()
    envelope["meta"] = {
        "request_id": ctx.request_id,
        "latency_ms": int((time.perf_counter() - started) * 1000),
    }
    return envelope


def create_server(
    settings: Optional[Settings] = None,
    dispatcher: Optional[ToolDispatcher] = None,
) -> Server:
    """
    Create and configure the MCP server with all registered tools.
    """
    settings = settings or get_settings()
    dispatcher = dispatcher or create_dispatcher(settings)
    registry = dispatcher.registry

    server = Server("insurance-verification-mcp")

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return registry.list_tools()

    # Input is validated by the dispatcher so errors keep the gateway envelope.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
        envelope = await stdio_call(settings, dispatcher, name, arguments)
        return [types.TextContent(type="text", text=json.dumps(envelope))]

    return server


async def run_stdio_server(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    """
    Entrypoint for running the gateway.

    Supports two transport modes:
    - http: FastAPI app served by uvicorn (default)
    - stdio: MCP over stdin/stdout for a locally spawned agent
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    if settings.transport == "http":
        from .http_server import run_http_server

        anyio.run(run_http_server, settings)
    else:
        anyio.run(run_stdio_server, create_server(settings))


if __name__ == "__main__":
    main()
