from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import authenticate_headers
from .config import Settings, get_settings
from .dispatcher import ToolDispatcher
from .errors import BAD_REQUEST, NOT_FOUND, AuthError
from .main import create_dispatcher
from .models import ActorContext

logger = logging.getLogger(__name__)

SERVICE_NAME = "insurance-verification-mcp"
SERVICE_VERSION = "0.1.0"

GATEWAY_HEADERS = [
    "Content-Type",
    "X-API-Key",
    "X-Actor-Id",
    "X-Actor-Type",
    "X-Purpose",
    "X-Request-Id",
    "X-Allow-Unmasked",
]


def _meta(ctx: ActorContext, started: float) -> Dict[str, Any]:
    return {
        "request_id": ctx.request_id,
        "latency_ms": int((time.perf_counter() - started) * 1000),
    }


def create_http_app(
    settings: Optional[Settings] = None,
    dispatcher: Optional[ToolDispatcher] = None,
) -> FastAPI:
    """
    Create the FastAPI app exposing the gateway over plain JSON/HTTP.

    Routes are served both at the root and under `/mcp`:
    - GET  /health  liveness, no auth
    - GET  /tools   tool names, descriptions and schemas
    - POST /call    `{"tool": ..., "input": {...}}` -> `{output, error?, meta}`

    Every response body is JSON with an `error` object when applicable;
    tracebacks never reach the caller.
    """
    settings = settings or get_settings()
    dispatcher = dispatcher or create_dispatcher(settings)

    app = FastAPI(
        title="Insurance Verification MCP Gateway",
        version=SERVICE_VERSION,
        description="Audited, minimum-necessary insurance verification tools for AI agents",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origin_list),
        allow_methods=["GET", "POST"],
        allow_headers=GATEWAY_HEADERS,
    )

    def require_actor(request: Request) -> ActorContext:
        return authenticate_headers(request.headers, settings)

    @app.exception_handler(AuthError)
    async def auth_error(request: Request, exc: AuthError) -> JSONResponse:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.code)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = NOT_FOUND if exc.status_code == 404 else BAD_REQUEST
        message = "Not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": code, "message": message}},
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "INTERNAL_ERROR", "message": "Internal error"}},
        )

    router = APIRouter()

    @router.get("/health")
    async def health() -> Dict[str, Any]:
        """Health check endpoint."""
        return {"ok": True}

    @router.get("/tools")
    async def list_tools(ctx: ActorContext = Depends(require_actor)) -> Dict[str, Any]:
        return {"tools": dispatcher.registry.describe()}

    @router.post("/call")
    async def call_tool(
        request: Request,
        ctx: ActorContext = Depends(require_actor),
    ) -> JSONResponse:
        started = time.perf_counter()

        # Body is parsed by hand so malformed JSON maps to BAD_REQUEST, after auth.
        try:
            body = await request.json()
        except ValueError:
            body = None
        tool_name = body.get("tool") if isinstance(body, dict) else None
        if not tool_name or not isinstance(tool_name, str):
            return JSONResponse(
                status_code=400,
                content={
                    "output": {},
                    "error": {
                        "code": BAD_REQUEST,
                        "message": 'Missing or invalid "tool" in body',
                    },
                    "meta": _meta(ctx, started),
                },
            )

        raw_input = body.get("input")
        invocation = await dispatcher.invoke(
            tool_name, raw_input if raw_input is not None else {}, ctx
        )

        envelope = invocation.to_envelope()
        envelope["meta"] = _meta(ctx, started)
        status = 400 if invocation.error is not None else 200
        if invocation.error is not None:
            logger.info(
                "Tool %s returned %s (request_id=%s)",
                tool_name,
                invocation.error.code,
                ctx.request_id,
            )
        return JSONResponse(status_code=status, content=envelope)

    app.include_router(router)
    app.include_router(router, prefix="/mcp")

    return app


async def run_http_server(settings: Settings) -> None:
    """Run the HTTP server using uvicorn."""
    import uvicorn

    app = create_http_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
    server = uvicorn.Server(config)
    await server.serve()
