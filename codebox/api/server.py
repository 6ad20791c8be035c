"""HTTP transport for codebox tools.

Routes
------
  GET   /health                → liveness + open token count
  GET   /tools                 → tool definitions
  POST  /tools/{tool_name}     → JSON arguments in, ToolResult out

Every tool response is HTTP 200 with ``success`` false on failure; only an
unknown tool name is a 404. Requests carrying an ``Origin`` header outside
``allowed_origins`` are rejected with 403. The idle sweeper runs for the
lifetime of the app, and every open token is closed on shutdown.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from codebox import __version__
from codebox.config import ServerSettings
from codebox.factory import Runtime
from codebox.utils.logging import get_logger

logger = get_logger(__name__)


def create_app(runtime: Runtime, settings: ServerSettings) -> FastAPI:
    """Build the FastAPI application.

    Args:
        runtime: Wired components (store, tools, sweeper).
        settings: Server settings (allowed origins).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting codebox HTTP server")
        runtime.sweeper.start()
        yield
        logger.info("Shutting down codebox HTTP server")
        await runtime.shutdown()

    app = FastAPI(
        title="Codebox",
        description="Run commands in docker against registered workspaces",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )

    allowed_origins = set(settings.allowed_origins)

    @app.middleware("http")
    async def check_origin(request: Request, call_next):
        origin = request.headers.get("origin")
        if origin and origin not in allowed_origins and "*" not in allowed_origins:
            logger.warning(f"[http] rejected request from origin {origin}")
            response = JSONResponse(status_code=403, content={"detail": "Origin not allowed"})
        else:
            response = await call_next(request)
            if origin:
                response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["X-Content-Type-Options"] = "nosniff"
        return response

    # ── health ────────────────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "service": "codebox",
            "version": __version__,
            "open_tokens": len(runtime.store),
        }

    # ── tools ─────────────────────────────────────────────────────────────

    @app.get("/tools")
    async def list_tools() -> dict[str, Any]:
        return {
            "tools": [tool.model_dump() for tool in runtime.tools.get_tool_definitions()]
        }

    @app.post("/tools/{tool_name}")
    async def call_tool(
        tool_name: str,
        arguments: dict[str, Any] | None = Body(default=None),
    ) -> dict[str, Any]:
        if tool_name not in runtime.tools.available_tools:
            raise HTTPException(status_code=404, detail=f"Unknown tool: {tool_name}")
        result = await runtime.tools.execute(tool_name, arguments or {})
        return result.model_dump()

    return app


async def run_http_server(runtime: Runtime, settings: ServerSettings) -> None:
    """Serve the HTTP transport with uvicorn until interrupted."""
    app = create_app(runtime, settings)

    server_config = uvicorn.Config(
        app=app,
        host=settings.host,
        port=settings.port,
        log_level="warning",
        access_log=False,
    )
    server = uvicorn.Server(server_config)

    logger.info(f"Codebox HTTP server listening at http://{settings.host}:{settings.port}")
    await server.serve()
