"""Transports: HTTP (FastAPI) and line-oriented stdio."""

from codebox.api.server import create_app, run_http_server
from codebox.api.stdio import handle_line, serve_stdio

__all__ = ["create_app", "run_http_server", "handle_line", "serve_stdio"]
