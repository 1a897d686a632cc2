"""
FastAPI backend for the livecode playground.

The editor streams its contents over the ``/ws`` edit channel; each edit is
persisted, compiled and published to the user's workspace, and the browser
is told to reload its preview frame, which fetches the artifact from
``/preview/<user_id>/<file>``.
"""

import os
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, ORJSONResponse

from api.app_config import PlaygroundConfig
from api.compiler import build_compiler
from api.pipeline import EditPipeline
from api.preview import router as preview_router
from api.sessions import SessionRegistry
from api.shared.logger import get_logger, setup_logging
from api.source_store import SourceStore
from api.system import router as system_router
from api.workspace import router as workspace_router
from edit_channel import EditChannelManager

logger = get_logger(__name__)


def create_app(config: Optional[PlaygroundConfig] = None) -> FastAPI:
    """Build the playground application and its services."""
    config = config or PlaygroundConfig.from_env()
    setup_logging(config.log_level)

    app = FastAPI(
        title="livecode playground API",
        description="Edit, compile and preview pipeline for the live coding playground",
        version="1.0.0",
        default_response_class=ORJSONResponse,
    )

    store = SourceStore(
        config.workspace_root,
        source_file_name=config.source_file_name,
        artifact_file_name=config.artifact_file_name,
        assets_dir=config.preview_assets_dir,
    )
    pipeline = EditPipeline(
        store,
        build_compiler(config),
        max_concurrent_compiles=config.max_concurrent_compiles,
        default_source=config.default_source,
    )
    sessions = SessionRegistry()
    edit_channel = EditChannelManager(
        pipeline,
        sessions,
        cookie_name=config.session_cookie_name,
        cookie_secure=config.cookie_secure,
        single_user_id=config.single_user_id,
    )

    app.state.config = config
    app.state.store = store
    app.state.pipeline = pipeline
    app.state.sessions = sessions
    app.state.edit_channel = edit_channel

    # ============= Exception Handlers for Error Logging =============

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Log HTTP exceptions and return JSON response."""
        # Only log 5xx errors (server errors)
        if exc.status_code >= 500:
            logger.error("%s failed with %d: %s", request.url.path, exc.status_code, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Log unexpected exceptions and return JSON response."""
        logger.exception("Unhandled %s on %s", type(exc).__name__, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # ============= Session cookie =============

    @app.middleware("http")
    async def session_cookie_middleware(request: Request, call_next):
        """Resolve the session cookie, issuing a new one when absent or unknown."""
        token, is_new = sessions.resolve(request.cookies.get(config.session_cookie_name))
        request.state.session_token = token
        request.state.session_is_new = is_new
        response = await call_next(request)
        if is_new:
            response.set_cookie(
                config.session_cookie_name,
                token,
                path="/",
                httponly=True,
                secure=config.cookie_secure,
                samesite="strict",
            )
        return response

    # Include API routes
    app.include_router(system_router, prefix="/api", tags=["system"])
    app.include_router(workspace_router, prefix="/api", tags=["workspace"])
    app.include_router(preview_router)

    # ============= WebSocket Endpoint =============

    @app.websocket("/ws")
    async def edit_channel_endpoint(websocket: WebSocket):
        """
        Edit channel for one editor tab.

        Message format (JSON):
        - edit: {"user": "<id>", "sourceLines": ["..."]}
        - resume: {"resume": true, "userId": "<id>"}

        The server answers an edit with {"reload": true} once its artifact is
        published, and a resume with {"resume": true, "content": ["..."]}.
        """
        connection = await edit_channel.connect(websocket)

        try:
            while True:
                message_text = await websocket.receive_text()
                response = await edit_channel.handle_message(connection, message_text)
                if response:
                    await edit_channel.send_to_connection(connection, response)

        except WebSocketDisconnect:
            await edit_channel.disconnect(connection)
        except Exception as e:
            logger.error("Edit channel error: %s", e)
            await edit_channel.disconnect(connection)

    logger.info("Workspaces stored in %s", config.workspace_root)
    return app


app = create_app()


if __name__ == "__main__":
    import argparse

    defaults = app.state.config
    parser = argparse.ArgumentParser(description="livecode playground server")
    parser.add_argument(
        "--port",
        type=int,
        default=defaults.port,
        help="Port to run the server on (default: 3200 or LIVECODE_PORT env var)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=defaults.host,
        help="Host to bind to (default: 127.0.0.1 or LIVECODE_HOST env var)",
    )
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Enable auto-reload (default: off)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.environ.get("LIVECODE_LOG_LEVEL", "info"),
        help="Log level (default: info or LIVECODE_LOG_LEVEL env var)",
    )
    args = parser.parse_args()

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )
