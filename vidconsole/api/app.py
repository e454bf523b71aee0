"""FastAPI application setup with lifespan and exception handlers."""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vidconsole import __version__
from vidconsole.api.routes import router
from vidconsole.config import settings
from vidconsole.orchestrator import (
    AssetTaskTracker,
    ManualWorkflow,
    QuickStart,
    SessionPoller,
    WorkflowController,
)
from vidconsole.services.engine_client import (
    EngineClient,
    close_engine_client,
    get_engine_client,
)

logger = logging.getLogger(__name__)


def create_app(client: Optional[EngineClient] = None) -> FastAPI:
    """Build the control API around one engine client.

    Args:
        client: Engine client to drive; the shared singleton when omitted.
            An injected client is left open on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager.

        Startup:
            - Wire controller, tracker, poller and call sites to the client

        Shutdown:
            - Stop the polling loop and drop pending auto-advances
            - Close the shared engine client
        """
        # Startup
        logger.info("Starting Video Console API...")
        engine = client or await get_engine_client()
        controller = WorkflowController()
        tracker = AssetTaskTracker(engine, controller)
        app.state.client = engine
        app.state.manual = ManualWorkflow(engine, controller, tracker)
        app.state.quick = QuickStart(engine, SessionPoller(engine))
        logger.info("API startup complete (engine at %s)", engine.base_url)

        yield

        # Shutdown
        logger.info("Shutting down Video Console API...")
        app.state.quick.stop()
        app.state.manual.controller.close()
        if client is None:
            await close_engine_client()
        logger.info("API shutdown complete")

    app = FastAPI(
        title="Video Console API",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include router with all endpoints
    app.include_router(router)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler to prevent stack traces in API responses."""
        logger.error(
            "Unhandled exception in %s %s: %s: %s",
            request.method, request.url.path, type(exc).__name__, exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "message": f"Internal server error: {exc}",
                "data": None,
            },
        )

    return app


app = create_app()
