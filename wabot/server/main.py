"""
FastAPI application factory for WaBot.

Provides:
- Application creation with lifecycle management
- Router registration
- CORS configuration
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from wabot import __version__
from wabot.auto_reply.poller import AutoReplyPoller
from wabot.auto_reply.service import AutoReplyService
from wabot.config.schema import Config
from wabot.server.routers import system_router, whatsapp_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Pollers are started on demand through the API and all of them are
    stopped on shutdown.
    """
    logger.info("Starting WaBot server...")
    logger.info(f"Auto-reply rules: {', '.join(r.name for r in app.state.service.classifier.rules)}")

    yield

    logger.info("Shutting down WaBot server...")
    await app.state.poller.stop_all()


def create_app(
    config: Config,
    service: AutoReplyService | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: WaBot configuration
        service: Optional pre-built auto-reply service

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="WaBot API",
        description="WhatsApp auto-reply engine",
        version=__version__,
        lifespan=lifespan,
    )

    service = service or AutoReplyService(config)

    app.state.config = config
    app.state.service = service
    app.state.poller = AutoReplyPoller(
        service,
        interval_seconds=config.auto_reply.poll_interval_seconds,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(system_router, prefix="/api/system", tags=["System"])
    app.include_router(whatsapp_router, prefix="/api/whatsapp", tags=["WhatsApp"])

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return JSONResponse({"status": "ok"})

    return app
