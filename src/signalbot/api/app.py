"""FastAPI application factory."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from signalbot.api.routes import api, webhook


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Route handlers read their collaborators from ``app.state``: settings,
    orchestrator, scheduler, dispatcher and telegram.
    """
    app = FastAPI(title="Stock Trading Signal Bot", lifespan=lifespan)

    app.include_router(api.router, prefix="/api/v1")
    app.include_router(webhook.management_router, prefix="/api/v1")
    app.include_router(webhook.router)

    return app
