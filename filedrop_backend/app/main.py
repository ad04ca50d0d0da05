# filedrop_backend/app/main.py
# run: uvicorn filedrop_backend.app.main:app --host 0.0.0.0 --port 8000
#   (set FILEDROP_DESTINATION to preconfigure the upload folder)
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import Settings, settings
from .destination import DestinationStore
from .errors import register_error_handlers
from .routers import browse as browse_router
from .routers import destination as destination_router
from .routers import health as health_router
from .routers import uploads as uploads_router

logger = logging.getLogger("filedrop.main")


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    app_settings = app_settings or settings
    logging.getLogger("filedrop").setLevel(app_settings.LOG_LEVEL.upper())

    app = FastAPI(title="FileDrop API", version="0.1.0")
    app.state.settings = app_settings
    app.state.destination = DestinationStore(app_settings.DESTINATION)

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # --- basic alive probe that does NOT touch the filesystem ---
    @app.get("/health/bootcheck")
    def bootcheck():
        return {"status": "starting-ok"}

    # include routers
    app.include_router(uploads_router.router)
    app.include_router(destination_router.router)
    app.include_router(browse_router.router)
    app.include_router(health_router.router)

    @app.on_event("startup")
    async def on_startup():
        logger.info(">>>> FILEDROP STARTUP (destination=%s)", app.state.destination.get())

    @app.on_event("shutdown")
    async def on_shutdown():
        logger.info(">>>> FILEDROP SHUTDOWN")

    return app


app = create_app()
