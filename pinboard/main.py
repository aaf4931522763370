from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .config import Settings, settings as app_settings
from .errors import PinboardError
from .events import PinEvents
from .routers.api import router as api_router
from .services.feed_service import FeedService
from .services.image_storage import ImageStorage, LocalImageStorage, build_image_storage
from .services.pin_service import PinService
from .stores.backend import Backend, open_backend

logger = logging.getLogger(__name__)


def _wire(app: FastAPI, backend: Backend, cfg: Settings) -> None:
    app.state.backend = backend
    app.state.feed = FeedService(
        backend.pins,
        default_page_size=cfg.FEED_DEFAULT_PAGE_SIZE,
        max_page_size=cfg.FEED_MAX_PAGE_SIZE,
    )
    app.state.pin_service = PinService(backend.pins, app.state.events)
    logger.info("%s running in %s mode", cfg.APP_NAME, backend.mode.value)


def create_app(
    backend: Backend | None = None,
    images: ImageStorage | None = None,
    cfg: Settings | None = None,
) -> FastAPI:
    """
    Build the application.

    Without an explicit ``backend`` the database is probed once on startup and
    the process falls back to demo mode if it cannot be reached.
    """
    cfg = cfg or app_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "backend", None) is None:
            _wire(app, open_backend(cfg), cfg)
        yield

    app = FastAPI(title=cfg.APP_NAME, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[cfg.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(PinboardError)
    async def pinboard_error(request: Request, exc: PinboardError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return JSONResponse({"msg": exc.detail}, status_code=exc.status_code)

    app.state.events = PinEvents(backlog=cfg.EVENTS_BACKLOG)
    app.state.images = images or build_image_storage(cfg)
    app.state.backend = None
    if backend is not None:
        _wire(app, backend, cfg)

    if isinstance(app.state.images, LocalImageStorage):
        app.mount("/uploads", StaticFiles(directory=app.state.images.upload_dir, check_dir=False), name="uploads")

    app.include_router(api_router)
    return app


logging.basicConfig(level=app_settings.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 5000)))
