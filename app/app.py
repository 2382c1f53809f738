import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import app.api.routes_booking as routes_booking
import app.api.routes_health as routes_health
from app.core.config import Settings, get_settings
from app.core.exceptions import BookingError
from app.core.middleware import BodySizeLimitMiddleware, RequestLoggingMiddleware, SecurityHeadersMiddleware
from app.db.base import BookingStore
from app.db.core import build_store, init_booking_context

logger = logging.getLogger(__name__)

ROUTE_NOT_FOUND = "Ruta no encontrada"


def create_app(settings: Optional[Settings] = None, store: Optional[BookingStore] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        booking_store = store or build_store(settings)
        logger.info("Starting %s (%s) with %s store", settings.APP_NAME, settings.ENV, settings.STORE_BACKEND)
        app.state.booking_context = await init_booking_context(booking_store)
        yield
        logger.info("Shutting down %s", settings.APP_NAME)
        await booking_store.close()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=settings.APP_DESCRIPTION,
        lifespan=lifespan
    )

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.MAX_BODY_BYTES)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    if settings.ACCESS_LOG:
        app.add_middleware(RequestLoggingMiddleware)

    app.include_router(
        routes_health.router,
        prefix=settings.API_PREFIX
    )
    app.include_router(
        routes_booking.router,
        prefix=settings.API_PREFIX
    )

    @app.exception_handler(BookingError)
    async def booking_error_handler(request, ex: BookingError):
        return JSONResponse(status_code=ex.status_code, content=ex.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request, ex: RequestValidationError):
        # answered as 400 instead of FastAPI's default 422
        messages = [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in ex.errors()]
        return JSONResponse(status_code=400, content={"error": "; ".join(messages)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request, ex: StarletteHTTPException):
        if ex.status_code == 404:
            return JSONResponse(status_code=404, content={"error": ROUTE_NOT_FOUND})
        return JSONResponse(status_code=ex.status_code, content={"error": str(ex.detail)},
                            headers=getattr(ex, "headers", None))

    return app


app = create_app()
