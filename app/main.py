import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import Settings, get_settings
from app.core.errors import BookingError, InvalidRequest
from app.core.logging import configure_logging
from app.db.session import create_db_engine, make_session_factory
from app.api.api import api_router
from app.services.booking_service import BookingService

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return InvalidRequest.default_message
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    return f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    engine = create_db_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        engine.dispose()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.booking_service = BookingService(
        make_session_factory(engine),
        operator_secret=settings.OPERATOR_SECRET,
        max_update_attempts=settings.MAX_UPDATE_ATTEMPTS,
    )

    # CORS: use CORS_ORIGINS from env in production; default to localhost for dev
    _default_origins = ["http://127.0.0.1:3000", "http://localhost:3000"]
    _origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] if settings.CORS_ORIGINS else _default_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=InvalidRequest(_validation_message(exc)).to_body())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"success": False, "kind": "InternalError", "error": "Failed to process request"},
        )

    app.include_router(api_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
