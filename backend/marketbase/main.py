from contextlib import asynccontextmanager
from typing import Optional

import redis
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import api_router
from .config import Settings, get_settings
from .database import init_db, make_engine, make_session_factory
from .errors import AppError, SearchIndexError
from .fallback import FallbackCoordinator
from .log import get_logger, setup_logging
from .mappings import index_definitions
from .search_index import SearchIndex
from .sync import SyncSinks

logger = get_logger(__name__)


# -------------------- LIFESPAN --------------------
async def ensure_indices(index: SearchIndex, settings: Settings):
    # startup must not depend on the index being reachable
    for name, definition in index_definitions(settings).items():
        try:
            await index.ensure_index(name, definition)
        except SearchIndexError as e:
            logger.warning("Could not ensure index %s: %s", name, e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    setup_logging(settings)

    engine = make_engine(settings)
    await init_db(engine)
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)

    owns_index = app.state.search_index is None
    if owns_index:
        app.state.search_index = SearchIndex.from_settings(settings)
    index = app.state.search_index
    await ensure_indices(index, settings)

    app.state.sinks = SyncSinks.inline(index, settings)
    app.state.coordinator = FallbackCoordinator()
    app.state.redis = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
    logger.info("%s %s started (%s)", settings.PROJECT_NAME, settings.VERSION, settings.ENVIRONMENT)

    yield

    app.state.redis.close()
    if owns_index:
        await index.close()
    await engine.dispose()


# -------------------- ERROR HANDLERS --------------------
def _error(status_code: int, error: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message, **extra},
    )


def register_exception_handlers(app: FastAPI, settings: Settings):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        message = exc.message
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc.__cause__)
            if settings.is_production:
                message = "Something went wrong"
        return _error(exc.status_code, exc.error, message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(400, "Bad Request", "Validation failed", details=jsonable_encoder(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = "Something went wrong" if settings.is_production else str(exc)
        return _error(500, "Internal Server Error", message)


# -------------------- APP --------------------
def create_app(settings: Optional[Settings] = None, search_index: Optional[SearchIndex] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.search_index = search_index

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app, settings)
    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/")
    async def root():
        return {
            "message": f"{settings.PROJECT_NAME} is running",
            "version": settings.VERSION,
            "docs": "/docs",
            "health": f"{settings.API_PREFIX}/health",
        }

    return app


app = create_app()
