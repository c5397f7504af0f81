"""API Service - FastAPI with SQLAlchemy."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import time
import uuid

from fastapi import FastAPI, Request
import structlog

from shared.logging_config import setup_logging
from shared.redis_client import RedisStreamClient

from . import routers
from .config import get_settings
from .database import engine

CORRELATION_HEADER = "X-Correlation-ID"
USER_HEADER = "X-User-ID"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings = get_settings()
    setup_logging(service_name="api", log_format=settings.log_format, log_level=settings.log_level)

    app.state.redis = RedisStreamClient(settings.redis_url)
    await app.state.redis.connect()
    yield
    await app.state.redis.close()
    await engine.dispose()


app = FastAPI(
    title="Vibe API",
    description="Projects, messages and generated app fragments",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Bind correlation and user ids to every log line of the request."""
    correlation_id = request.headers.get(CORRELATION_HEADER) or f"req_{uuid.uuid4().hex[:8]}"
    context = {
        "correlation_id": correlation_id,
        "method": request.method,
        "path": request.url.path,
    }
    if user_id := request.headers.get(USER_HEADER):
        context["user_id"] = user_id
    structlog.contextvars.bind_contextvars(**context)

    start = time.perf_counter()
    logger = structlog.get_logger()

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            "http_request_exception",
            error=str(e),
            error_type=type(e).__name__,
            duration_ms=_elapsed_ms(start),
            exc_info=True,
        )
        raise
    finally:
        structlog.contextvars.unbind_contextvars(*context)

    log = logger.error if response.status_code >= 500 else logger.info  # noqa: PLR2004
    log(
        "http_request",
        status_code=response.status_code,
        duration_ms=_elapsed_ms(start),
        **context,
    )
    response.headers[CORRELATION_HEADER] = correlation_id
    return response


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


@app.get("/")
async def root():
    """Service name, version and where to start."""
    return {
        "name": app.title,
        "version": app.version,
        "docs": app.docs_url,
        "endpoints": ["/api/projects", "/api/messages", "/health", "/health/sandbox"],
    }


app.include_router(routers.health.router)
app.include_router(routers.projects.router, prefix="/api")
app.include_router(routers.messages.router, prefix="/api")
