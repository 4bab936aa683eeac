import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging

from workdesk.api.v1.router import router as api_v1_router
from workdesk.core.cache import CacheService
from workdesk.core.config import settings as app_settings
from workdesk.core.database import AsyncSessionLocal
from workdesk.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CapacityError,
    ConfigurationError,
    NotFoundError,
    ValidationError,
)
from workdesk.core.rate_limit import limiter
from workdesk.dependencies import get_redis_client
from workdesk.repositories.priority_repository import PriorityRepository
from workdesk.services.stalled_escalation import start_stalled_escalation_loop

# Configure logging
logging.basicConfig(level=app_settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


async def _seed_priority_rules() -> None:
    try:
        async with AsyncSessionLocal() as session:
            repo = PriorityRepository(session)
            await repo.seed_if_empty()
            await repo.commit()
    except Exception:
        logger.warning("Could not seed default priority rules", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Seed default rules and manage the escalation background task."""
    await _seed_priority_rules()
    redis_client = await get_redis_client()
    escalation_task = asyncio.create_task(
        start_stalled_escalation_loop(AsyncSessionLocal, CacheService(redis_client))
    )
    logger.info("Background stalled-task escalation scheduled")
    yield
    # Shutdown: cancel the background task
    escalation_task.cancel()
    try:
        await escalation_task
    except asyncio.CancelledError:
        logger.info("Background stalled-task escalation stopped")
    if redis_client is not None:
        await redis_client.aclose()


app = FastAPI(
    title="Workdesk Assignment Service",
    description="Priority scoring and WIP-aware load-balanced assignment of team requests",
    version="0.1.0",
    lifespan=lifespan,
)

# Attach rate limiter state so slowapi middleware can find it
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware – restricted to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in app_settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    logger.warning("Not found (%s): %s", exc.code, exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": exc.code},
    )


@app.exception_handler(AuthenticationError)
async def authentication_handler(request: Request, exc: AuthenticationError):
    logger.warning("Unauthenticated call to %s", request.url.path)
    return JSONResponse(
        status_code=401,
        content={"detail": exc.detail, "type": exc.code},
    )


@app.exception_handler(AuthorizationError)
async def authorization_handler(request: Request, exc: AuthorizationError):
    logger.warning("Forbidden (%s): %s", exc.code, exc.detail)
    return JSONResponse(
        status_code=403,
        content={"detail": exc.detail, "type": exc.code},
    )


@app.exception_handler(CapacityError)
async def capacity_handler(request: Request, exc: CapacityError):
    logger.warning("Capacity rejected (%s): %s", exc.code, exc.detail)
    return JSONResponse(
        status_code=409,
        content={
            "detail": exc.detail,
            "type": exc.code,
            "current": exc.current,
            "limit": exc.limit,
        },
    )


@app.exception_handler(ValidationError)
async def domain_validation_handler(request: Request, exc: ValidationError):
    logger.warning("Invalid input (%s): %s", exc.code, exc.detail)
    return JSONResponse(
        status_code=422,
        content={"detail": exc.detail, "type": exc.code},
    )


@app.exception_handler(ConfigurationError)
async def configuration_handler(request: Request, exc: ConfigurationError):
    logger.error("Configuration problem (%s): %s", exc.code, exc.detail)
    return JSONResponse(
        status_code=503,
        content={"detail": exc.detail, "type": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Request validation error: %s", exc.errors())
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": jsonable_encoder(exc.errors()),
            "type": "validation_error",
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected/unhandled exceptions.

    Returns a generic 500 response so that raw stack traces are never
    leaked to the client.
    """
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected internal error occurred. Please try again later.",
            "type": "internal_server_error",
        },
    )
