import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from reservo.api.v1.api import api_router
from reservo.core.config import settings
from reservo.core.database import init_db
from reservo.core.exceptions import BookingError, InvalidInput, PersistenceUnavailable
from reservo.core.logging import setup_logging
from reservo.core.redis import redis_client
from reservo.services.booking import is_transient_failure

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
    logger.info(
        "Application starting up",
        environment=settings.ENVIRONMENT,
        availability_cache=settings.availability_cache_enabled,
    )
    await init_db()

    if settings.availability_cache_enabled:
        try:
            await redis_client.init_redis()
        except Exception as e:
            logger.warning(
                "Redis unavailable; availability will be computed uncached", error=str(e)
            )

    yield

    await redis_client.close()
    logger.info("Application shutting down")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def bind_request_context(request: Request, call_next):
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request.headers.get("X-Request-ID") or str(uuid.uuid4()),
        path=request.url.path,
        method=request.method,
    )
    return await call_next(request)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error("Request failed", reason=exc.reason, detail=exc.message)
    else:
        logger.info("Request rejected", reason=exc.reason, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("Validation error", errors=len(exc.errors()))
    error = InvalidInput(
        "Request validation failed",
        details={
            "errors": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg")}
                for e in exc.errors()
            ]
        },
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(OperationalError)
async def storage_error_handler(request: Request, exc: OperationalError):
    if not is_transient_failure(exc):
        logger.error("Storage error", error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"reason": "internal_error", "detail": "Internal server error"},
        )
    logger.warning("Storage unavailable", error=str(exc))
    error = PersistenceUnavailable("Storage temporarily unavailable, please retry")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.VERSION}
