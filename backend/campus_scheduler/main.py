import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

from campus_scheduler.api.routes import admin, drafts, health, schedule
from campus_scheduler.core.config import get_settings
from campus_scheduler.core.exceptions import AppError
from campus_scheduler.core.middleware import RequestSizeLimitMiddleware, RequestTimingMiddleware
from campus_scheduler.db.bootstrap import ensure_runtime_schema

logger = logging.getLogger(__name__)

settings = get_settings()

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.bootstrap_schema_on_startup:
        ensure_runtime_schema()
    yield


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


def is_serialization_failure(exc: DBAPIError) -> bool:
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    return sqlstate in RETRYABLE_SQLSTATES


async def database_error_handler(request: Request, exc: DBAPIError):
    if is_serialization_failure(exc):
        logger.warning("CONCURRENT MODIFICATION | method=%s | path=%s", request.method, request.url.path)
        return JSONResponse(
            status_code=409,
            content={"message": "Concurrent modification detected, retry the request", "retryable": True},
        )
    logger.error("DATABASE ERROR | method=%s | path=%s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Database error", "details": {}})


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(DBAPIError, database_error_handler)

app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(RequestTimingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(schedule.router, prefix=f"{settings.api_prefix}/schedule", tags=["schedule"])
app.include_router(drafts.router, prefix=f"{settings.api_prefix}/drafts", tags=["drafts"])
app.include_router(admin.router, prefix=f"{settings.api_prefix}/admin", tags=["admin"])
