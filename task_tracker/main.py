import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from task_tracker.cache.layer import task_cache
from task_tracker.core.config import SettingsDep, get_settings
from task_tracker.core.errors import InvalidFieldValue, TaskAccessDenied
from task_tracker.core.logging_setup import setup_logging
from task_tracker.routers import tasks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(get_settings().log_level)
    await task_cache.init_cache()
    yield
    await task_cache.close()


app = FastAPI(
    title="Task Tracker API",
    description="Per-user task tracking with deadline windows and partial updates",
    swagger_ui_parameters={"displayRequestDuration": True},
    version="1.0.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(tasks.router)


@app.exception_handler(InvalidFieldValue)
async def invalid_field_value_handler(request: Request, exc: InvalidFieldValue):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "field": exc.field, "value": exc.value},
    )


@app.exception_handler(TaskAccessDenied)
async def access_denied_handler(request: Request, exc: TaskAccessDenied):
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)}
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/")
async def root():
    return {
        "message": "Welcome to Task Tracker API",
        "docs": "/docs",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check(settings: SettingsDep):
    return {
        "status": "healthy",
        "timezone": settings.timezone or "local",
        "cache": task_cache.get_stats(),
    }
