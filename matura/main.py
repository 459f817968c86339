import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from alembic.config import Config
from alembic import command
from matura.core.config import settings, validate_provider_keys
from matura.core.engine import RECOVERY_SUGGESTIONS
from matura.core.errors import MaturaError, PipelineFailedError, RateLimitError
from matura.core.logging import configure_logging
from matura.api.routes import router as api_router
from matura.db.session import engine

configure_logging()
log = logging.getLogger(__name__)


def wait_for_database(max_retries: int = 30, retry_delay: float = 1.0) -> None:
    """Wait for the database to accept connections."""
    for attempt in range(max_retries):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            log.info("Database connection successful")
            return
        except Exception as e:
            if attempt < max_retries - 1:
                log.warning("Database not ready, retrying in %s seconds (attempt %d/%d): %s",
                            retry_delay, attempt + 1, max_retries, e)
                time.sleep(retry_delay)
            else:
                log.error("Database connection failed after %d attempts", max_retries)
                raise


def run_migrations() -> None:
    """Run Alembic migrations to head."""
    try:
        log.info("Running database migrations...")
        alembic_cfg = Config("alembic.ini")
        command.upgrade(alembic_cfg, "head")
        log.info("Database migrations completed successfully")
    except Exception as e:
        log.error("Database migration failed: %s", e, exc_info=True)
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Starting API server...")
    try:
        validate_provider_keys(settings)
        wait_for_database()
        run_migrations()
        log.info("API server startup complete")
    except Exception as e:
        log.error("API startup failed: %s", e, exc_info=True)
        raise
    yield
    log.info("Shutting down API server...")


def _error_body(message: str, details=None) -> dict:
    body = {"error": message}
    if details is not None:
        body["details"] = jsonable_encoder(details)
    return body


async def pipeline_failed_handler(request: Request, exc: PipelineFailedError):
    body = _error_body(exc.message, {"stage": exc.stage})
    body["error_category"] = exc.category
    body["recovery_suggestion"] = exc.recovery_suggestion
    return JSONResponse(status_code=500, content=body)


async def rate_limit_handler(request: Request, exc: RateLimitError):
    return JSONResponse(
        status_code=429,
        content=_error_body(exc.message, {"retry_after": exc.retry_after}),
        headers={"Retry-After": str(exc.retry_after)},
    )


async def matura_error_handler(request: Request, exc: MaturaError):
    log.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    body = _error_body(exc.message, exc.details)
    if exc.status_code >= 500:
        body["error_category"] = "unknown"
        body["recovery_suggestion"] = RECOVERY_SUGGESTIONS["unknown"]
    return JSONResponse(status_code=exc.status_code, content=body)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content=_error_body("Invalid request", exc.errors()))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc.detail)), headers=exc.headers)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan
    )
    app.add_exception_handler(PipelineFailedError, pipeline_failed_handler)
    app.add_exception_handler(RateLimitError, rate_limit_handler)
    app.add_exception_handler(MaturaError, matura_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
