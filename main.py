import time
from fastapi import FastAPI, Request, status, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError

from routers import auth

# Import all models for SQLAlchemy relationship resolution
import models

from core.config import settings
from core.database import check_db_connection
from core.logging_config import setup_logging
from middleware import RequestIDMiddleware, get_request_id
from utils.logger import get_logger, sanitize_log_data

setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR,
    log_to_file=settings.ENV != "testing"
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        check_db_connection()
    except SQLAlchemyError:
        # Token operations report STORAGE_ERROR until the database is back
        logger.error("Database unreachable at startup", exc_info=True)
    logger.info("Application startup complete", extra={"event": "startup"})
    yield
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(
    title="One-Time Token API",
    description="Email sign-in links backed by single-use tokens",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with status and duration. Query strings can carry a
    sign-in token (?token=...), so they are sanitized first.
    """
    start_time = time.time()

    response = await call_next(request)

    duration = (time.time() - start_time) * 1000
    client_ip = request.client.host if request.client else "unknown"

    logger.info(
        f'{client_ip} - "{request.method} {request.url.path}" {response.status_code}',
        extra={
            "method": request.method,
            "path": request.url.path,
            "query": sanitize_log_data(dict(request.query_params)),
            "status_code": response.status_code,
            "duration_ms": round(duration, 2),
            "client_ip": client_ip
        }
    )

    return response


app.add_middleware(RequestIDMiddleware)


@app.get("/health")
async def health_check():
    logger.debug("Health check requested")
    return {"status": "Healthy"}


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Last resort for anything the services did not turn into a result.
    """
    if isinstance(exc, (HTTPException, RequestValidationError)):
        raise

    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "request_id": get_request_id(request)}
    )


app.include_router(auth.router)
