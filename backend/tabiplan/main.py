import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import structlog
from prometheus_fastapi_instrumentator import Instrumentator

from tabiplan.api import database, spots, trips, wishlist
from tabiplan.api.rate_limit import limiter
from tabiplan.core.errors import TabiplanError
from tabiplan.core.settings import Settings
from tabiplan.db.session import db_manager, database_health_check
from tabiplan.middleware.logging import RequestLoggingMiddleware

settings = Settings()

BEARER_PATTERN = re.compile(r'(Bearer\s+)[A-Za-z0-9\-_.=]+')
JWT_PATTERN = re.compile(r'eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+')


# Redaction processor to scrub bearer tokens from any string values in the event dict
def redact_tokens(logger, method_name, event_dict):
    def scrub(v):
        if isinstance(v, str):
            v = BEARER_PATTERN.sub(r'\1REDACTED', v)
            return JWT_PATTERN.sub('REDACTED', v)
        if isinstance(v, list):
            return [scrub(x) for x in v]
        if isinstance(v, dict):
            return {k: scrub(vv) for k, vv in v.items()}
        return v

    for k, v in list(event_dict.items()):
        event_dict[k] = scrub(v)
    return event_dict


def configure_logging(settings: Settings) -> None:
    """structlog JSON rendering on top of stdlib logging (console and file)"""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_tokens,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers = [logging.StreamHandler()]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE))
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(message)s',  # structlog handles formatting
        handlers=handlers,
    )


configure_logging(settings)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    try:
        await db_manager.initialize()
    except Exception:
        logger.exception("Failed to initialize database manager")
        raise

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await db_manager.close()
    logger.info("Database connections closed")


app = FastAPI(
    title="Tabiplan API",
    description="Trip planning service: itineraries, wishlist and visited-spot history",
    version="1.0.0",
    lifespan=lifespan
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize Prometheus metrics instrumentation
Instrumentator().instrument(app).expose(app, endpoint="/metrics")


@app.exception_handler(TabiplanError)
async def tabiplan_error_handler(request: Request, exc: TabiplanError):
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request_failed",
        error=exc.message,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        path=request.url.path,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        "database_error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        exc_info=True
    )
    return JSONResponse(status_code=500, content={"detail": "Database error"})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


# Health check endpoint
@app.get("/")
def health_check():
    return {"status": "API active", "version": "1.0.0"}


@app.get("/health")
async def health_check_detailed():
    """Detailed health check endpoint"""
    db_health = await database_health_check()
    db_status = db_health["status"]
    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "version": "1.0.0",
        "components": {
            "database": db_status,
            "api": "healthy"
        },
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


prefix = "/api/v1"

# Include API routers
app.include_router(trips.router, prefix=prefix)
app.include_router(wishlist.router, prefix=prefix)
app.include_router(spots.router, prefix=prefix)
app.include_router(database.router, prefix=f"{prefix}/database", tags=["database"])
