"""
Hotel Booking API - Main Application Entry Point

Room reservations with:
- Overlap-safe room holds via optimistic locking on the room row
- A validated booking/payment state machine with front desk operations
- Gateway checkout with idempotent webhook reconciliation
- Best-effort in-app and e-mail notifications after every commit
- Redis-backed availability cache and verification codes
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.middleware import RequestLoggingMiddleware
from app.api.router import api_router
from app.core.config import get_settings
from app.core.logging import get_logger, setup_logging
from app.core.metrics import metrics_endpoint
from app.db.session import AsyncSessionLocal
from app.infrastructure.email_sender import SmtpEmailSender
from app.infrastructure.payment_gateway import StripeGateway
from app.infrastructure.redis_client import close_redis, get_redis
from app.infrastructure.ttl_store import MemoryTTLStore, RedisTTLStore
from app.services.activity_service import ActivityRecorder
from app.services.cache_service import get_cache_stats
from app.services.notification_service import NotificationDispatcher

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: wire adapters on startup, release them on shutdown."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        app.state.code_store = RedisTTLStore(redis_client)
        logger.info("redis_ready")
    else:
        # Codes live in process memory; fine for a single worker only
        app.state.code_store = MemoryTTLStore()
        logger.warning("redis_unavailable", message="Running without cache")

    email_sender = SmtpEmailSender(settings)
    if not email_sender.configured:
        logger.warning("smtp_not_configured", message="E-mails will be logged, not sent")
    app.state.email_sender = email_sender
    app.state.payment_gateway = StripeGateway(settings)
    app.state.dispatcher = NotificationDispatcher(AsyncSessionLocal, email_sender)
    app.state.activity = ActivityRecorder(AsyncSessionLocal)

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Hotel room booking API with overlap-safe reservations",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CLIENT_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


# Error envelope: every failure is {"message": ..., "details"?: ...}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())[1:]) or "body"
        details.append({"field": field, "message": error.get("msg", "Invalid value")})
    logger.info("request_validation_failed", errors=len(details))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Validation failed", "details": details},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled_exception", error=str(exc), exc_info=exc)
    content = {"message": "Server error"}
    if settings.DEBUG:
        content["details"] = jsonable_encoder({"type": type(exc).__name__, "error": str(exc)})
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
