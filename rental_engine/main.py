from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
import time
import uuid

from .config import settings
from .database import create_tables
from .services.exceptions import BookingEngineError
from .utils.dependencies import CALLER_ID_HEADER
from .utils.logging_config import setup_logging, get_logger, set_request_context, clear_request_context
from .utils.metrics import RequestTimer, UNMATCHED_PATH_LABEL
from .utils.rate_limiter import limiter

# Import all routers
from .routers import units, calendar, pricing, reservations, health, metrics

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(level=settings.log_level, json_format=settings.log_json or settings.is_production)

    logger.info(f"Starting rental-engine ({settings.environment})")
    logger.info(f"CORS origins: {settings.cors_origins}")

    create_tables()
    logger.info("Database ready")

    yield

    logger.info("Shutting down rental-engine")


# Create FastAPI app
app = FastAPI(
    title="Rental Engine API",
    description="Availability, per-date pricing and conflict-free reservations for rentable units",
    version="1.0.0",
    lifespan=lifespan
)

# Rate limiter state
app.state.limiter = limiter


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# Request ID Middleware: log context, metrics and access log per request
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id, request.headers.get(CALLER_ID_HEADER))

        start = time.perf_counter()
        timer = RequestTimer(request.method, UNMATCHED_PATH_LABEL)
        try:
            with timer:
                response = await call_next(request)
                # Route template keeps the metric label set small
                route = request.scope.get("route")
                if route is not None:
                    timer.path = route.path
                timer.status_code = response.status_code

            response.headers["X-Request-ID"] = request_id
            if not timer.path.startswith(("/health", "/metrics")):
                logger.api_request(
                    request.method,
                    timer.path if route is not None else request.url.path,
                    response.status_code,
                    round((time.perf_counter() - start) * 1000, 2)
                )
            return response
        finally:
            clear_request_context()


# Add other middleware AFTER CORS
app.add_middleware(RequestIdMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


# Domain errors carry their own status and payload
@app.exception_handler(BookingEngineError)
async def booking_engine_error_handler(request: Request, exc: BookingEngineError):
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


# Rate limit handler
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests, try again later", "code": "RATE_LIMITED"}
    )


# Include routers
app.include_router(units.router)
app.include_router(calendar.router)
app.include_router(pricing.router)
app.include_router(reservations.router)
app.include_router(health.router)
app.include_router(metrics.router)


@app.get("/")
async def root():
    return {
        "service": "rental-engine",
        "version": "1.0.0",
        "docs": "/docs"
    }
