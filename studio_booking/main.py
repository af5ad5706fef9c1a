import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

# Import models so every table is registered with Base before create_all
from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS, RATE_LIMIT_ENABLED
from .database import Base, engine
from .domain.availability.router import admin_router as admin_availability_router
from .domain.availability.router import router as availability_router
from .domain.bookings.router import admin_router as admin_bookings_router
from .domain.bookings.router import router as bookings_router
from .domain.loyalty.router import router as loyalty_router
from .domain.pricing.router import router as rates_router
from .domain.settings.router import router as settings_router
from .errors import AvailabilityUnknown, BookingDomainError, RateNotFoundError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    if RATE_LIMIT_ENABLED:
        try:
            from .rate_limiter import get_redis_client

            get_redis_client()
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning(f"Redis connection failed - rate-limited endpoints will return 503: {e}")
    else:
        logger.info("Rate limiting disabled")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Studio Booking API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(BookingDomainError)
async def booking_domain_exception_handler(request: Request, exc: BookingDomainError):
    """Map domain exceptions to their HTTP status with a JSON body"""
    if isinstance(exc, RateNotFoundError):
        logger.error(f"Rate card configuration error on {request.url.path}: {exc.message}")
    elif exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(OperationalError)
async def database_unavailable_handler(request: Request, exc: OperationalError):
    """Store unreachable: report that the answer is unknown, never a default"""
    logger.error(f"Database unavailable for {request.url.path}: {exc}")
    error = AvailabilityUnknown("The booking store is temporarily unavailable, please retry")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "detail": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """pydantic error dicts minus the non-serializable ``ctx``/``input`` parts"""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise
    elapsed_ms = (time.time() - start) * 1000
    if elapsed_ms > 1000:
        logger.warning(f"Slow request {request.method} {request.url.path}: {elapsed_ms:.0f}ms")
    return response


logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(availability_router)
app.include_router(rates_router)
app.include_router(bookings_router)
app.include_router(loyalty_router)
app.include_router(admin_bookings_router)
app.include_router(admin_availability_router)
app.include_router(settings_router)


@app.get("/")
def root():
    return {"message": "Studio Booking API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
