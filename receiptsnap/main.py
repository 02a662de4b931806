"""
Receipt Snap Backend: FastAPI application entry-point.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from receiptsnap import __version__
from receiptsnap.config import settings
from receiptsnap.database import Base, engine
from receiptsnap.errors import ServiceError, error_response

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s  %(name)-30s  %(levelname)-5s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: ensure data dirs + tables exist
    os.makedirs(settings.DATA_DIR, exist_ok=True)
    os.makedirs(settings.STORAGE_DIR, exist_ok=True)
    # Import models so Base.metadata knows about them
    import receiptsnap.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready (%s)", settings.DATABASE_URL)
    yield
    logger.info("Shutting down")


app = FastAPI(
    title="Receipt Snap",
    description="Receipt image → subscription extraction → renewal reminders",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["authorization", "content-type", "x-client-info", "apikey"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(exc)


@app.get("/")
async def root():
    return {"service": "Receipt Snap", "version": __version__, "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# ── Register API routers ─────────────────────────────────────────────────
from receiptsnap.routers.receipts import router as receipts_router  # noqa: E402
from receiptsnap.routers.devices import router as devices_router  # noqa: E402
from receiptsnap.routers.notifications import router as notifications_router  # noqa: E402

app.include_router(receipts_router, prefix="/api", tags=["Receipts"])
app.include_router(devices_router, prefix="/api", tags=["Devices"])
app.include_router(notifications_router, prefix="/api", tags=["Notifications"])
