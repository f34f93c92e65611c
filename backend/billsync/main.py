# backend/billsync/main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import time
import uuid

from billsync.core.config import settings
from billsync.core.exceptions import BillingError
from billsync.core.logging import logger
from billsync.db.database import init_db, close_db
from billsync.api.v1.router import api_router
from billsync.api.v1 import webhooks


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting BillSync API")
    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down BillSync API")
    await close_db()


app = FastAPI(
    title="BillSync API",
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=("/api/docs" if settings.ENVIRONMENT == "development" else None),
    redoc_url=("/api/redoc" if settings.ENVIRONMENT == "development" else None),
    lifespan=lifespan
)


# Request id + timing middleware
@app.middleware("http")
async def add_request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = str(process_time)
    logger.info(
        f"{request.method} {request.url.path} {response.status_code}",
        extra={"request_id": request_id, "duration_ms": round(process_time * 1000, 2)},
    )
    return response


# Include routers
app.include_router(api_router, prefix=settings.API_V1_STR)
# Stripe posts to a fixed path outside the versioned API
app.include_router(webhooks.router, tags=["webhooks"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
    }


@app.exception_handler(BillingError)
async def billing_exception_handler(request: Request, exc: BillingError):
    logger.error(f"Billing error: {exc.message}", extra={"error_code": exc.error_code})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.exception("Unhandled exception while handling request", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
