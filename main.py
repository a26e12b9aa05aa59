"""
ROBOSTORE Backend API
Robot storefront with a pose-driven robot playground

FastAPI application entry point with cookie authentication, the store
catalog/orders API and the URDF playground (WebSocket + worker threads
for pose inference).
"""

import logging
import sys
import time
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

# ============================================
# Configure Root Logger First
# ============================================
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)]
)

# Service routers
from store_service.router import router as store_router
from playground_service.router import router as playground_router
from playground_service.models import get_session_handler
from core.users import router as users_router
from core.oauth import router as oauth_router

# Core utilities
from core.config import settings
from core.database import init_firebase, is_mock_mode
from core.threading import get_ml_pool, ml_worker_pool
from shared.utils import setup_logger

# Setup logging
log_level = logging.DEBUG if settings.DEBUG else logging.INFO
logger = setup_logger("robostore.main", level=log_level)
request_logger = setup_logger("robostore.requests", level=log_level)


# ============================================
# Request Logging Middleware
# ============================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all incoming requests and responses with timing."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        client_ip = request.client.host if request.client else "unknown"
        query_string = f"?{request.url.query}" if request.url.query else ""
        has_auth = "🔐" if settings.AUTH_COOKIE_NAME in request.cookies else "🔓"

        request_logger.info(f"➡️  {has_auth} {request.method} {request.url.path}{query_string}")
        request_logger.debug(f"    Client: {client_ip}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000

            if response.status_code < 300:
                status_emoji = "✅"
            elif response.status_code < 400:
                status_emoji = "↪️"
            elif response.status_code < 500:
                status_emoji = "⚠️"
            else:
                status_emoji = "❌"

            request_logger.info(
                f"{status_emoji} {request.method} {request.url.path} → {response.status_code} ({process_time:.1f}ms)"
            )

            return response
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            request_logger.error(f"💥 {request.method} {request.url.path} → ERROR: {type(e).__name__}: {str(e)} ({process_time:.1f}ms)")
            request_logger.error(traceback.format_exc())
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    # ===== STARTUP =====
    logger.info("🚀 ROBOSTORE API starting up...")

    if init_firebase():
        logger.info("🔥 Firebase connected")
    else:
        logger.warning("⚠️ Running in MEMORY MODE (no Firebase)")

    logger.info("✅ ROBOSTORE API ready!")

    yield  # Application runs here

    # ===== SHUTDOWN =====
    logger.info("👋 ROBOSTORE API shutting down...")

    await get_session_handler().close_all()
    ml_worker_pool.shutdown(wait=True)

    logger.info("✅ Shutdown complete")


app = FastAPI(
    title="ROBOSTORE API",
    description="Robot storefront and pose-driven robot playground",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS configuration (credentials needed for the auth cookie)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "robostore-api",
        "database": "memory" if is_mock_mode() else "firestore",
        "playground_sessions": len(get_session_handler().sessions)
    }


@app.get("/stats")
async def get_stats():
    """Get service statistics."""
    return {
        "ml_pool": get_ml_pool().get_stats(),
        "playground": get_session_handler().get_stats()
    }


# Include service routers
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(store_router, prefix="/api", tags=["Store"])
app.include_router(oauth_router, prefix="/auth", tags=["OAuth"])
app.include_router(playground_router, prefix="/api/playground", tags=["Playground"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
