"""
app/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Registers API routes (verification, leads, email sequences)
- Starts the background scheduler
- No business logic should be written here
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time

from app.core.config import settings, validate_settings
from app.core.errors import add_exception_handlers
from app.core.logging import setup_logging, get_logger
from app.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health
from app.db.indexes import create_indexes
from app.services.scheduler import start_scheduler, stop_scheduler, task_scheduler
from app.api import verification, leads, email_sequences

APP_VERSION = "1.0.0"

# Initialize logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("🚀 Starting Gironde Leads API...")

    try:
        # Validate configuration
        logger.info("Validating configuration...")
        validate_settings()
        logger.info("✅ Configuration validated")

        # Connect to MongoDB
        logger.info("Connecting to MongoDB...")
        await connect_to_mongo()

        # Create database indexes
        logger.info("Creating database indexes...")
        await create_indexes()
        logger.info("✅ Database indexes created")

        # Background jobs
        if settings.EMAIL_SCHEDULER_ENABLED:
            start_scheduler()
        else:
            logger.info("Email scheduler disabled")

        if not settings.twilio_configured:
            logger.warning("⚠️ Twilio not configured, SMS codes run in development mode")
        if not settings.smtp_configured:
            logger.warning("⚠️ SMTP not configured, emails will fail")

        logger.info("🎉 Gironde Leads API started successfully!")
        logger.info(f"Environment: {settings.ENVIRONMENT}")

    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield

    # Shutdown
    logger.info("🛑 Shutting down Gironde Leads API...")

    try:
        stop_scheduler()

        # Close MongoDB connection
        await close_mongo_connection()
        logger.info("👋 Gironde Leads API shut down successfully")

    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


# Create FastAPI app with lifespan
app = FastAPI(
    title="Gironde Leads API",
    description="Lead capture, SMS verification and email sequences for real-estate sites in Gironde",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to all responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    # Log slow requests
    if process_time > 5.0:
        logger.warning(
            f"Slow request detected: {request.method} {request.url.path}",
            extra={"process_time": process_time}
        )

    return response


# Register API routes
app.include_router(verification.homepage_router)
app.include_router(verification.sms_router)
app.include_router(leads.router)
app.include_router(leads.admin_router)
app.include_router(email_sequences.admin_router)
app.include_router(email_sequences.public_router)


# Root endpoint
@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic info."""
    return {
        "name": "Gironde Leads API",
        "version": APP_VERSION,
        "status": "running",
        "environment": settings.ENVIRONMENT
    }


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Comprehensive health check endpoint.
    Checks database connectivity and reports which integrations are configured.
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.ENVIRONMENT,
        "version": APP_VERSION,
        "checks": {
            "twilio": "configured" if settings.twilio_configured else "not_configured",
            "smtp": "configured" if settings.smtp_configured else "not_configured",
            "scheduler": "running" if task_scheduler.running else "stopped",
        }
    }

    # Check database
    try:
        db_healthy = await check_database_health()
        health_status["checks"]["database"] = "healthy" if db_healthy else "unhealthy"
        if not db_healthy:
            health_status["status"] = "degraded"
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "unhealthy"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


# Readiness probe (for Kubernetes/orchestration)
@app.get("/ready", tags=["Health"])
async def readiness_check():
    """
    Readiness probe - indicates if app is ready to receive traffic.
    """
    try:
        if await check_database_health():
            return {"status": "ready"}
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": "database_unavailable"}
        )
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": str(e)}
        )


# Liveness probe (for Kubernetes/orchestration)
@app.get("/live", tags=["Health"])
async def liveness_check():
    """
    Liveness probe - indicates if app is alive.
    """
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
