# backend/main.py

import os
import shutil
import asyncio
import logging
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from config import settings

# database stuff
from core.database import SessionLocal, init_db, test_db_connection

# services
from services import build_services

# routers
from api.auth.routes import router as auth_router
from api.alerts.routes import router as alerts_router
from api.alerts.websocket import router as alerts_ws_router, hub
from api.devices.routes import router as devices_router

app = FastAPI(
    title="Alarma Inteligente API",
    description="Alert intake, live push, e-mail fan-out and video capture for the smart alarm.",
    version="1.0.0",
    openapi_tags=[
        {"name": "Alerts", "description": "Alert intake and listing"},
        {"name": "Devices", "description": "Devices, sensors and their users"},
        {"name": "Auth", "description": "Authentication related endpoints"},
    ],
)


# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(name)s - %(message)s")
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def startup():
    """Checks the database and starts the process-wide services."""
    if test_db_connection():
        init_db()
        logger.info("✅ Database connected successfully.")
    else:
        logger.error("❌ Database connection failed on startup.")

    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(SessionLocal)

    app.state.listener_task = asyncio.create_task(hub.listen(settings.REDIS_URL, settings.LIVE_CHANNEL))
    logger.info("Alarm services started.")


@app.on_event("shutdown")
async def shutdown_event():
    """Lets capture and notification work finish, then closes Redis connections."""
    listener = getattr(app.state, "listener_task", None)
    if listener is not None:
        listener.cancel()
        await asyncio.gather(listener, return_exceptions=True)

    services = getattr(app.state, "services", None)
    if services is not None:
        await services.shutdown(settings.SHUTDOWN_GRACE_SECONDS)
    logger.info("FastAPI app shutting down.")


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Change to specific frontend URLs for better security
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Routes
app.include_router(auth_router)
app.include_router(alerts_router)
app.include_router(devices_router)
app.include_router(alerts_ws_router)

# Recorded clips
os.makedirs(settings.VIDEO_DIR, exist_ok=True)
app.mount(settings.VIDEO_URL_PREFIX, StaticFiles(directory=settings.VIDEO_DIR), name="videos")


@app.get("/")
async def root():
    return {"message": "Alarma Inteligente API is running"}


@app.get("/health")
async def health():
    """
    Provides a health check endpoint for the FastAPI application and its dependencies:
    database, Redis, Celery workers (when mail is queued), ffmpeg and capture jobs.
    """
    logging.info("Health check running...")

    health_status = {"status": "OK"}
    services = app.state.services

    # 1. SQLAlchemy Database Connection Check
    health_status["sqlalchemy_check"] = await asyncio.to_thread(test_db_connection)

    # 2. Redis Connection Check
    try:
        health_status["redis_check"] = await services.live.ping()
    except Exception as e:
        health_status["redis_check"] = f"Failed: {e}"
        logging.error(f"Redis health check failed: {e}")

    # 3. Celery Worker Ping Check
    if settings.MAIL_BACKEND == "celery":
        from core.celery.celery_app import celery_app
        try:
            ping_response = await asyncio.to_thread(celery_app.control.ping, timeout=1)
            health_status["celery_worker_status"] = "Workers online" if ping_response else "No workers responded"
        except Exception as e:
            health_status["celery_worker_status"] = f"Ping failed: {e}"
            logging.error(f"Celery worker ping failed: {e}")

    # 4. Capture tooling
    health_status["ffmpeg_available"] = shutil.which(settings.FFMPEG_BINARY) is not None
    health_status["capture_jobs"] = [
        {"alert_id": job.alert_id, "started_at": job.started_at.isoformat(), "duration": job.duration}
        for job in services.orchestrator.active_jobs()
    ]

    return health_status


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=5000)
